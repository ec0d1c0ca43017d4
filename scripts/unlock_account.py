#!/usr/bin/env python3
"""Unlock an account locked by repeated failed logins (idempotent).

Usage:
  python scripts/unlock_account.py --email alice@example.com
"""

import sys
import argparse
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.agora.audit import record_event
from app.agora.store import AccountStore
from scripts._db_utils import resolve_db_url, script_session


def unlock(email: str, *, database_url: str | None = None) -> bool:
    """Returns False when no account has that exact email."""
    with script_session(resolve_db_url(database_url)) as s:
        store = AccountStore(s)
        user = store.find_by_email(email)
        if not user:
            print(f"User not found: {email}")
            return False
        if not user.locked and not user.failed_logins:
            print(f"Account is not locked: {email}")
            return True
        store.unlock(user)
        record_event(
            s,
            actor=None,
            action="admin.user_unlock",
            entity_type="User",
            entity_id=str(user.id),
            reason="unlock_account script",
        )
    print(f"Account unlocked: {email}")
    return True


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="Exact email of the account to unlock")
    args = parser.parse_args()
    if not unlock(args.email):
        sys.exit(1)


if __name__ == "__main__":
    main()
