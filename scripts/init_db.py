import sys
from pathlib import Path
import os

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.agora.errors import ValidationError
from app.agora.guard import register_account
from app.agora.models import Role
from app.agora.store import AccountStore
from scripts._db_utils import resolve_db_url, script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the initial admin account in an idempotent way.
    Does NOT overwrite an existing account's password; promotes it to admin if needed.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@agora.local").strip()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_name = (os.environ.get("ADMIN_NAME") or "Administrator").strip()

    with script_session(resolve_db_url(database_url)) as s:
        store = AccountStore(s)
        user = store.find_by_email(admin_email)
        if user is None:
            try:
                register_account(store, admin_name, admin_email, admin_password, Role.ADMIN)
            except ValidationError as e:
                raise RuntimeError(f"Cannot seed admin account: {'; '.join(e.errors)}") from e
        elif user.role != Role.ADMIN:
            user.role = Role.ADMIN
            store.save(user)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
