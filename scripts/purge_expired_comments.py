#!/usr/bin/env python3
"""Delete comments older than COMMENT_TTL_DAYS. Safe to run from cron.

Usage:
  python scripts/purge_expired_comments.py [--dry-run]
"""

import sys
import argparse
from pathlib import Path

from sqlalchemy import func, select

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.agora.constants import COMMENT_TTL_DAYS
from app.agora.modules.posts.models import Comment
from app.agora.modules.posts.service import comment_cutoff, purge_expired_comments
from scripts._db_utils import resolve_db_url, script_session


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--dry-run", action="store_true", help="Only count expired comments")
    args = parser.parse_args()

    with script_session(resolve_db_url()) as s:
        if args.dry_run:
            n = s.scalar(select(func.count(Comment.id)).where(Comment.created_at < comment_cutoff())) or 0
            print(f"{n} comment(s) older than {COMMENT_TTL_DAYS} days would be deleted")
            return
        n = purge_expired_comments(s)
    print(f"Deleted {n} comment(s) older than {COMMENT_TTL_DAYS} days")


if __name__ == "__main__":
    main()
