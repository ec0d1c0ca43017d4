"""
Schema drift detection.

The login guard writes ``users.failed_logins`` and ``users.locked`` on every
failed attempt, so a database that has not been migrated fails on the first
login. The check runs once, on the first request, and lists what is missing.
"""
from __future__ import annotations

import logging

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, tuple[str, ...]] = {
    "users": ("email", "password_hash", "role", "failed_logins", "locked", "profile_picture"),
    "audit_events": ("action", "actor_user_id", "metadata_json", "client_ip"),
    "posts": ("title", "content", "author_id"),
    "post_tags": ("post_id", "tag"),
    "comments": ("post_id", "author_id", "created_at"),
    "tag_summaries": ("tag", "total_posts"),
    "groups": ("name",),
    "group_members": ("group_id", "user_id"),
}


def missing_schema(engine: Engine) -> list[str]:
    insp = sa_inspect(engine)
    missing: list[str] = []
    for table, columns in REQUIRED_COLUMNS.items():
        if not insp.has_table(table):
            missing.append(f"{table} (table)")
            continue
        present = {c["name"] for c in insp.get_columns(table)}
        missing.extend(f"{table}.{col}" for col in columns if col not in present)
    return missing
