"""
Release phase: migrate, verify the schema the login guard depends on, seed the admin.

Usage:
  python scripts/release.py [--skip-seed]

Exits non-zero when DATABASE_URL is missing, when production points at SQLite,
or when the migrated schema still lacks a required table or column.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _require_database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")
    return db_url


def _alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def migrate(db_url: str) -> None:
    from alembic import command

    print("Running Alembic migrations...", flush=True)
    command.upgrade(_alembic_config(db_url), "head")
    print("Migrations complete.", flush=True)


def verify_schema(db_url: str) -> None:
    from app.agora.db import build_engine
    from app.agora.schema_health import missing_schema

    engine = build_engine(db_url)
    try:
        missing = missing_schema(engine)
    finally:
        engine.dispose()
    if missing:
        raise RuntimeError(f"Schema still out of date after migrating: {', '.join(missing)}")
    print("Schema verified.", flush=True)


def run_release(*, seed: bool = True) -> None:
    db_url = _require_database_url()
    print("=== Agora release start ===", flush=True)
    migrate(db_url)
    verify_schema(db_url)

    if seed:
        from scripts import init_db

        print("Seeding admin account (idempotent)...", flush=True)
        init_db.seed_only(database_url=db_url)
    print("=== Agora release done ===", flush=True)


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--skip-seed", action="store_true", help="Migrate and verify only")
    args = parser.parse_args()
    run_release(seed=not args.skip_seed)


if __name__ == "__main__":
    main()
