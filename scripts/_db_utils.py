from __future__ import annotations

import os
import sys
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy.orm import Session

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.agora.db import build_engine, build_sessionmaker, transaction  # noqa: E402


def resolve_db_url(database_url: str | None = None) -> str:
    return (database_url or os.environ.get("DATABASE_URL") or "sqlite:///agora.db").strip()


@contextmanager
def script_session(db_url: str) -> Generator[Session, None, None]:
    """One committed unit of work against db_url; the engine is disposed afterwards."""
    engine = build_engine(db_url)
    try:
        with transaction(build_sessionmaker(engine)) as s:
            yield s
    finally:
        engine.dispose()
