from __future__ import annotations

import logging
from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from app.agora.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # Deleting an account cascades to its posts, comments and memberships.
    @event.listens_for(engine, "connect")
    def _fk_on(dbapi_connection, connection_record):  # type: ignore[no-redef]
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def build_engine(db_url: str) -> Engine:
    """Engine for the app and the ops scripts alike."""
    kwargs: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        kwargs.update(pool_recycle=1800, pool_size=5, max_overflow=10, pool_timeout=30)
    engine = create_engine(db_url, **kwargs)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_foreign_keys(engine)
    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_db(app: Flask) -> None:
    engine = build_engine(app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = build_sessionmaker(engine)


def db_session(app: Flask | None = None) -> Session:
    """
    Request-scoped session, closed in teardown. Handlers commit explicitly.
    """
    s: Session | None = getattr(g, "db_session", None)
    if s is not None:
        return s
    if app is None:
        from flask import current_app

        app = current_app
    g.db_session = app.extensions["sqlalchemy_sessionmaker"]()
    return g.db_session


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        return
    try:
        s.close()
    except Exception:
        logger.warning("Failed to close request DB session", exc_info=True)
    g.db_session = None


@contextmanager
def store_errors(operation: str) -> Generator[None, None, None]:
    """
    Translate connectivity failures into StoreUnavailable.
    These are the only store errors worth an ERROR-level operational log line.
    """
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        logger.error("Store unavailable during %s: %s", operation, e)
        raise StoreUnavailable() from e


@contextmanager
def transaction(sm: sessionmaker) -> Generator[Session, None, None]:
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def session_scope(app: Flask):
    """Commit-or-rollback session outside a request (tests, shell)."""
    return transaction(app.extensions["sqlalchemy_sessionmaker"])
