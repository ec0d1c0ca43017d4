import pytest

from app.agora import create_app
from app.agora.db import session_scope
from app.agora.guard import register_account
from app.agora.models import Base, Role
from app.agora.store import AccountStore


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("CSRF_ENABLED", "0")
    monkeypatch.delenv("LOG_FILE", raising=False)
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    app.config["TESTING"] = True

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        store = AccountStore(s)
        register_account(store, "Admin", "admin@example.com", "adminpw", Role.ADMIN)
        register_account(store, "Alice", "alice@example.com", "secret1")

    return app


@pytest.fixture()
def client(app):
    return app.test_client()
