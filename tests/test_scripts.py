from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from app.agora.constants import COMMENT_TTL_DAYS, LOCK_THRESHOLD
from app.agora.db import session_scope
from app.agora.guard import authenticate
from app.agora.identity import SessionIdentity
from app.agora.models import Role
from app.agora.modules.posts.models import Comment
from app.agora.modules.posts.service import add_comment, create_post
from app.agora.store import AccountStore
from scripts import init_db, unlock_account


def test_unlock_account_script(app):
    with session_scope(app) as s:
        store = AccountStore(s)
        user = store.find_by_email("alice@example.com")
        for _ in range(LOCK_THRESHOLD):
            store.register_failure(user)
        assert user.locked is True

    assert unlock_account.unlock("alice@example.com") is True
    assert unlock_account.unlock("nobody@example.com") is False

    with session_scope(app) as s:
        assert authenticate(AccountStore(s), "alice@example.com", "secret1").name == "Alice"


def test_seed_promotes_existing_account(app, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAIL", "alice@example.com")
    init_db.seed_only()
    with session_scope(app) as s:
        assert AccountStore(s).find_by_email("alice@example.com").role == Role.ADMIN


def test_seed_creates_admin_once(app, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAIL", "root@example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "rootpw123")
    init_db.seed_only()
    init_db.seed_only()
    with session_scope(app) as s:
        identity = authenticate(AccountStore(s), "root@example.com", "rootpw123")
    assert identity.role == Role.ADMIN


def test_purge_expired_comments_script(app, monkeypatch, capsys):
    from scripts import purge_expired_comments

    with session_scope(app) as s:
        alice = SessionIdentity.from_user(AccountStore(s).find_by_email("alice@example.com"))
        post = create_post(s, {"title": "t", "content": "c"}, alice)
        old = add_comment(s, post, "old", alice)
        old.created_at = datetime.utcnow() - timedelta(days=COMMENT_TTL_DAYS + 2)
        add_comment(s, post, "new", alice)

    monkeypatch.setattr("sys.argv", ["purge_expired_comments.py", "--dry-run"])
    purge_expired_comments.main()
    assert "1 comment(s)" in capsys.readouterr().out

    monkeypatch.setattr("sys.argv", ["purge_expired_comments.py"])
    purge_expired_comments.main()
    assert "Deleted 1 comment(s)" in capsys.readouterr().out

    with session_scope(app) as s:
        assert [c.content for c in s.scalars(select(Comment))] == ["new"]


def test_release_migrates_verifies_and_seeds(tmp_path, monkeypatch):
    from scripts import release
    from scripts._db_utils import script_session

    db_url = f"sqlite:///{tmp_path/'release.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("ADMIN_EMAIL", "ops@example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "opspass1")

    release.run_release()
    # Re-running is a no-op.
    release.run_release()

    with script_session(db_url) as s:
        assert authenticate(AccountStore(s), "ops@example.com", "opspass1").role == Role.ADMIN


def test_release_refuses_sqlite_in_production(monkeypatch):
    from scripts import release

    monkeypatch.setenv("DATABASE_URL", "sqlite:///whatever.db")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="sqlite"):
        release.run_release()


def test_gunicorn_argv():
    from scripts.start import gunicorn_argv

    argv = gunicorn_argv(9000, 3, 45)
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:9000"
    assert argv[argv.index("--workers") + 1] == "3"
    assert argv[argv.index("--timeout") + 1] == "45"
