"""Tests for the admin user management and audit screens."""
from sqlalchemy import select

from app.agora.constants import LOCK_THRESHOLD
from app.agora.db import session_scope
from app.agora.models import AuditEvent, Role, User
from app.agora.modules.posts.models import Post, TagSummary
from app.agora.modules.posts.service import create_post
from app.agora.identity import SessionIdentity
from app.agora.store import AccountStore


def _login(client, email="admin@example.com", password="adminpw"):
    return client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=True)


def _alice_id(app):
    with session_scope(app) as s:
        return AccountStore(s).find_by_email("alice@example.com").id


def _lock_alice(client):
    for _ in range(LOCK_THRESHOLD):
        client.post("/auth/login", data={"email": "alice@example.com", "password": "nope"})


def test_admin_index_shows_counts(client):
    _lock_alice(client)
    _login(client)
    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Locked users: 1" in r.data
    assert b"Users: 2" in r.data


def test_user_search(client):
    _login(client)
    r = client.get("/admin/users?email=alice@example.com")
    assert r.status_code == 200
    assert b"alice@example.com" in r.data

    r = client.get("/admin/users?email=nobody@example.com", follow_redirects=True)
    assert b"User not found." in r.data


def test_admin_unlocks_account(client, app):
    _lock_alice(client)
    _login(client)
    r = client.post(
        "/admin/users/update",
        data={"user_id": _alice_id(app), "unlock": "on"},
        follow_redirects=True,
    )
    assert b"User updated successfully." in r.data

    with session_scope(app) as s:
        user = AccountStore(s).find_by_email("alice@example.com")
        assert user.locked is False
        assert user.failed_logins == 0
        actions = set(s.scalars(select(AuditEvent.action)))
    assert "admin.user_unlock" in actions

    client.get("/auth/logout")
    r = _login(client, "alice@example.com", "secret1")
    assert b"Welcome back, Alice!" in r.data


def test_admin_updates_name_email_role(client, app):
    _login(client)
    alice_id = _alice_id(app)
    r = client.post(
        "/admin/users/update",
        data={"user_id": alice_id, "name": "Alice A.", "email": "alice.a@example.com", "role": "admin"},
        follow_redirects=True,
    )
    assert b"User updated successfully." in r.data
    with session_scope(app) as s:
        user = s.get(User, alice_id)
        assert (user.name, user.email, user.role) == ("Alice A.", "alice.a@example.com", Role.ADMIN)


def test_admin_update_rejects_bad_role_and_duplicate_email(client, app):
    _login(client)
    alice_id = _alice_id(app)
    r = client.post("/admin/users/update", data={"user_id": alice_id, "role": "root"}, follow_redirects=True)
    assert b"Invalid role." in r.data
    r = client.post(
        "/admin/users/update",
        data={"user_id": alice_id, "email": "admin@example.com"},
        follow_redirects=True,
    )
    assert b"Email already registered." in r.data
    with session_scope(app) as s:
        user = s.get(User, alice_id)
        assert (user.email, user.role) == ("alice@example.com", Role.USER)


def test_admin_deletes_user_and_their_posts(client, app):
    alice_id = _alice_id(app)
    with session_scope(app) as s:
        alice = SessionIdentity.from_user(s.get(User, alice_id))
        create_post(s, {"title": "Mine", "content": "Body"}, alice)

    _login(client)
    r = client.post(f"/admin/users/{alice_id}/delete", follow_redirects=True)
    assert b"User deleted successfully." in r.data

    with session_scope(app) as s:
        assert s.get(User, alice_id) is None
        assert s.scalars(select(Post)).first() is None
        # Audit rows survive with the actor link cleared.
        assert s.scalars(select(AuditEvent).where(AuditEvent.action == "post.create")).one().actor_user_id is None

    assert client.post(f"/admin/users/{alice_id}/delete").status_code == 404


def test_audit_list_filters(client):
    _login(client)
    r = client.get("/admin/audit?action=auth.login")
    assert r.status_code == 200
    assert b"auth.login" in r.data

    r = client.get("/admin/audit?date_from=not-a-date")
    assert b"date_from must be YYYY-MM-DD" in r.data


def test_admin_screens_forbidden_for_user(client):
    _login(client, "alice@example.com", "secret1")
    for path in ("/admin/users", "/admin/audit"):
        r = client.get(path, follow_redirects=True)
        assert b"You are not authorized to view that resource." in r.data


def test_deleted_admin_with_live_cookie_is_sent_to_login(client, app):
    _login(client)
    with session_scope(app) as s:
        store = AccountStore(s)
        assert store.delete_by_id(store.find_by_email("admin@example.com").id)

    r = client.post("/admin/tags/aggregate", follow_redirects=True)
    assert r.status_code == 200
    assert b"Your account no longer exists." in r.data
    assert client.get("/dashboard").status_code == 302

    with session_scope(app) as s:
        assert s.scalars(select(TagSummary)).first() is None
        assert s.scalars(select(AuditEvent).where(AuditEvent.action == "tags.aggregate")).first() is None
