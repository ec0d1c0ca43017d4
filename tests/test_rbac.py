import pytest

from app.agora.errors import Forbidden, Unauthenticated
from app.agora.identity import SessionIdentity
from app.agora.models import Role
from app.agora.rbac import authorize


def _identity(role):
    return SessionIdentity(id=1, name="Alice", email="alice@example.com", role=role)


def test_authorize_without_identity_is_unauthenticated():
    with pytest.raises(Unauthenticated):
        authorize(None, Role.USER)


def test_authorize_role_mismatch_is_forbidden():
    with pytest.raises(Forbidden):
        authorize(_identity(Role.USER), Role.ADMIN)


def test_admin_does_not_satisfy_user_requirement():
    with pytest.raises(Forbidden):
        authorize(_identity(Role.ADMIN), Role.USER)


@pytest.mark.parametrize("role", list(Role))
def test_authorize_matching_role_passes(role):
    assert authorize(_identity(role), role) is None


def test_role_parse_is_closed():
    assert Role.parse("admin") is Role.ADMIN
    assert Role.parse(" User ") is Role.USER
    assert Role.parse("moderator") is None
    assert Role.parse(None) is None


def test_session_identity_round_trip_and_malformed_payloads():
    ident = SessionIdentity(id=7, name="Bob", email="bob@example.com", role=Role.ADMIN, profile_picture="uploads/7/a.png")
    assert SessionIdentity.from_session(ident.to_session()) == ident
    assert SessionIdentity.from_session({"id": "x", "email": "a@b.c", "role": "user"}) is None
    assert SessionIdentity.from_session({"id": 1, "email": "a@b.c", "role": "root"}) is None
    assert SessionIdentity.from_session("not-a-dict") is None


def _login(client, email, password):
    client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=True)


def test_admin_routes_redirect_anonymous_to_login(client):
    r = client.get("/admin/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]
    assert "next=" in r.headers["Location"]


def test_admin_routes_forbidden_for_user(client):
    _login(client, "alice@example.com", "secret1")
    r = client.get("/admin/", follow_redirects=True)
    assert r.status_code == 200
    assert b"You are not authorized to view that resource." in r.data


def test_admin_routes_open_for_admin(client):
    _login(client, "admin@example.com", "adminpw")
    r = client.get("/admin/")
    assert r.status_code == 200


def test_tampered_session_is_treated_as_logged_out(client):
    with client.session_transaction() as sess:
        sess["identity"] = {"id": 1, "email": "admin@example.com", "role": "root"}
    r = client.get("/dashboard")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]
