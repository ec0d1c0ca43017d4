import secrets

from flask import session, Request
from werkzeug.security import check_password_hash, generate_password_hash

from app.agora.constants import PASSWORD_HASH_METHOD, PASSWORD_SALT_LENGTH


def hash_password(plaintext: str) -> str:
    """Salted one-way hash with the fixed cost from PASSWORD_HASH_METHOD."""
    return generate_password_hash(plaintext, method=PASSWORD_HASH_METHOD, salt_length=PASSWORD_SALT_LENGTH)


def verify_password(plaintext: str, hashed: str) -> bool:
    """Constant-time comparison against a stored hash."""
    if not hashed:
        return False
    return check_password_hash(hashed, plaintext)


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Validate CSRF token from form, header, or JSON body."""
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")

    if not token and req.is_json:
        json_data = req.get_json(silent=True) or {}
        if isinstance(json_data, dict):
            token = json_data.get("csrf_token")

    expected = session.get("csrf_token")
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))


def safe_next(nxt: str | None) -> str | None:
    """Only local paths are allowed as post-login redirects."""
    nxt = (nxt or "").strip()
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None
