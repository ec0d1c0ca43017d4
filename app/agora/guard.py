"""
Account access guard: registration and the login lockout state machine.

An account is either Active(n), with n consecutive password mismatches
(0 <= n < LOCK_THRESHOLD), or Locked. A mismatch moves Active(n) to
Active(n+1), and to Locked once n+1 reaches LOCK_THRESHOLD. A match moves
Active(n) back to Active(0). Login attempts never leave Locked; only an
administrator's unlock does.
"""
from __future__ import annotations

import logging
from typing import Any

from app.agora.audit import record_event
from app.agora.constants import LOCK_THRESHOLD, MIN_PASSWORD_LENGTH
from app.agora.errors import AccountLocked, DuplicateEmail, InvalidPassword, NotFound, ValidationError
from app.agora.identity import SessionIdentity
from app.agora.models import Role, User
from app.agora.security import hash_password, verify_password
from app.agora.store import AccountStore

logger = logging.getLogger(__name__)


def _audit(store: AccountStore, action: str, *, user: User | None, email: str, **extra: Any) -> None:
    """
    Fire-and-forget: an audit failure never changes the login outcome.

    The row is flushed inside a savepoint, so a failed insert rolls back only
    the audit row and keeps the caller's counter update.
    """
    try:
        with store.session.begin_nested():
            record_event(
                store.session,
                actor=user,
                action=action,
                entity_type="User",
                entity_id=str(user.id) if user else None,
                metadata={"email": email, **extra},
            )
            store.session.flush()
    except Exception:
        logger.warning("Audit sink failed for %s (email=%s)", action, email, exc_info=True)


def validate_registration(name: str, email: str, password: str, role: str | Role | None = None) -> list[str]:
    errors: list[str] = []
    if not name or not email or not password:
        errors.append("Please fill in all fields.")
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if role and Role.parse(role) is None:
        errors.append(f"Invalid role. Must be one of: {', '.join(r.value for r in Role)}")
    return errors


def register_account(
    store: AccountStore,
    name: str,
    email: str,
    password: str,
    role: str | Role | None = None,
) -> int:
    """
    Create an account in state Active(0) and return its id.

    Raises ValidationError for missing fields, a short password or an unknown
    role, and DuplicateEmail when the exact email is already stored.
    """
    name = (name or "").strip()
    email = (email or "").strip()
    password = password or ""

    errors = validate_registration(name, email, password, role)
    if errors:
        raise ValidationError(errors)
    if store.find_by_email(email) is not None:
        raise DuplicateEmail()

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=Role.parse(role) if role else Role.USER,
        failed_logins=0,
        locked=False,
    )
    store.save(user)

    logger.info("User Registration: %s (ID: %s)", user.email, user.id)
    _audit(store, "auth.register", user=user, email=user.email, role=user.role.value)
    return user.id


def authenticate(store: AccountStore, email: str, password: str) -> SessionIdentity:
    """
    Check a login attempt and advance the lockout state machine.

    Raises NotFound, AccountLocked (without comparing the password) or
    InvalidPassword. On success the failure counter is reset and a
    SessionIdentity snapshot is returned.
    """
    email = (email or "").strip()
    user = store.find_by_email(email)
    if user is None:
        logger.info("Login failed, email not registered: %s", email)
        _audit(store, "auth.login_not_found", user=None, email=email)
        raise NotFound()

    if user.locked:
        logger.info("Login refused, account locked: %s (ID: %s)", user.email, user.id)
        _audit(store, "auth.login_locked", user=user, email=user.email)
        raise AccountLocked()

    if not verify_password(password or "", user.password_hash):
        if not store.register_failure(user):
            # A concurrent attempt locked the row between our read and update.
            _audit(store, "auth.login_locked", user=user, email=user.email)
            raise AccountLocked()
        logger.info(
            "Login failed, incorrect password: %s (ID: %s, failed_logins=%s)",
            user.email,
            user.id,
            user.failed_logins,
        )
        _audit(store, "auth.login_failed", user=user, email=user.email, failed_logins=user.failed_logins)
        if user.locked:
            logger.warning("Account locked after %s failed logins: %s (ID: %s)", LOCK_THRESHOLD, user.email, user.id)
            _audit(store, "auth.account_locked", user=user, email=user.email)
        raise InvalidPassword()

    if user.failed_logins:
        store.reset_failures(user)
    logger.info("User Login: %s (ID: %s)", user.email, user.id)
    _audit(store, "auth.login", user=user, email=user.email)
    return SessionIdentity.from_user(user)
