from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, flash, g, redirect, request, session, url_for

from app.agora.db import db_session
from app.agora.errors import Forbidden, StoreUnavailable, Unauthenticated
from app.agora.identity import SessionIdentity
from app.agora.models import Role
from app.agora.store import AccountStore


def authorize(identity: SessionIdentity | None, required_role: Role) -> None:
    """
    Raise Unauthenticated without an identity and Forbidden on a role mismatch.
    Roles are compared exactly; admin does not satisfy a user requirement.
    """
    if identity is None:
        raise Unauthenticated()
    if identity.role != required_role:
        raise Forbidden()


def current_identity() -> SessionIdentity | None:
    return getattr(g, "identity", None)


def _login_redirect():
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))


def _account_exists(identity: SessionIdentity) -> bool:
    # The cookie snapshot can outlive the account it names.
    return AccountStore(db_session()).get(identity.id) is not None


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if current_identity() is None:
            return _login_redirect()
        return fn(*args, **kwargs)

    return wrapped


def require_role(role: Role) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            try:
                authorize(current_identity(), role)
            except Unauthenticated:
                return _login_redirect()
            except Forbidden as e:
                current_app.logger.warning(
                    "Forbidden: required_role=%s user_id=%s request_id=%s",
                    role.value,
                    getattr(current_identity(), "id", None),
                    getattr(g, "request_id", None),
                )
                flash(e.message, "danger")
                return redirect(url_for("routes.dashboard"))
            try:
                exists = _account_exists(current_identity())
            except StoreUnavailable as e:
                flash(e.message, "danger")
                return redirect(url_for("routes.dashboard"))
            if not exists:
                session.clear()
                g.identity = None
                flash("Your account no longer exists.", "danger")
                return redirect(url_for("auth.login_get"))
            return fn(*args, **kwargs)

        return wrapped

    return decorator
