from __future__ import annotations

import uuid

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for

from app.agora.db import db_session
from app.agora.errors import AccessError, StoreUnavailable, ValidationError
from app.agora.guard import authenticate, register_account
from app.agora.identity import SessionIdentity
from app.agora.security import safe_next
from app.agora.store import AccountStore

bp = Blueprint("auth", __name__)

SESSION_KEY = "identity"


def load_current_user() -> None:
    """
    Loads g.identity from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.identity = None
        return

    raw = session.get(SESSION_KEY)
    identity = SessionIdentity.from_session(raw) if raw else None
    if raw and identity is None:
        current_app.logger.warning("Discarding malformed session identity (request_id=%s)", g.request_id)
        session.pop(SESSION_KEY, None)
    g.identity = identity


def start_session(identity: SessionIdentity) -> None:
    session.clear()
    session[SESSION_KEY] = identity.to_session()
    g.identity = identity


def end_session() -> None:
    session.clear()
    g.identity = None


@bp.get("/register")
def register_get():
    return render_template("auth/register.html", title="Register")


@bp.post("/register")
def register_post():
    name = request.form.get("name") or ""
    email = request.form.get("email") or ""
    password = request.form.get("password") or ""

    s = db_session()
    try:
        # Public sign-up always creates Role.USER; admins are seeded or promoted.
        register_account(AccountStore(s), name, email, password)
        s.commit()
    except ValidationError as e:
        s.rollback()
        for msg in e.errors or [e.message]:
            flash(msg, "danger")
        return redirect(url_for("auth.register_get"))
    except AccessError as e:
        s.rollback()
        flash(e.message, "danger")
        return redirect(url_for("auth.register_get"))
    except Exception:
        s.rollback()
        current_app.logger.exception("Error during registration (email=%s request_id=%s)", email, g.request_id)
        flash("An error occurred during registration.", "danger")
        return redirect(url_for("auth.register_get"))

    flash("Registration successful. Please log in.", "success")
    return redirect(url_for("auth.login_get"))


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", title="Login", next=nxt)


@bp.post("/login")
def login_post():
    email = request.form.get("email") or ""
    password = request.form.get("password") or ""
    nxt = safe_next(request.form.get("next"))

    s = db_session()
    try:
        identity = authenticate(AccountStore(s), email, password)
        s.commit()
    except StoreUnavailable as e:
        s.rollback()
        flash(e.message, "danger")
        return redirect(url_for("auth.login_get"))
    except AccessError as e:
        # Failed attempts still persist the counter and the audit row.
        s.commit()
        flash(e.message, "danger")
        return redirect(url_for("auth.login_get", next=nxt) if nxt else url_for("auth.login_get"))
    except Exception:
        s.rollback()
        current_app.logger.exception("Login POST crashed (email=%s request_id=%s)", email, g.request_id)
        flash("An error occurred during login.", "danger")
        return redirect(url_for("auth.login_get"))

    start_session(identity)
    flash(f"Welcome back, {identity.name}!", "success")
    return redirect(nxt or url_for("routes.dashboard"))


@bp.get("/logout")
def logout():
    identity = getattr(g, "identity", None)
    if identity:
        current_app.logger.info("User Logout: %s (ID: %s)", identity.email, identity.id)
    end_session()
    return redirect(url_for("auth.login_get"))
