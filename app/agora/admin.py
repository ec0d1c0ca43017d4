from datetime import date, datetime, time, timedelta

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for
from sqlalchemy import func, select, text

from app.agora.audit import record_event
from app.agora.constants import AUDIT_LIST_LIMIT
from app.agora.db import db_session
from app.agora.errors import DuplicateEmail, StoreUnavailable
from app.agora.models import AuditEvent, Role, User
from app.agora.modules.posts.models import Comment, Post, TagSummary
from app.agora.rbac import require_role
from app.agora.storage import discard_profile_picture, storage_from_config
from app.agora.store import AccountStore

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


@bp.get("/")
@require_role(Role.ADMIN)
def index():
    s = db_session()
    status = {
        "env": (current_app.config.get("ENV") or "development").strip().lower(),
        "db_connected": False,
        "db_error": None,
        "storage_backend": (current_app.config.get("STORAGE_BACKEND") or "local").strip().lower(),
        "counts": {},
    }

    # DB connectivity (lightweight)
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
        status["counts"] = {
            "users": s.scalar(select(func.count(User.id))) or 0,
            "locked_users": s.scalar(select(func.count(User.id)).where(User.locked == True)) or 0,  # noqa: E712
            "posts": s.scalar(select(func.count(Post.id))) or 0,
            "comments": s.scalar(select(func.count(Comment.id))) or 0,
        }
        tag_summaries = list(s.scalars(select(TagSummary).order_by(TagSummary.total_posts.desc(), TagSummary.tag)))
    except Exception as e:
        current_app.logger.error("Admin status check failed: %s", e)
        s.rollback()
        status["db_error"] = str(e)
        tag_summaries = []

    return render_template("admin/index.html", title="Admin", system_status=status, tag_summaries=tag_summaries)


@bp.get("/users")
@require_role(Role.ADMIN)
def users_search():
    email = (request.args.get("email") or "").strip()
    if not email:
        return render_template("admin/users.html", title="Admin - User Management", found_user=None, roles=list(Role))
    try:
        found_user = AccountStore(db_session()).find_by_email(email)
    except StoreUnavailable as e:
        flash(e.message, "danger")
        return redirect(url_for("admin.users_search"))
    if not found_user:
        flash("User not found.", "danger")
        return redirect(url_for("admin.users_search"))
    return render_template("admin/users.html", title="Admin - User Management", found_user=found_user, roles=list(Role))


@bp.post("/users/update")
@require_role(Role.ADMIN)
def users_update():
    s = db_session()
    store = AccountStore(s)
    try:
        user_id = int(request.form.get("user_id") or "")
    except ValueError:
        flash("Invalid user.", "danger")
        return redirect(url_for("admin.users_search"))

    user = store.get(user_id)
    if not user:
        flash("User not found.", "danger")
        return redirect(url_for("admin.users_search"))

    name = (request.form.get("name") or "").strip()
    email = (request.form.get("email") or "").strip()
    raw_role = request.form.get("role")
    role = Role.parse(raw_role) if raw_role else user.role
    unlock = (request.form.get("unlock") or "").strip() in ("1", "on", "true")

    if role is None:
        flash(f"Invalid role. Must be one of: {', '.join(r.value for r in Role)}", "danger")
        return redirect(url_for("admin.users_search", email=user.email))
    if email and email != user.email and store.email_taken(email, exclude_id=user.id):
        flash("Email already registered.", "danger")
        return redirect(url_for("admin.users_search", email=user.email))

    changes: dict[str, object] = {}
    if name and name != user.name:
        changes["name"] = {"old": user.name, "new": name}
        user.name = name
    if email and email != user.email:
        changes["email"] = {"old": user.email, "new": email}
        user.email = email
    if role != user.role:
        changes["role"] = {"old": Role(user.role).value, "new": role.value}
        user.role = role
    if unlock and (user.locked or user.failed_logins):
        changes["locked"] = {"old": user.locked, "new": False}
        user.locked = False
        user.failed_logins = 0

    try:
        store.save(user)
    except DuplicateEmail as e:
        s.rollback()
        flash(e.message, "danger")
        return redirect(url_for("admin.users_search", email=s.get(User, user_id).email))
    record_event(
        s,
        actor=g.identity,
        action="admin.user_update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"changes": changes},
    )
    if "locked" in changes:
        record_event(s, actor=g.identity, action="admin.user_unlock", entity_type="User", entity_id=str(user.id))
    s.commit()

    current_app.logger.info("User Updated: ID %s by admin %s", user.id, g.identity.email)
    flash("User updated successfully.", "success")
    return redirect(url_for("admin.users_search", email=user.email))


@bp.post("/users/<int:user_id>/delete")
@require_role(Role.ADMIN)
def users_delete(user_id: int):
    s = db_session()
    store = AccountStore(s)
    user = store.get(user_id)
    if not user:
        abort(404)
    picture = user.profile_picture

    record_event(
        s,
        actor=g.identity,
        action="admin.user_delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email},
    )
    s.flush()
    store.delete_by_id(user.id)
    s.commit()
    discard_profile_picture(storage_from_config(current_app.config), picture)

    current_app.logger.info("User Deleted: ID %s by admin %s", user_id, g.identity.email)
    flash("User deleted successfully.", "success")
    return redirect(url_for("admin.users_search"))


@bp.get("/audit")
@require_role(Role.ADMIN)
def audit_list():
    """
    Minimal audit trail UI (last AUDIT_LIST_LIMIT events) with simple filters:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    if (request.args.get("date_from") or "").strip() and not date_from:
        flash("date_from must be YYYY-MM-DD", "danger")
    if (request.args.get("date_to") or "").strip() and not date_to:
        flash("date_to must be YYYY-MM-DD", "danger")

    q = select(AuditEvent)
    if action:
        q = q.where(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.where(AuditEvent.actor_user_email.ilike(f"%{actor_email}%"))
    if date_from:
        q = q.where(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.where(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = list(s.scalars(q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(AUDIT_LIST_LIMIT)))
    return render_template(
        "admin/audit.html",
        title="Audit Trail",
        events=events,
        action=action,
        actor_email=actor_email,
        date_from=(request.args.get("date_from") or "").strip(),
        date_to=(request.args.get("date_to") or "").strip(),
    )
