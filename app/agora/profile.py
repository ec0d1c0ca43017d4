from __future__ import annotations

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, url_for

from app.agora.audit import record_event
from app.agora.auth import end_session, start_session
from app.agora.db import db_session
from app.agora.errors import StoreUnavailable
from app.agora.identity import SessionIdentity
from app.agora.models import User
from app.agora.rbac import require_login
from app.agora.storage import StorageError, discard_profile_picture, save_profile_picture, storage_from_config
from app.agora.store import AccountStore

bp = Blueprint("profile", __name__)


def _load_account(store: AccountStore) -> User | None:
    user = store.get(g.identity.id)
    if user is None:
        # Account deleted elsewhere (e.g. by an admin); the session is stale.
        end_session()
        flash("Your account no longer exists.", "danger")
    return user


@bp.get("/profile")
@require_login
def profile_view():
    try:
        user = _load_account(AccountStore(db_session()))
    except StoreUnavailable as e:
        flash(e.message, "danger")
        return redirect(url_for("routes.dashboard"))
    if user is None:
        return redirect(url_for("auth.login_get"))
    return render_template("profile.html", title="Profile", user=user, edit=False)


@bp.get("/profile/edit")
@require_login
def profile_edit_get():
    try:
        user = _load_account(AccountStore(db_session()))
    except StoreUnavailable as e:
        flash(e.message, "danger")
        return redirect(url_for("routes.dashboard"))
    if user is None:
        return redirect(url_for("auth.login_get"))
    return render_template("profile.html", title="Edit Profile", user=user, edit=True)


@bp.post("/profile/edit")
@require_login
def profile_edit_post():
    s = db_session()
    store = AccountStore(s)
    try:
        user = _load_account(store)
    except StoreUnavailable as e:
        flash(e.message, "danger")
        return redirect(url_for("profile.profile_view"))
    if user is None:
        return redirect(url_for("auth.login_get"))

    changes: dict[str, object] = {}
    new_name = (request.form.get("name") or "").strip()
    if new_name and new_name != user.name:
        changes["name"] = {"old": user.name, "new": new_name}
        user.name = new_name

    storage = storage_from_config(current_app.config)
    replaced: str | None = None
    upload = request.files.get("profile_picture")
    if upload and upload.filename:
        try:
            key = save_profile_picture(storage, user.id, upload.filename, upload.read(), content_type=upload.mimetype)
        except StorageError as e:
            s.rollback()
            flash(str(e), "danger")
            return redirect(url_for("profile.profile_edit_get"))
        changes["profile_picture"] = {"old": user.profile_picture, "new": key}
        replaced = user.profile_picture
        user.profile_picture = key

    store.save(user)
    record_event(
        s,
        actor=g.identity,
        action="user.update_profile",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"changes": changes},
    )
    s.commit()
    discard_profile_picture(storage, replaced)

    # Keep the session snapshot in step with the edited fields.
    start_session(SessionIdentity.from_user(user))
    current_app.logger.info("Profile Updated: %s (ID: %s)", user.email, user.id)
    flash("Profile updated successfully.", "success")
    return redirect(url_for("profile.profile_view"))


@bp.post("/profile/delete")
@require_login
def profile_delete():
    s = db_session()
    store = AccountStore(s)
    identity = g.identity
    try:
        user = _load_account(store)
        if user is None:
            return redirect(url_for("auth.register_get"))
        picture = user.profile_picture
        record_event(
            s,
            actor=identity,
            action="user.self_delete",
            entity_type="User",
            entity_id=str(identity.id),
            metadata={"email": identity.email},
        )
        s.flush()
        store.delete_by_id(identity.id)
        s.commit()
    except StoreUnavailable as e:
        s.rollback()
        flash(e.message, "danger")
        return redirect(url_for("profile.profile_view"))

    discard_profile_picture(storage_from_config(current_app.config), picture)
    current_app.logger.info("User Deleted: ID %s", identity.id)
    end_session()
    return redirect(url_for("auth.register_get"))
