from __future__ import annotations

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, url_for

from app.agora.db import db_session
from app.agora.errors import AccessError
from app.agora.models import Role
from app.agora.modules.groups.models import Group
from app.agora.modules.groups.service import create_group, join_group
from app.agora.rbac import require_login, require_role

bp = Blueprint("groups", __name__)


@bp.get("/groups/new")
@require_role(Role.ADMIN)
def groups_new_get():
    return render_template("groups/new.html", title="New Group")


@bp.post("/groups")
@require_role(Role.ADMIN)
def groups_create():
    s = db_session()
    payload = {
        "name": request.form.get("name"),
        "description": request.form.get("description"),
    }
    try:
        group = create_group(s, payload, g.identity)
        s.commit()
    except AccessError as e:
        s.rollback()
        flash(e.message, "danger")
        return redirect(url_for("groups.groups_new_get"))

    current_app.logger.info("Group Created: %s by admin %s", group.name, g.identity.email)
    flash("Group created successfully.", "success")
    return redirect(url_for("routes.dashboard"))


@bp.post("/groups/<int:group_id>/add-member")
@require_login
def group_join(group_id: int):
    s = db_session()
    group = s.get(Group, group_id)
    if not group:
        flash("Group not found.", "danger")
        return redirect(url_for("routes.dashboard"))
    try:
        joined = join_group(s, group, g.identity)
        s.commit()
    except AccessError as e:
        s.rollback()
        flash(e.message, "danger")
        return redirect(url_for("routes.dashboard"))

    if joined:
        current_app.logger.info("User %s joined group %s", g.identity.email, group.id)
        flash("You have joined the group.", "success")
    else:
        flash("You are already a member of this group.", "info")
    return redirect(url_for("routes.dashboard"))
