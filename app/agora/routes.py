import mimetypes

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, send_file, url_for

from app.agora.constants import DASHBOARD_POST_LIMIT
from app.agora.db import db_session
from app.agora.modules.groups.service import list_groups
from app.agora.modules.posts.service import recent_posts
from app.agora.rbac import require_login
from app.agora.storage import StorageError, storage_from_config

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    if getattr(g, "identity", None):
        return redirect(url_for("routes.dashboard"))
    return redirect(url_for("auth.login_get"))


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for load balancer probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/dashboard")
@require_login
def dashboard():
    s = db_session()
    try:
        posts = recent_posts(s, limit=DASHBOARD_POST_LIMIT)
        groups = list_groups(s)
    except Exception:
        current_app.logger.exception("Error loading dashboard (request_id=%s)", getattr(g, "request_id", None))
        flash("Error loading dashboard.", "danger")
        return redirect(url_for("auth.login_get"))
    return render_template("dashboard.html", title="Dashboard", identity=g.identity, posts=posts, groups=groups)


@bp.get("/uploads/<path:key>")
@require_login
def upload_file(key: str):
    storage = storage_from_config(current_app.config)
    storage_key = f"uploads/{key}"
    try:
        if not storage.exists(storage_key):
            abort(404)
        fh = storage.open(storage_key)
    except StorageError:
        abort(404)
    mimetype = mimetypes.guess_type(storage_key)[0] or "application/octet-stream"
    return send_file(fh, mimetype=mimetype, download_name=key.rsplit("/", 1)[-1])
