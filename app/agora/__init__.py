import logging
import os
from datetime import timedelta

from flask import Flask, flash, g, redirect, render_template, request, session, url_for
from dotenv import load_dotenv

from app.agora.config import load_config
from app.agora.db import init_db, teardown_db_session
from app.agora.logs import configure_logging
from app.agora.routes import bp as routes_bp
from app.agora.auth import bp as auth_bp, load_current_user
from app.agora.profile import bp as profile_bp
from app.agora.admin import bp as admin_bp
from app.agora.modules.posts.admin import bp as posts_bp
from app.agora.modules.groups.admin import bp as groups_bp

_UNGUARDED_PREFIXES = ("/static/", "/health", "/healthz")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=app.config["SESSION_HOURS"])
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    configure_logging(app)
    _check_production_settings(app)

    init_db(app)
    _dispose_engine_on_fork(app)
    _check_storage_settings(app)

    _register_template_helpers(app)
    _register_csrf_guard(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(profile_bp)
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(posts_bp)
    app.register_blueprint(groups_bp)

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    _register_schema_guardrail(app)
    _register_error_handlers(app)

    logging.getLogger(__name__).info("create_app() complete (env=%s)", app.config.get("ENV"))
    return app


def _check_production_settings(app: Flask) -> None:
    """Fail fast with a clear message instead of booting a half-configured production app."""
    if app.config.get("ENV") not in ("prod", "production"):
        return
    db_url = str(app.config.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if str(app.config.get("SECRET_KEY") or "") in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if not app.config.get("CSRF_ENABLED"):
        app.logger.warning("CSRF_ENABLED=0 in production; form posts are not CSRF-checked.")


def _dispose_engine_on_fork(app: Flask) -> None:
    # gunicorn --preload forks workers after create_app(); pooled connections must not be shared.
    if not hasattr(os, "register_at_fork"):
        return

    def _after_fork_child() -> None:
        engine = app.extensions.get("sqlalchemy_engine")
        if engine:
            engine.dispose()
            app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

    os.register_at_fork(after_in_child=_after_fork_child)


def _check_storage_settings(app: Flask) -> None:
    if app.config.get("STORAGE_BACKEND") != "s3":
        return
    missing = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
    if missing:
        app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing))


def _register_template_helpers(app: Flask) -> None:
    from app.agora.models import Role
    from app.agora.security import ensure_csrf_token

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_identity() -> dict:
        identity = getattr(g, "identity", None)
        return {
            "identity": identity,
            "is_admin": bool(identity and identity.role == Role.ADMIN),
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d %H:%M") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)


def _register_csrf_guard(app: Flask) -> None:
    from app.agora.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_UNGUARDED_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if not app.config.get("CSRF_ENABLED", True):
            return None
        if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
            return None
        # Login/register/logout are reachable before a session (and token) exists.
        if (request.endpoint or "").startswith("auth."):
            return None
        if not validate_csrf(request):
            app.logger.warning("CSRF check failed: path=%s request_id=%s", request.path, getattr(g, "request_id", None))
            return render_template("errors/400.html", message="CSRF token missing or invalid."), 400
        return None


def _register_schema_guardrail(app: Flask) -> None:
    from app.agora.schema_health import missing_schema

    state: dict[str, object] = {"checked": False, "missing": []}

    @app.before_request
    def _schema_health_guardrail():  # type: ignore[no-redef]
        if request.path.startswith(_UNGUARDED_PREFIXES):
            return None
        if not state["checked"]:
            state["checked"] = True
            try:
                state["missing"] = missing_schema(app.extensions["sqlalchemy_engine"])
            except Exception as e:
                app.logger.exception("Schema health check failed: %s", e)
            if state["missing"]:
                app.logger.error(
                    "DB schema out of date; run `alembic upgrade head`. Missing: %s",
                    ", ".join(state["missing"]),  # type: ignore[arg-type]
                )
        if state["missing"]:
            return render_template("errors/schema_out_of_date.html", missing=state["missing"]), 500
        return None


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        flash(f"File too large. Maximum size is {app.config['MAX_UPLOAD_MB']}MB.", "danger")
        return redirect(url_for("profile.profile_edit_get")), 302
