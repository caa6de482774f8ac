import logging
import os

from dotenv import load_dotenv
from flask import Flask, g, jsonify, render_template, request
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from app.hub.config import load_config
from app.hub.db import db_session, init_db, teardown_db_session
# Must precede any module model import: app.hub.models registers them all at its bottom.
from app.hub.models import Base  # noqa: F401
from app.hub.routes import bp as routes_bp
from app.hub.auth import bp as auth_bp, load_current_user
from app.hub.admin import bp as admin_bp
from app.hub.modules.alliances.admin import bp as alliances_bp
from app.hub.modules.members.admin import bp as members_bp
from app.hub.modules.applications.admin import bp as applications_bp
from app.hub.modules.contact.admin import bp as contact_bp
from app.hub.modules.state_info.admin import bp as state_info_bp
from app.hub.modules.war_plan.admin import bp as war_plan_bp
from app.hub.modules.ai_studio.admin import bp as ai_studio_bp
from app.hub.modules.chat.admin import bp as chat_bp
from app.hub.utils import ServiceError

# Tables the running code expects; a missing one means `alembic upgrade head` was skipped.
EXPECTED_TABLES = (
    "users",
    "profiles",
    "auth_tokens",
    "alliances",
    "migration_applications",
    "contact_messages",
    "state_info",
    "state_info_proposals",
    "state_info_votes",
    "war_roster_players",
    "war_plans",
    "war_plan_assignments",
    "ai_generated_images",
    "alliance_presentations",
    "chat_messages",
    "rate_limits",
    "audit_events",
)


def _is_api_request() -> bool:
    return request.path.startswith("/api/")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.json.sort_keys = False

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # Storage health check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
    if not app.config.get("OPENAI_API_KEY"):
        app.logger.warning("OPENAI_API_KEY not set; AI generation endpoints will return 503.")

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(alliances_bp)
    app.register_blueprint(members_bp)
    app.register_blueprint(applications_bp)
    app.register_blueprint(contact_bp)
    app.register_blueprint(state_info_bp)
    app.register_blueprint(war_plan_bp)
    app.register_blueprint(ai_studio_bp)
    app.register_blueprint(chat_bp)

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    # Migration health (lean): detect drift between code expectations and DB schema.
    app.config.setdefault("_schema_health_ok", True)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> None:
        missing: list[str] = []
        try:
            engine = app.extensions.get("sqlalchemy_engine")
            if engine is None:
                raise RuntimeError("sqlalchemy_engine not initialized")
            insp = sa_inspect(engine)
            missing = [f"{t} (table)" for t in EXPECTED_TABLES if not insp.has_table(t)]
        except Exception as e:
            app.logger.exception("Schema health check failed: %s", e)

        app.config["_schema_health_missing"] = missing
        app.config["_schema_health_ok"] = not missing
        if missing:
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

    _run_schema_health_check()

    @app.get("/api/health/schema")
    def _schema_health():  # type: ignore[no-redef]
        return jsonify(
            {"ok": bool(app.config.get("_schema_health_ok")), "missing": app.config.get("_schema_health_missing") or []}
        )

    @app.errorhandler(ServiceError)
    def _service_error(e: ServiceError):  # type: ignore[no-redef]
        db_session().rollback()
        if e.status >= 500:
            app.logger.error("Service error %s: %s (request_id=%s)", e.status, e.message, getattr(g, "request_id", None))
        return jsonify({"error": e.message}), e.status

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):  # type: ignore[no-redef]
        db_session().rollback()
        app.logger.warning("Integrity error (request_id=%s): %s", getattr(g, "request_id", None), e.orig)
        return jsonify({"error": "A record with these values already exists"}), 409

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        if _is_api_request():
            messages = {404: "Not found", 405: "Method not allowed", 413: "Upload too large"}
            return jsonify({"error": messages.get(e.code or 0, e.description)}), e.code
        if e.code == 404:
            return render_template("errors/404.html"), 404
        return e

    @app.errorhandler(Exception)
    def _err_500(e: Exception):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        try:
            db_session().rollback()
        except Exception:
            app.logger.exception("Rollback after unhandled error failed (request_id=%s)", rid)
        if _is_api_request():
            return jsonify({"error": "Internal server error"}), 500
        return render_template("errors/500.html"), 500

    @app.after_request
    def _log_forbidden(resp):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if resp.status_code == 403 and missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return resp

    # Startup logging
    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
