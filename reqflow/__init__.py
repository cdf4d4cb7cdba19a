"""
Request Workflow Service
Flask Application Factory.

Usage:
    from reqflow import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from reqflow.auth import init_auth
from reqflow.config import config
from reqflow.core.exceptions import DomainError
from reqflow.middleware.diagnostics import run_startup_diagnostics
from reqflow.middleware.jwt_auth import init_jwt_middleware
from reqflow.middleware.logging_config import configure_logging
from reqflow.middleware.rate_limiter import init_rate_limits
from reqflow.middleware.timing import init_request_timing
from reqflow.models import db
from reqflow.services.attachment_storage import LocalAttachmentStorage
from reqflow.utils.errors import E, api_error, domain_error_response

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per blueprint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiated so ProductionConfig can refuse a missing DATABASE_URL / SECRET_KEY
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    app.config.setdefault("RATELIMIT_ENABLED", True)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    app.extensions["attachment_storage"] = LocalAttachmentStorage(
        app.config["UPLOAD_FOLDER"], app.config["MAX_ATTACHMENT_BYTES"],
    )

    # ── Request timing, then identity (JWT before actor resolution) ──────
    init_request_timing(app)
    init_jwt_middleware(app)
    init_auth(app)

    # ── Request guards (body size + Content-Type) ────────────────────────
    # Attachments may be up to MAX_ATTACHMENT_BYTES; leave room for multipart framing
    app.config.setdefault("MAX_CONTENT_LENGTH", app.config["MAX_ATTACHMENT_BYTES"] + 64 * 1024)

    @app.before_request
    def _guard_request():
        from flask import abort
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.content_length and "json" not in ct and "multipart/form-data" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from reqflow.models import organization as _organization_models  # noqa: F401
    from reqflow.models import workflow as _workflow_models          # noqa: F401
    from reqflow.models import request as _request_models            # noqa: F401
    from reqflow.models import evaluation as _evaluation_models      # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from reqflow.blueprints.request_bp import request_bp
    from reqflow.blueprints.workflow_bp import workflow_bp
    from reqflow.blueprints.department_bp import department_bp
    from reqflow.blueprints.admin_bp import admin_bp

    app.register_blueprint(request_bp)
    app.register_blueprint(workflow_bp)
    app.register_blueprint(department_bp)
    app.register_blueprint(admin_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed Department A, demo departments, paths, users and a 40/35/25 scorecard."""
        from reqflow.services.demo_seed import seed_demo_org
        ids = seed_demo_org()
        logger.info("Seeded demo organisation: %s", ids)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Request Workflow Service"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(DomainError)
    def handle_domain_error(e):
        if e.http_status >= 500:
            logger.error("%s: %s", type(e).__name__, e)
        return domain_error_response(e)

    @app.errorhandler(400)
    def bad_request(e):
        return api_error(E.VALIDATION_INVALID, e.description or "Bad request")

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": E.NOT_FOUND, "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Startup diagnostics ──────────────────────────────────────────────
    run_startup_diagnostics(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
