"""
Back-Office Approval Platform
Flask Application Factory.

Usage:
    from backoffice import create_app
    app = create_app()           # defaults to "development"
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

from backoffice.auth import init_auth
from backoffice.config import config
from backoffice.integrations.drive_gateway import build_drive_gateway
from backoffice.middleware.logging_config import configure_logging
from backoffice.middleware.rate_limiter import init_rate_limits
from backoffice.middleware.timing import init_request_timing
from backoffice.models import db

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
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),
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
    app.config.from_object(config[config_name])

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Drive gateway (tests swap in a fake via app.extensions) ──────────
    app.extensions["drive_gateway"] = build_drive_gateway(app.config)

    # ── Authentication middleware ────────────────────────────────────────
    init_auth(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from backoffice.models import activity as _activity_models            # noqa: F401
    from backoffice.models import administration as _administration_models  # noqa: F401
    from backoffice.models import approval as _approval_models            # noqa: F401
    from backoffice.models import asset_cleanup as _asset_cleanup_models  # noqa: F401
    from backoffice.models import finance as _finance_models              # noqa: F401
    from backoffice.models import program as _program_models              # noqa: F401
    from backoffice.models import registry as _registry_models            # noqa: F401
    from backoffice.models import scheduling as _scheduling_models        # noqa: F401
    from backoffice.models import structure as _structure_models          # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from backoffice.blueprints import register_error_handlers
    from backoffice.blueprints.activity_bp import activity_bp
    from backoffice.blueprints.approval_bp import approval_bp
    from backoffice.blueprints.entity_bp import entity_bp
    from backoffice.blueprints.scheduler_bp import scheduler_bp

    app.register_blueprint(approval_bp)
    app.register_blueprint(entity_bp)
    app.register_blueprint(activity_bp)
    app.register_blueprint(scheduler_bp)
    register_error_handlers(app)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Back-Office Approval Platform"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Scheduler initialization (imports jobs to register them) ─────────
    from backoffice.services.scheduler_service import SchedulerService
    SchedulerService.init_app(app)

    return app
