"""
Back-Office Approval Platform
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'backoffice_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _env_bool(name, default):
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # API-key auth (see backoffice.auth)
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")

    # Uploaded files (multipart)
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(10 * 1024 * 1024)))

    # Google Drive
    DRIVE_ACCESS_TOKEN = os.getenv("DRIVE_ACCESS_TOKEN")
    DRIVE_TOKEN_PROVIDER = None  # optional callable returning a bearer token
    DRIVE_API_BASE = os.getenv("DRIVE_API_BASE", "https://www.googleapis.com/drive/v3")
    DRIVE_UPLOAD_BASE = os.getenv("DRIVE_UPLOAD_BASE", "https://www.googleapis.com/upload/drive/v3")
    DRIVE_MAX_RETRIES = int(os.getenv("DRIVE_MAX_RETRIES", "2"))
    DRIVE_FOLDER_FINANCE = os.getenv("DRIVE_FOLDER_FINANCE")
    DRIVE_FOLDER_EVENT = os.getenv("DRIVE_FOLDER_EVENT")
    DRIVE_FOLDER_STRUCTURE = os.getenv("DRIVE_FOLDER_STRUCTURE")
    DRIVE_FOLDER_ORGANIZATIONAL_STRUCTURE = os.getenv("DRIVE_FOLDER_ORGANIZATIONAL_STRUCTURE")

    # Asset lifecycle
    ASSET_DELETE_DELAY_SECONDS = float(os.getenv("ASSET_DELETE_DELAY_SECONDS", "2"))
    ASSET_CLEANUP_MAX_ATTEMPTS = int(os.getenv("ASSET_CLEANUP_MAX_ATTEMPTS", "3"))

    # Approval workflow
    APPROVAL_UNIQUENESS = os.getenv("APPROVAL_UNIQUENESS", "submitter")  # submitter | entity
    SYNC_REVISION_DECISIONS = _env_bool("SYNC_REVISION_DECISIONS", True)
    ENTITY_DELETE_CASCADE_APPROVALS = _env_bool("ENTITY_DELETE_CASCADE_APPROVALS", False)
    ENTITY_DELETE_CASCADE_ASSETS = _env_bool("ENTITY_DELETE_CASCADE_ASSETS", False)

    # Scheduler
    SCHEDULER_AUTOSTART = _env_bool("SCHEDULER_AUTOSTART", False)
    SCHEDULER_INTERVAL_SECONDS = float(os.getenv("SCHEDULER_INTERVAL_SECONDS", "30"))

    # Rate limiting
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    # Auth disabled in test environment
    API_AUTH_ENABLED = "false"
    RATELIMIT_ENABLED = False
    SCHEDULER_AUTOSTART = False
    DRIVE_ACCESS_TOKEN = "test-token"
    DRIVE_MAX_RETRIES = 0
    ASSET_DELETE_DELAY_SECONDS = 2
    APPROVAL_UNIQUENESS = "submitter"
    SYNC_REVISION_DECISIONS = True
    ENTITY_DELETE_CASCADE_APPROVALS = False
    ENTITY_DELETE_CASCADE_ASSETS = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {
            "options": "-c statement_timeout=30000",  # 30s query timeout
        },
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
