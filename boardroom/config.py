"""
Boardroom Idea Review Service
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'boardroom_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Rate limiting (memory for dev, Redis URI in production)
    RATELIMIT_ENABLED = os.getenv("RATELIMIT_ENABLED", "true").lower() == "true"
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    BOARD_RUN_RATE_LIMIT = os.getenv("BOARD_RUN_RATE_LIMIT", "10/minute")

    # Uploads: the board accepts up to 10 MB per request
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(10 * 1024 * 1024)))

    # ── LLM provider ─────────────────────────────────────────────────────
    # "fixture" → deterministic fixtures + schema stubs (no network)
    # "openai"  → live OpenAI-compatible chat completions endpoint
    LLM_PROVIDER = os.getenv("LLM_PROVIDER", "fixture")
    LLM_FIXTURES_ROOT = os.getenv(
        "LLM_FIXTURES_ROOT",
        os.path.join(basedir, "boardroom", "fixtures", "agents"),
    )
    LLM_DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-5-mini")
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    OPENAI_TIMEOUT_SECONDS = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "45"))

    # Per-role model overrides (empty → LLM_DEFAULT_MODEL)
    BOARD_MODEL_CEO = os.getenv("BOARD_MODEL_CEO", "")
    BOARD_MODEL_CTO = os.getenv("BOARD_MODEL_CTO", "")
    BOARD_MODEL_CFO = os.getenv("BOARD_MODEL_CFO", "")
    BOARD_MODEL_CHAIR = os.getenv("BOARD_MODEL_CHAIR", "")

    # ── Board runs ───────────────────────────────────────────────────────
    BOARD_UPLOAD_ROOT = os.getenv("BOARD_UPLOAD_ROOT", os.path.join(basedir, "uploads", "board"))
    BOARD_RUN_LEASE_SECONDS = int(os.getenv("BOARD_RUN_LEASE_SECONDS", "600"))
    BOARD_MAINTENANCE_TTL_SECONDS = int(os.getenv("BOARD_MAINTENANCE_TTL_SECONDS", "3600"))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    LLM_PROVIDER = "fixture"
    OPENAI_API_KEY = ""


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
