"""
Pathway Studio
Configuration classes for the Flask app factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name]())

Environment:
    DATABASE_URL        PostgreSQL URL (dev falls back to instance/ SQLite)
    TEST_DATABASE_URL   override for the test database
    SECRET_KEY          Flask secret; required in production
    JWT_SECRET_KEY      signing key for access tokens (defaults to SECRET_KEY)
    JWT_ACCESS_EXPIRES  access-token lifetime in seconds (default 900)
    JWT_LEEWAY          clock skew tolerated when verifying tokens (default 0)
    ADMIN_ROLE          role that grants admin rights (default "admin")
    CORS_ORIGINS        comma-separated origins, "*" for any
    LOG_FORMAT          "json" or "readable"; LOG_LEVEL is read at logging setup
    REDIS_URL           rate-limit storage (default in-memory)
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'pathway_studio_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"


def _database_url(default=None):
    # Heroku-style URLs use postgres:// but SQLAlchemy 2 requires postgresql://
    raw = os.getenv("DATABASE_URL", "")
    if not raw:
        return default
    return raw.replace("postgres://", "postgresql://", 1)


class Config:
    """Settings shared by every environment."""

    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "900"))
    JWT_LEEWAY = int(os.getenv("JWT_LEEWAY", "0"))
    ADMIN_ROLE = os.getenv("ADMIN_ROLE", "admin")

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    LOG_FORMAT = os.getenv("LOG_FORMAT")

    # Request bodies are JSON documents; phase configs are small.
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_SQLITE_DEV)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """Production: PostgreSQL only, explicit secrets and CORS origins."""

    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

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


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
