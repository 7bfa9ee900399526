"""Application configuration helpers."""

import os

from dotenv import load_dotenv

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DOTENV_PATH = os.path.join(_BASE_DIR, ".env")

if os.path.exists(_DOTENV_PATH):
    load_dotenv(_DOTENV_PATH)


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or invalid."""


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "portal_session")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
MAIL_USE_SSL = _env_flag("MAIL_USE_SSL", "false")
MAIL_USERNAME = os.getenv("MAIL_USERNAME")
MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", MAIL_USERNAME)
MAIL_SUPPRESS_SEND = _env_flag("MAIL_SUPPRESS_SEND", "false")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")

UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(_BASE_DIR, "uploads"))
# 10 MB per uploaded file
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

_MONGO_URI_CACHE = None
_DB_NAME_CACHE = None


def get_mongo_uri():
    """Return the MongoDB connection string from the environment."""

    global _MONGO_URI_CACHE

    if _MONGO_URI_CACHE:
        return _MONGO_URI_CACHE

    uri = os.getenv("MONGODB_URI")
    if not uri:
        raise ConfigError("MONGODB_URI is not set. Define it in backend/.env.")

    _MONGO_URI_CACHE = uri
    return uri


def get_db_name():
    """Return the database name derived from the MongoDB URI or env var."""

    global _DB_NAME_CACHE

    if _DB_NAME_CACHE:
        return _DB_NAME_CACHE

    db_name = os.getenv("MONGODB_DB")
    if db_name:
        _DB_NAME_CACHE = db_name
        return db_name

    uri = get_mongo_uri()
    main = uri.split("?", 1)[0].rstrip("/")
    after_scheme = main.split("://", 1)[1] if "://" in main else main

    candidate = after_scheme.split("/", 1)[1] if "/" in after_scheme else ""
    if not candidate:
        raise ConfigError(
            "Database name not found. Provide it via MONGODB_URI or MONGODB_DB."
        )

    _DB_NAME_CACHE = candidate
    return candidate


def mail_settings():
    """Return the Flask-Mail settings as an app.config mapping."""

    return {
        "MAIL_SERVER": MAIL_SERVER,
        "MAIL_PORT": MAIL_PORT,
        "MAIL_USE_TLS": MAIL_USE_TLS,
        "MAIL_USE_SSL": MAIL_USE_SSL,
        "MAIL_USERNAME": MAIL_USERNAME,
        "MAIL_PASSWORD": MAIL_PASSWORD,
        "MAIL_DEFAULT_SENDER": MAIL_DEFAULT_SENDER,
        "MAIL_SUPPRESS_SEND": MAIL_SUPPRESS_SEND,
    }


__all__ = [
    "ConfigError",
    "get_mongo_uri",
    "get_db_name",
    "mail_settings",
]
