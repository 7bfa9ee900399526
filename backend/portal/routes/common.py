"""Response helpers shared by the route blueprints."""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import jsonify
from pymongo.errors import PyMongoError

from ..config import ConfigError
from ..errors import PortalError

logger = logging.getLogger(__name__)


def json_error(message: str, status: int, details: Dict[str, str] | None = None):
    payload: Dict[str, Any] = {"error": message}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def clean_string(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def validation_failed(errors: Dict[str, str]):
    details = {k: v for k, v in errors.items() if k != "_global"}
    message = errors.get("_global", "Validation failed.")
    return json_error(message, 400, details if details else None)


def handle_portal_error(exc: PortalError):
    return json_error(exc.message, exc.status, exc.details or None)


def handle_config_error(exc: ConfigError):
    logger.exception("Missing configuration")
    return json_error(str(exc), 500)


def handle_db_error(action: str, exc: PyMongoError):
    logger.exception("%s due to MongoDB error", action)
    return json_error("Database unavailable. Please try again later.", 503)


__all__ = [
    "json_error",
    "clean_string",
    "validation_failed",
    "handle_portal_error",
    "handle_config_error",
    "handle_db_error",
]
