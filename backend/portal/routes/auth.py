"""Session authentication endpoints and role guards."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, TypeVar, cast

from bson import ObjectId
from bson.errors import InvalidId
from flask import Blueprint, jsonify, request, session
from pymongo.errors import DuplicateKeyError, PyMongoError
from werkzeug.security import check_password_hash, generate_password_hash

from ..config import ConfigError
from ..db import get_users_collection, serialize_user, utcnow
from ..errors import AuthenticationError
from ..validators import validate_login, validate_registration
from .common import (
    handle_config_error,
    handle_db_error,
    handle_portal_error,
    json_error,
    validation_failed,
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])


@dataclass(frozen=True)
class Identity:
    """The signed-in user, handed explicitly to the views that need it."""

    user_id: ObjectId
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_staff(self) -> bool:
        return self.role in ("admin", "teacher")


def _session_identity() -> Identity | None:
    raw_id = session.get("user_id")
    role = session.get("role")
    if not raw_id or not role:
        return None
    try:
        return Identity(user_id=ObjectId(raw_id), role=role)
    except (InvalidId, TypeError):
        session.clear()
        return None


def current_identity() -> Identity | None:
    """Resolve the session against the stored account.

    Deactivated or deleted accounts lose their session. The role is read
    from the stored account, not from the cookie.
    """

    identity = _session_identity()
    if identity is None:
        return None

    user = get_users_collection().find_one(
        {"_id": identity.user_id}, projection={"role": 1, "is_active": 1}
    )
    if not user or not user.get("is_active", True):
        session.clear()
        return None

    role = user.get("role", "student")
    if role != identity.role:
        session["role"] = role
    return Identity(user_id=identity.user_id, role=role)


def require_roles(*roles: str) -> Callable[[_F], _F]:
    """Require a signed-in user, optionally with one of ``roles``.

    The resolved :class:`Identity` is passed to the view as ``identity``.
    """

    def decorator(func: _F) -> _F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            try:
                identity = current_identity()
            except ConfigError as exc:
                return handle_config_error(exc)
            except PyMongoError as exc:
                return handle_db_error("Failed to load session user", exc)
            if identity is None:
                return jsonify({"error": "unauthorized"}), 401
            if roles and identity.role not in roles:
                return jsonify({"error": "forbidden"}), 403
            return func(*args, identity=identity, **kwargs)

        return cast(_F, wrapper)

    return decorator


require_login = require_roles()
require_admin = require_roles("admin")
require_staff = require_roles("admin", "teacher")


def _start_session(user: dict) -> None:
    session.clear()
    session["user_id"] = str(user["_id"])
    session["role"] = user.get("role", "student")
    session.permanent = False


def build_user_document(
    *, username: str, email: str, password: str, role: str = "student", student_id: str | None = None
) -> dict:
    now = utcnow()
    document = {
        "username": username,
        "email": email.lower(),
        "password_hash": generate_password_hash(password),
        "role": role,
        "profile": {},
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    if student_id:
        document["student_id"] = student_id
    return document


@auth_bp.post("/register")
def register():
    cleaned, errors = validate_registration(request.get_json(silent=True))
    if errors:
        return validation_failed(errors)

    document = build_user_document(
        username=cleaned["username"],
        email=cleaned["email"],
        password=cleaned["password"],
        student_id=cleaned.get("student_id"),
    )

    try:
        result = get_users_collection().insert_one(document)
    except ConfigError as exc:
        return handle_config_error(exc)
    except DuplicateKeyError:
        return json_error(
            "A user with this email or username already exists.",
            409,
            {"email": "Email or username already in use."},
        )
    except PyMongoError as exc:
        return handle_db_error("Failed to register user", exc)

    document["_id"] = result.inserted_id
    _start_session(document)
    logger.info("Registered user %s", result.inserted_id)
    return jsonify({"ok": True, "user": serialize_user(document)}), 201


@auth_bp.post("/login")
def login():
    cleaned, errors = validate_login(request.get_json(silent=True))
    if errors:
        return validation_failed(errors)

    try:
        user = get_users_collection().find_one({"email": cleaned["email"]})
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to log in", exc)

    if (
        not user
        or not user.get("is_active", True)
        or not check_password_hash(user.get("password_hash", ""), cleaned["password"])
    ):
        session.clear()
        return handle_portal_error(AuthenticationError("invalid_credentials"))

    _start_session(user)
    return jsonify({"ok": True, "user": serialize_user(user)})


@auth_bp.post("/logout")
def logout():
    session.clear()
    return jsonify({"ok": True})


@auth_bp.get("/me")
def me():
    try:
        identity = current_identity()
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to load session user", exc)
    if identity is None:
        return jsonify({"authenticated": False})
    return jsonify(
        {
            "authenticated": True,
            "user_id": str(identity.user_id),
            "role": identity.role,
        }
    )


__all__ = [
    "auth_bp",
    "Identity",
    "current_identity",
    "require_roles",
    "require_login",
    "require_admin",
    "require_staff",
    "build_user_document",
]
