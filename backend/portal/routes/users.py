"""Profile and user administration endpoints."""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Any, Dict

from flask import Blueprint, jsonify, request
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from werkzeug.security import check_password_hash, generate_password_hash

from .. import config
from ..config import ConfigError
from ..db import (
    get_assignments_collection,
    get_courses_collection,
    get_grades_collection,
    get_users_collection,
    parse_object_id,
    serialize_assignment,
    serialize_course,
    serialize_grade,
    serialize_user,
    utcnow,
)
from ..errors import NotFoundError, PortalError, ValidationError
from ..uploads import discard_upload, save_upload
from ..utils.paging import PagingParamError, pagination_payload, parse_paging_params
from ..validators import (
    ROLES,
    validate_admin_user_update,
    validate_password_change,
    validate_profile_update,
)
from .auth import Identity, require_admin, require_login
from .common import (
    clean_string,
    handle_config_error,
    handle_db_error,
    handle_portal_error,
    json_error,
    validation_failed,
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")

logger = logging.getLogger(__name__)

_NO_SECRETS = {"password_hash": 0}


def _duplicate_user_error():
    return json_error(
        "A user with this username already exists.",
        409,
        {"username": "Username already in use."},
    )


@users_bp.get("/profile")
@require_login
def get_profile(identity: Identity):
    try:
        user = get_users_collection().find_one({"_id": identity.user_id}, projection=_NO_SECRETS)
        if not user:
            return json_error("User not found.", 404)

        courses = get_courses_collection().find(
            {"enrolled_students": identity.user_id, "is_active": True},
            projection={"materials": 0},
        )
        assignments = (
            get_assignments_collection()
            .find(
                {
                    "submissions.student_id": identity.user_id,
                    "due_date": {"$gte": utcnow()},
                    "is_active": True,
                },
                projection={"title": 1, "due_date": 1, "course_id": 1},
            )
            .limit(5)
        )
        grades = (
            get_grades_collection()
            .find({"student_id": identity.user_id})
            .sort([("created_at", DESCENDING)])
            .limit(5)
        )

        payload = serialize_user(user)
        payload["courses"] = [serialize_course(doc) for doc in courses]
        payload["upcoming_assignments"] = [serialize_assignment(doc) for doc in assignments]
        payload["recent_grades"] = [serialize_grade(doc) for doc in grades]
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to load profile", exc)

    return jsonify({"user": payload})


@users_bp.put("/profile")
@require_login
def update_profile(identity: Identity):
    cleaned, errors = validate_profile_update(request.get_json(silent=True))
    if errors:
        return validation_failed(errors)
    if not cleaned:
        return json_error("No changes supplied.", 400)

    cleaned["updated_at"] = utcnow()
    try:
        updated = get_users_collection().find_one_and_update(
            {"_id": identity.user_id},
            {"$set": cleaned},
            projection=_NO_SECRETS,
            return_document=ReturnDocument.AFTER,
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except DuplicateKeyError:
        return _duplicate_user_error()
    except PyMongoError as exc:
        return handle_db_error("Failed to update profile", exc)

    if updated is None:
        return json_error("User not found.", 404)
    return jsonify({"ok": True, "user": serialize_user(updated)})


@users_bp.put("/password")
@require_login
def change_password(identity: Identity):
    cleaned, errors = validate_password_change(request.get_json(silent=True))
    if errors:
        return validation_failed(errors)

    try:
        collection = get_users_collection()
        user = collection.find_one({"_id": identity.user_id}, projection={"password_hash": 1})
        if not user:
            return json_error("User not found.", 404)

        if not check_password_hash(user.get("password_hash", ""), cleaned["current_password"]):
            return validation_failed(
                {
                    "_global": "Current password is incorrect.",
                    "current_password": "Current password is incorrect.",
                }
            )

        collection.update_one(
            {"_id": identity.user_id},
            {
                "$set": {
                    "password_hash": generate_password_hash(cleaned["new_password"]),
                    "updated_at": utcnow(),
                }
            },
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to change password", exc)

    return jsonify({"ok": True, "message": "Password updated successfully."})


@users_bp.post("/upload-avatar")
@require_login
def upload_avatar(identity: Identity):
    stored_path = None
    try:
        stored_path = save_upload(
            request.files.get("avatar"),
            "avatar",
            upload_root=config.UPLOAD_FOLDER,
            max_bytes=config.MAX_UPLOAD_BYTES,
        )
        file_url = f"/uploads/{stored_path}"
        get_users_collection().update_one(
            {"_id": identity.user_id},
            {"$set": {"profile.avatar": file_url, "updated_at": utcnow()}},
        )
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        if stored_path:
            discard_upload(config.UPLOAD_FOLDER, stored_path)
        return handle_config_error(exc)
    except PyMongoError as exc:
        if stored_path:
            discard_upload(config.UPLOAD_FOLDER, stored_path)
        return handle_db_error("Failed to store avatar", exc)

    return jsonify({"ok": True, "file_url": file_url})


@users_bp.get("")
@require_admin
def list_users(identity: Identity):
    try:
        paging = parse_paging_params(request.args)
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    filters: Dict[str, Any] = {}
    role = clean_string(request.args.get("role")).lower()
    search = clean_string(request.args.get("search"))

    if role:
        if role not in ROLES:
            return json_error("role must be one of: " + ", ".join(ROLES) + ".", 400)
        filters["role"] = role
    if search:
        pattern = re.escape(search)
        filters["$or"] = [
            {"username": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
            {"profile.full_name": {"$regex": pattern, "$options": "i"}},
        ]

    try:
        collection = get_users_collection()
        total = collection.count_documents(filters)
        cursor = (
            collection.find(filters, projection=_NO_SECRETS)
            .sort([("created_at", DESCENDING)])
            .skip(paging.skip)
            .limit(paging.limit)
        )
        users = [serialize_user(doc) for doc in cursor]
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list users", exc)

    return jsonify({"users": users, "pagination": pagination_payload(paging, total)})


@users_bp.put("/<user_id>")
@require_admin
def update_user(user_id: str, identity: Identity):
    cleaned, errors = validate_admin_user_update(request.get_json(silent=True))
    if errors:
        return validation_failed(errors)
    if not cleaned:
        return json_error("No changes supplied.", 400)

    cleaned["updated_at"] = utcnow()
    try:
        updated = get_users_collection().find_one_and_update(
            {"_id": parse_object_id(user_id, entity="User")},
            {"$set": cleaned},
            projection=_NO_SECRETS,
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFoundError("User not found.")
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except DuplicateKeyError:
        return _duplicate_user_error()
    except PyMongoError as exc:
        return handle_db_error("Failed to update user", exc)

    return jsonify({"ok": True, "user": serialize_user(updated)})


@users_bp.delete("/<user_id>")
@require_admin
def deactivate_user(user_id: str, identity: Identity):
    try:
        user_oid = parse_object_id(user_id, entity="User")
        if user_oid == identity.user_id:
            raise ValidationError("Cannot deactivate your own account.")

        result = get_users_collection().update_one(
            {"_id": user_oid},
            {"$set": {"is_active": False, "updated_at": utcnow()}},
        )
        if result.matched_count == 0:
            raise NotFoundError("User not found.")
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to deactivate user", exc)

    logger.info("User %s deactivated by %s", user_oid, identity.user_id)
    return jsonify({"ok": True, "message": "User deactivated successfully."})


@users_bp.get("/stats")
@require_admin
def user_stats(identity: Identity):
    try:
        collection = get_users_collection()
        stats = {
            "total_users": collection.count_documents({}),
            "active_users": collection.count_documents({"is_active": True}),
            "students": collection.count_documents({"role": "student"}),
            "teachers": collection.count_documents({"role": "teacher"}),
            "recent_signups": collection.count_documents(
                {"created_at": {"$gte": utcnow() - timedelta(days=7)}}
            ),
        }
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to load user stats", exc)

    return jsonify({"stats": stats})


__all__ = ["users_bp"]
