"""Course catalogue, enrollment and course material endpoints."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from flask import Blueprint, jsonify, request
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from .. import config
from ..config import ConfigError
from ..db import (
    get_courses_collection,
    parse_object_id,
    serialize_course,
    serialize_material,
    utcnow,
)
from ..enrollment import enroll_student, is_enrolled
from ..errors import AuthorizationError, NotFoundError, PortalError
from ..uploads import discard_upload, save_upload
from ..validators import validate_course_payload
from .auth import Identity, require_login, require_staff
from .common import (
    clean_string,
    handle_config_error,
    handle_db_error,
    handle_portal_error,
    json_error,
    validation_failed,
)

courses_bp = Blueprint("courses", __name__, url_prefix="/api/courses")

logger = logging.getLogger(__name__)

_LIST_PROJECTION = {"materials": 0}


def _load_course(course_id: str, projection: Dict[str, Any] | None = None) -> Dict[str, Any]:
    course = get_courses_collection().find_one(
        {"_id": parse_object_id(course_id, entity="Course")}, projection=projection
    )
    if not course:
        raise NotFoundError("Course not found.")
    return course


def _ensure_can_manage(course: Dict[str, Any], identity: Identity) -> None:
    if identity.is_admin:
        return
    if identity.role == "teacher" and course.get("instructor_id") == identity.user_id:
        return
    raise AuthorizationError("Only the course instructor or an administrator can do this.")


@courses_bp.get("")
def list_courses():
    filters: Dict[str, Any] = {"is_active": True}

    department = clean_string(request.args.get("department"))
    semester_raw = clean_string(request.args.get("semester"))
    search = clean_string(request.args.get("search"))

    if department:
        filters["department"] = department
    if semester_raw:
        try:
            filters["semester"] = int(semester_raw)
        except ValueError:
            return json_error("semester must be an integer.", 400)
    if search:
        pattern = re.escape(search)
        filters["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"code": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]

    try:
        cursor = get_courses_collection().find(
            filters, projection=_LIST_PROJECTION, sort=[("code", ASCENDING)]
        )
        courses = [serialize_course(doc) for doc in cursor]
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list courses", exc)

    return jsonify({"courses": courses})


@courses_bp.get("/<course_id>")
def get_course(course_id: str):
    try:
        course = _load_course(course_id, _LIST_PROJECTION)
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to load course", exc)

    return jsonify({"course": serialize_course(course)})


@courses_bp.post("")
@require_staff
def create_course(identity: Identity):
    cleaned, errors = validate_course_payload(request.get_json(silent=True), require_all=True)
    if errors:
        return validation_failed(errors)

    now = utcnow()
    document: Dict[str, Any] = {
        **cleaned,
        "instructor_id": identity.user_id,
        "materials": [],
        "enrolled_students": [],
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    document.setdefault("schedule", {"days": [], "time": None, "room": None})

    try:
        result = get_courses_collection().insert_one(document)
    except ConfigError as exc:
        return handle_config_error(exc)
    except DuplicateKeyError:
        return json_error(
            "A course with this code already exists.",
            409,
            {"code": "Choose a different course code."},
        )
    except PyMongoError as exc:
        return handle_db_error("Failed to create course", exc)

    document["_id"] = result.inserted_id
    return jsonify({"ok": True, "course": serialize_course(document)}), 201


@courses_bp.put("/<course_id>")
@require_staff
def update_course(course_id: str, identity: Identity):
    cleaned, errors = validate_course_payload(request.get_json(silent=True), require_all=False)
    if errors:
        return validation_failed(errors)
    if not cleaned:
        return json_error("No changes supplied.", 400)

    try:
        course = _load_course(course_id, {"instructor_id": 1})
        _ensure_can_manage(course, identity)

        cleaned["updated_at"] = utcnow()
        collection = get_courses_collection()
        collection.update_one({"_id": course["_id"]}, {"$set": cleaned})
        updated = collection.find_one({"_id": course["_id"]}, projection=_LIST_PROJECTION)
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except DuplicateKeyError:
        return json_error(
            "A course with this code already exists.",
            409,
            {"code": "Choose a different course code."},
        )
    except PyMongoError as exc:
        return handle_db_error("Failed to update course", exc)

    if updated is None:
        return json_error("Course not found.", 404)
    return jsonify({"ok": True, "course": serialize_course(updated)})


@courses_bp.post("/<course_id>/enroll")
@require_login
def enroll(course_id: str, identity: Identity):
    try:
        newly_enrolled = enroll_student(get_courses_collection(), course_id, identity.user_id)
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to enroll in course", exc)

    message = "Enrolled successfully." if newly_enrolled else "Already enrolled in this course."
    return jsonify(
        {
            "ok": True,
            "enrolled": True,
            "already_enrolled": not newly_enrolled,
            "message": message,
        }
    )


@courses_bp.get("/<course_id>/materials")
@require_login
def list_materials(course_id: str, identity: Identity):
    try:
        course = _load_course(
            course_id, {"materials": 1, "instructor_id": 1, "enrolled_students": 1}
        )
        allowed = (
            identity.is_admin
            or course.get("instructor_id") == identity.user_id
            or is_enrolled(course, identity.user_id)
        )
        if not allowed:
            raise AuthorizationError("Not authorized to access course materials.")
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to load course materials", exc)

    materials = [
        serialize_material(item) for item in course.get("materials") or [] if isinstance(item, dict)
    ]
    return jsonify({"materials": materials})


@courses_bp.post("/<course_id>/materials")
@require_staff
def upload_material(course_id: str, identity: Identity):
    title = clean_string(request.form.get("title"))
    if not title:
        return validation_failed({"title": "Title is required."})

    stored_path = None
    try:
        course = _load_course(course_id, {"instructor_id": 1})
        _ensure_can_manage(course, identity)

        file = request.files.get("material")
        stored_path = save_upload(
            file,
            "material",
            upload_root=config.UPLOAD_FOLDER,
            max_bytes=config.MAX_UPLOAD_BYTES,
        )
        material = {
            "title": title,
            "type": file.mimetype,
            "url": f"/uploads/{stored_path}",
            "upload_date": utcnow(),
        }
        get_courses_collection().update_one(
            {"_id": course["_id"]},
            {"$push": {"materials": material}, "$set": {"updated_at": utcnow()}},
        )
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        if stored_path:
            discard_upload(config.UPLOAD_FOLDER, stored_path)
        return handle_db_error("Failed to store course material", exc)

    logger.info("Added material '%s' to course %s", title, course["_id"])
    return jsonify({"ok": True, "material": serialize_material(material)}), 201


__all__ = ["courses_bp"]
