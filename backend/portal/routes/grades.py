"""Grade endpoints."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, jsonify, request
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from ..config import ConfigError
from ..db import (
    get_courses_collection,
    get_grades_collection,
    get_users_collection,
    parse_object_id,
    serialize_grade,
)
from ..errors import NotFoundError, PortalError
from ..grades import mark_incomplete, record_grade, update_grade
from ..utils.paging import PagingParamError, pagination_payload, parse_paging_params
from ..validators import validate_grade_create, validate_grade_update
from .auth import Identity, require_admin, require_login, require_staff
from .common import (
    clean_string,
    handle_config_error,
    handle_db_error,
    handle_portal_error,
    json_error,
    validation_failed,
)

grades_bp = Blueprint("grades", __name__, url_prefix="/api/grades")


def _ensure_references(grade: Dict[str, Any]) -> None:
    student = get_users_collection().find_one(
        {"_id": grade["student_id"], "role": "student"}, projection={"_id": 1}
    )
    if not student:
        raise NotFoundError("Student not found.", {"student_id": "Select an existing student."})

    course = get_courses_collection().find_one({"_id": grade["course_id"]}, projection={"_id": 1})
    if not course:
        raise NotFoundError("Course not found.", {"course_id": "Select an existing course."})


@grades_bp.post("")
@require_staff
def create_grade(identity: Identity):
    cleaned, errors = validate_grade_create(request.get_json(silent=True))
    if errors:
        return validation_failed(errors)

    try:
        _ensure_references(cleaned)
        document = record_grade(get_grades_collection(), cleaned, graded_by=identity.user_id)
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to record grade", exc)

    return jsonify({"ok": True, "grade": serialize_grade(document)}), 201


@grades_bp.put("/<grade_id>")
@require_staff
def edit_grade(grade_id: str, identity: Identity):
    cleaned, errors = validate_grade_update(request.get_json(silent=True))
    if errors:
        return validation_failed(errors)
    if not cleaned:
        return json_error("No changes supplied.", 400)

    try:
        updated = update_grade(
            get_grades_collection(), grade_id, cleaned, graded_by=identity.user_id
        )
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to update grade", exc)

    return jsonify({"ok": True, "grade": serialize_grade(updated)})


@grades_bp.post("/<grade_id>/incomplete")
@require_admin
def set_incomplete(grade_id: str, identity: Identity):
    try:
        updated = mark_incomplete(get_grades_collection(), grade_id, graded_by=identity.user_id)
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to mark grade incomplete", exc)

    return jsonify({"ok": True, "grade": serialize_grade(updated)})


@grades_bp.get("")
@require_login
def list_grades(identity: Identity):
    try:
        paging = parse_paging_params(request.args)
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    filters: Dict[str, Any] = {}
    try:
        if identity.is_staff:
            student_id = clean_string(request.args.get("student_id"))
            if student_id:
                filters["student_id"] = parse_object_id(student_id, entity="Student")
        else:
            filters["student_id"] = identity.user_id

        course_id = clean_string(request.args.get("course_id"))
        if course_id:
            filters["course_id"] = parse_object_id(course_id, entity="Course")
    except PortalError as exc:
        return handle_portal_error(exc)

    try:
        collection = get_grades_collection()
        total = collection.count_documents(filters)
        cursor = (
            collection.find(filters)
            .sort([("created_at", DESCENDING)])
            .skip(paging.skip)
            .limit(paging.limit)
        )
        grades = [serialize_grade(doc) for doc in cursor]
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list grades", exc)

    return jsonify({"grades": grades, "pagination": pagination_payload(paging, total)})


__all__ = ["grades_bp"]
