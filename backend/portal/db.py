"""MongoDB helpers for the application."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.collection import Collection

from .config import get_db_name, get_mongo_uri
from .errors import NotFoundError

_MONGO_CLIENT = None
_MONGO_DB = None

_indexes_created: set[str] = set()


def _get_client():
    """Create (or reuse) a MongoDB client using the configured URI."""

    global _MONGO_CLIENT

    if _MONGO_CLIENT is None:
        _MONGO_CLIENT = MongoClient(get_mongo_uri(), serverSelectionTimeoutMS=5000)
    return _MONGO_CLIENT


def get_db():
    """Return the application's MongoDB database instance."""

    global _MONGO_DB

    if _MONGO_DB is None:
        _MONGO_DB = _get_client()[get_db_name()]
    return _MONGO_DB


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: Any, *, entity: str = "Document") -> ObjectId:
    """Turn a path or payload identifier into an ObjectId.

    Malformed identifiers cannot match anything, so they are reported the same
    way as missing documents.
    """

    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value).strip())
    except (InvalidId, TypeError):
        raise NotFoundError(f"{entity} not found.") from None


def _isoformat(value: Any) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return None


def _str_id(value: Any) -> str | None:
    return str(value) if value is not None else None


def _collection_with_indexes(name: str, indexes: list[IndexModel]) -> Collection:
    collection = get_db()[name]
    if name not in _indexes_created:
        collection.create_indexes(indexes)
        _indexes_created.add(name)
    return collection


def get_users_collection() -> Collection:
    """Return the users collection with unique login indexes ensured."""

    return _collection_with_indexes(
        "users",
        [
            IndexModel([("email", ASCENDING)], name="unique_email", unique=True),
            IndexModel([("username", ASCENDING)], name="unique_username", unique=True),
            IndexModel(
                [("role", ASCENDING), ("created_at", DESCENDING)],
                name="role_created",
                background=True,
            ),
        ],
    )


def get_courses_collection() -> Collection:
    """Return the courses collection and ensure supporting indexes."""

    return _collection_with_indexes(
        "courses",
        [
            IndexModel([("code", ASCENDING)], name="unique_code", unique=True),
            IndexModel(
                [("department", ASCENDING), ("semester", ASCENDING)],
                name="department_semester",
                background=True,
            ),
            IndexModel(
                [("enrolled_students", ASCENDING)],
                name="enrolled_students_idx",
                background=True,
            ),
        ],
    )


def get_grades_collection() -> Collection:
    """Return the grades collection with lookup indexes ensured."""

    return _collection_with_indexes(
        "grades",
        [
            IndexModel(
                [("student_id", ASCENDING), ("course_id", ASCENDING)],
                name="student_course",
                background=True,
            ),
            IndexModel(
                [("student_id", ASCENDING), ("created_at", DESCENDING)],
                name="student_recent",
                background=True,
            ),
            IndexModel(
                [("course_id", ASCENDING), ("assignment_id", ASCENDING)],
                name="course_assignment",
                background=True,
            ),
        ],
    )


def get_contacts_collection() -> Collection:
    """Return the contact messages collection."""

    return _collection_with_indexes(
        "contacts",
        [
            IndexModel(
                [("status", ASCENDING), ("created_at", DESCENDING)],
                name="status_created",
                background=True,
            ),
        ],
    )


def get_assignments_collection() -> Collection:
    return _collection_with_indexes(
        "assignments",
        [
            IndexModel(
                [("course_id", ASCENDING), ("due_date", DESCENDING)],
                name="course_due",
                background=True,
            ),
            IndexModel(
                [("submissions.student_id", ASCENDING)],
                name="submission_student",
                background=True,
            ),
        ],
    )


def serialize_user(document: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a user document into a JSON-serialisable dict without secrets."""

    profile = document.get("profile")
    if not isinstance(profile, dict):
        profile = {}

    return {
        "_id": str(document.get("_id", "")),
        "username": document.get("username"),
        "email": document.get("email"),
        "role": document.get("role"),
        "student_id": document.get("student_id"),
        "profile": {
            "full_name": profile.get("full_name"),
            "phone": profile.get("phone"),
            "address": profile.get("address"),
            "bio": profile.get("bio"),
            "avatar": profile.get("avatar"),
            "date_of_birth": profile.get("date_of_birth"),
        },
        "is_active": bool(document.get("is_active", True)),
        "created_at": _isoformat(document.get("created_at")),
    }


def serialize_course(document: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a raw Mongo course document to JSON-friendly dict."""

    schedule = document.get("schedule")
    if not isinstance(schedule, dict):
        schedule = {}

    enrolled = document.get("enrolled_students", [])
    if not isinstance(enrolled, list):
        enrolled = []

    return {
        "_id": str(document.get("_id", "")),
        "code": document.get("code"),
        "title": document.get("title"),
        "description": document.get("description"),
        "instructor_id": _str_id(document.get("instructor_id")),
        "department": document.get("department"),
        "semester": document.get("semester"),
        "credits": document.get("credits"),
        "schedule": {
            "days": schedule.get("days") or [],
            "time": schedule.get("time"),
            "room": schedule.get("room"),
        },
        "enrolled_count": len(enrolled),
        "is_active": bool(document.get("is_active", True)),
    }


def serialize_material(document: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": document.get("title"),
        "type": document.get("type"),
        "url": document.get("url"),
        "upload_date": _isoformat(document.get("upload_date")),
    }


def serialize_grade(document: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a grade document for JSON responses."""

    def _number(value):
        if value is None:
            return None
        try:
            return round(float(value), 2)
        except (TypeError, ValueError):
            return None

    return {
        "_id": str(document.get("_id", "")),
        "student_id": _str_id(document.get("student_id")),
        "course_id": _str_id(document.get("course_id")),
        "assignment_id": _str_id(document.get("assignment_id")),
        "marks_earned": _number(document.get("marks_earned")),
        "marks_possible": _number(document.get("marks_possible")),
        "percentage": _number(document.get("percentage")),
        "letter_grade": document.get("letter_grade"),
        "remarks": document.get("remarks", ""),
        "graded_by": _str_id(document.get("graded_by")),
        "is_final": bool(document.get("is_final", False)),
        "created_at": _isoformat(document.get("created_at")),
    }


def serialize_contact(document: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(document.get("_id", "")),
        "name": document.get("name"),
        "email": document.get("email"),
        "phone": document.get("phone"),
        "message": document.get("message"),
        "status": document.get("status"),
        "replied_at": _isoformat(document.get("replied_at")),
        "reply_message": document.get("reply_message"),
        "created_at": _isoformat(document.get("created_at")),
    }


def serialize_assignment(document: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(document.get("_id", "")),
        "title": document.get("title"),
        "course_id": _str_id(document.get("course_id")),
        "due_date": _isoformat(document.get("due_date")),
    }


__all__ = [
    "get_db",
    "utcnow",
    "parse_object_id",
    "get_users_collection",
    "get_courses_collection",
    "get_grades_collection",
    "get_contacts_collection",
    "get_assignments_collection",
    "serialize_user",
    "serialize_course",
    "serialize_material",
    "serialize_grade",
    "serialize_contact",
    "serialize_assignment",
]
