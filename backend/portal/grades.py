"""Grade records: every write recomputes the derived fields first."""

from __future__ import annotations

import logging
from typing import Any, Dict

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from .db import parse_object_id, utcnow
from .errors import ConflictError, NotFoundError
from .grading import INCOMPLETE_GRADE, apply_grade

logger = logging.getLogger(__name__)

MARK_FIELDS = ("marks_earned", "marks_possible")


def record_grade(collection: Collection, grade: Dict[str, Any], *, graded_by: ObjectId):
    """Insert a new grade record with its percentage and letter computed."""

    now = utcnow()
    document: Dict[str, Any] = {
        "student_id": grade["student_id"],
        "course_id": grade["course_id"],
        "assignment_id": grade.get("assignment_id"),
        "marks_earned": grade.get("marks_earned"),
        "marks_possible": grade.get("marks_possible"),
        "remarks": grade.get("remarks", ""),
        "graded_by": graded_by,
        "is_final": bool(grade.get("is_final", False)),
        "created_at": now,
        "updated_at": now,
    }
    derived, _ = apply_grade(document)
    document.update(derived)

    result = collection.insert_one(document)
    document["_id"] = result.inserted_id
    logger.info("Recorded grade %s for student %s", result.inserted_id, document["student_id"])
    return document


def _load_mutable_grade(collection: Collection, grade_oid: ObjectId) -> Dict[str, Any]:
    existing = collection.find_one({"_id": grade_oid})
    if existing is None:
        raise NotFoundError("Grade not found.")
    if existing.get("is_final"):
        raise ConflictError("Final grades cannot be changed.")
    return existing


def _write_unless_final(
    collection: Collection, grade_oid: ObjectId, update: Dict[str, Any]
) -> Dict[str, Any]:
    # The is_final guard is repeated in the filter so a grade finalised
    # between the read and the write is not modified.
    updated = collection.find_one_and_update(
        {"_id": grade_oid, "is_final": {"$ne": True}},
        update,
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise ConflictError("Final grades cannot be changed.")
    return updated


def update_grade(
    collection: Collection, grade_id: str, changes: Dict[str, Any], *, graded_by: ObjectId
) -> Dict[str, Any]:
    """Apply ``changes`` to a grade that is not final yet.

    Changing either mark recomputes percentage and letter grade from the
    merged record.
    """

    grade_oid = parse_object_id(grade_id, entity="Grade")
    existing = _load_mutable_grade(collection, grade_oid)

    to_set: Dict[str, Any] = {"updated_at": utcnow(), "graded_by": graded_by}
    to_unset: Dict[str, str] = {}

    for field, value in changes.items():
        to_set[field] = value

    if any(field in changes for field in MARK_FIELDS):
        merged = {**existing, **changes}
        derived, cleared = apply_grade(merged)
        to_set.update(derived)
        for field in cleared:
            to_unset[field] = ""

    update: Dict[str, Any] = {"$set": to_set}
    if to_unset:
        update["$unset"] = to_unset
    return _write_unless_final(collection, grade_oid, update)


def mark_incomplete(collection: Collection, grade_id: str, *, graded_by: ObjectId):
    """Administrator override that sets the letter grade to ``I``."""

    grade_oid = parse_object_id(grade_id, entity="Grade")
    _load_mutable_grade(collection, grade_oid)
    return _write_unless_final(
        collection,
        grade_oid,
        {
            "$set": {
                "letter_grade": INCOMPLETE_GRADE,
                "graded_by": graded_by,
                "updated_at": utcnow(),
            }
        },
    )


__all__ = ["record_grade", "update_grade", "mark_incomplete"]
