"""Course enrollment."""

from __future__ import annotations

import logging

from bson import ObjectId
from pymongo.collection import Collection

from .db import parse_object_id
from .errors import NotFoundError

logger = logging.getLogger(__name__)


def enroll_student(collection: Collection, course_id: str, user_id: ObjectId) -> bool:
    """Add ``user_id`` to the course's enrolled students.

    Enrolling twice is a successful no-op. ``$addToSet`` performs the
    membership test and the insert in one atomic update, so concurrent
    requests cannot add the same student twice. Returns ``True`` when the
    student was newly enrolled.
    """

    course_oid = parse_object_id(course_id, entity="Course")
    result = collection.update_one(
        {"_id": course_oid, "is_active": True},
        {"$addToSet": {"enrolled_students": user_id}},
    )
    if result.matched_count == 0:
        raise NotFoundError("Course not found.")

    newly_enrolled = result.modified_count > 0
    if newly_enrolled:
        logger.info("Enrolled user %s in course %s", user_id, course_oid)
    return newly_enrolled


def is_enrolled(course: dict, user_id: ObjectId) -> bool:
    return user_id in (course.get("enrolled_students") or [])


__all__ = ["enroll_student", "is_enrolled"]
