"""Allow-listed payload validation."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from bson import ObjectId

from portal.validators import (
    validate_admin_user_update,
    validate_contact,
    validate_contact_status,
    validate_course_payload,
    validate_grade_create,
    validate_grade_update,
    validate_password_change,
    validate_profile_update,
    validate_registration,
)


class ContactValidationTestCase(unittest.TestCase):
    def test_valid_payload_is_cleaned(self) -> None:
        cleaned, errors = validate_contact(
            {
                "name": "  Ada ",
                "email": "ADA@Example.com",
                "phone": " ",
                "message": "Please reset my password.",
            }
        )
        self.assertEqual({}, errors)
        self.assertEqual(
            {"name": "Ada", "email": "ada@example.com", "message": "Please reset my password."},
            cleaned,
        )

    def test_rules(self) -> None:
        _, errors = validate_contact({"name": "A", "email": "nope", "message": "short"})
        self.assertEqual({"name", "email", "message"}, set(errors))

    def test_email_with_whitespace_or_control_characters(self) -> None:
        for email in (
            "ada\nBcc: x@example.com",
            "ada lovelace@example.com",
            "ada@exa\x00mple.com",
        ):
            with self.subTest(email=email):
                _, errors = validate_contact(
                    {"name": "Ada", "email": email, "message": "Long enough message."}
                )
                self.assertIn("email", errors)

    def test_status_field_cannot_be_submitted(self) -> None:
        _, errors = validate_contact(
            {
                "name": "Ada",
                "email": "ada@example.com",
                "message": "Long enough message.",
                "status": "replied",
            }
        )
        self.assertEqual({"status": "Unknown field."}, errors)

    def test_non_object_body(self) -> None:
        _, errors = validate_contact(["not", "an", "object"])
        self.assertIn("_global", errors)

    def test_contact_status(self) -> None:
        cleaned, errors = validate_contact_status({"status": "ARCHIVED"})
        self.assertEqual({}, errors)
        self.assertEqual({"status": "archived"}, cleaned)

        _, errors = validate_contact_status({"status": "deleted"})
        self.assertIn("status", errors)


class UserValidationTestCase(unittest.TestCase):
    def test_registration(self) -> None:
        cleaned, errors = validate_registration(
            {"username": "ada", "email": "Ada@Example.com", "password": "secret1"}
        )
        self.assertEqual({}, errors)
        self.assertEqual("ada@example.com", cleaned["email"])

        _, errors = validate_registration(
            {"username": "ad", "email": "x", "password": "123", "role": "admin"}
        )
        self.assertEqual({"username", "email", "password", "role"}, set(errors))

    def test_profile_update_rejects_restricted_fields(self) -> None:
        _, errors = validate_profile_update(
            {"email": "new@example.com", "role": "admin", "password": "x", "is_active": True}
        )
        self.assertEqual({"email", "role", "password", "is_active"}, set(errors))

    def test_profile_update_uses_dotted_fields(self) -> None:
        cleaned, errors = validate_profile_update(
            {"username": "ada_l", "profile": {"full_name": "Ada Lovelace", "bio": ""}}
        )
        self.assertEqual({}, errors)
        self.assertEqual(
            {"username": "ada_l", "profile.full_name": "Ada Lovelace", "profile.bio": None},
            cleaned,
        )

    def test_profile_update_rejects_unknown_profile_keys(self) -> None:
        _, errors = validate_profile_update({"profile": {"avatar": "/x.png", "shoe_size": 9}})
        self.assertEqual({"profile.avatar", "profile.shoe_size"}, set(errors))

    def test_admin_update(self) -> None:
        cleaned, errors = validate_admin_user_update({"role": "Teacher", "is_active": False})
        self.assertEqual({}, errors)
        self.assertEqual({"role": "teacher", "is_active": False}, cleaned)

        _, errors = validate_admin_user_update(
            {"role": "owner", "is_active": "no", "email": "x@y.z", "password": "pw"}
        )
        self.assertEqual({"role", "is_active", "email", "password"}, set(errors))

    def test_password_change(self) -> None:
        _, errors = validate_password_change({"current_password": "", "new_password": "123"})
        self.assertEqual({"current_password", "new_password"}, set(errors))


class CourseValidationTestCase(unittest.TestCase):
    def _course(self, **overrides):
        payload = {
            "code": "cs101",
            "title": "Intro to CS",
            "description": "Basics",
            "department": "CS",
            "semester": 1,
            "credits": 3,
        }
        payload.update(overrides)
        return payload

    def test_create(self) -> None:
        cleaned, errors = validate_course_payload(
            self._course(schedule={"days": "Mon, Wed", "time": "09:00", "room": "B2"}),
            require_all=True,
        )
        self.assertEqual({}, errors)
        self.assertEqual("CS101", cleaned["code"])
        self.assertEqual(["Mon", "Wed"], cleaned["schedule"]["days"])

    def test_ranges(self) -> None:
        _, errors = validate_course_payload(self._course(semester=9, credits=0), require_all=True)
        self.assertEqual({"semester", "credits"}, set(errors))

    def test_enrolled_students_cannot_be_written(self) -> None:
        _, errors = validate_course_payload(
            {"enrolled_students": [], "instructor_id": "x"}, require_all=False
        )
        self.assertEqual({"enrolled_students", "instructor_id"}, set(errors))

    def test_partial_update(self) -> None:
        cleaned, errors = validate_course_payload({"title": "New"}, require_all=False)
        self.assertEqual({}, errors)
        self.assertEqual({"title": "New"}, cleaned)


class GradeValidationTestCase(unittest.TestCase):
    def test_create(self) -> None:
        student, course = ObjectId(), ObjectId()
        cleaned, errors = validate_grade_create(
            {
                "student_id": str(student),
                "course_id": str(course),
                "marks_earned": "42",
                "marks_possible": 50,
            }
        )
        self.assertEqual({}, errors)
        self.assertEqual(student, cleaned["student_id"])
        self.assertEqual(42.0, cleaned["marks_earned"])
        self.assertIsNone(cleaned["assignment_id"])
        self.assertFalse(cleaned["is_final"])

    def test_create_rejects_explicit_letter_and_bad_ids(self) -> None:
        _, errors = validate_grade_create(
            {"student_id": "nope", "course_id": "", "letter_grade": "A", "percentage": 99}
        )
        self.assertEqual({"student_id", "course_id", "letter_grade", "percentage"}, set(errors))

    def test_update(self) -> None:
        cleaned, errors = validate_grade_update({"marks_earned": None, "remarks": " ok "})
        self.assertEqual({}, errors)
        self.assertEqual({"marks_earned": None, "remarks": "ok"}, cleaned)

        _, errors = validate_grade_update({"marks_possible": -5, "student_id": "x"})
        self.assertEqual({"marks_possible", "student_id"}, set(errors))


if __name__ == "__main__":
    unittest.main()
