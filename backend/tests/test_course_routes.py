"""Course, enrollment and material endpoints."""

from __future__ import annotations

import io
import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError
from werkzeug.datastructures import FileStorage

from app import app

NEW_COURSE = {
    "code": "cs101",
    "title": "Intro to CS",
    "description": "Basics of programming",
    "department": "CS",
    "semester": 1,
    "credits": 3,
}


class CourseRoutesTestCase(unittest.TestCase):
    def setUp(self) -> None:
        app.config["TESTING"] = True
        self.client = app.test_client()

        self.collection = mock.MagicMock()
        patcher = mock.patch(
            "portal.routes.courses.get_courses_collection", return_value=self.collection
        )
        patcher.start()
        self.addCleanup(patcher.stop)

        self.accounts = mock.MagicMock()
        accounts_patch = mock.patch(
            "portal.routes.auth.get_users_collection", return_value=self.accounts
        )
        accounts_patch.start()
        self.addCleanup(accounts_patch.stop)

        self.user_id = ObjectId()
        self.course_id = ObjectId()

    def _login(self, role: str) -> None:
        with self.client.session_transaction() as sess:
            sess["user_id"] = str(self.user_id)
            sess["role"] = role
        self.accounts.find_one.return_value = {
            "_id": self.user_id,
            "role": role,
            "is_active": True,
        }

    def test_list_filters_active_courses(self) -> None:
        self.collection.find.return_value = [
            {"_id": self.course_id, "code": "CS101", "enrolled_students": [ObjectId()]}
        ]

        response = self.client.get("/api/courses?department=CS&semester=1&search=intro+(1)")

        self.assertEqual(200, response.status_code)
        courses = response.get_json()["courses"]
        self.assertEqual(1, courses[0]["enrolled_count"])
        filters = self.collection.find.call_args.args[0]
        self.assertTrue(filters["is_active"])
        self.assertEqual("CS", filters["department"])
        self.assertEqual(1, filters["semester"])
        self.assertEqual(r"intro\ \(1\)", filters["$or"][0]["title"]["$regex"])

    def test_list_rejects_bad_semester(self) -> None:
        response = self.client.get("/api/courses?semester=first")
        self.assertEqual(400, response.status_code)

    def test_get_missing_course(self) -> None:
        self.collection.find_one.return_value = None
        response = self.client.get(f"/api/courses/{self.course_id}")
        self.assertEqual(404, response.status_code)

    def test_create_sets_instructor(self) -> None:
        self._login("teacher")
        self.collection.insert_one.return_value = mock.Mock(inserted_id=self.course_id)

        response = self.client.post("/api/courses", json=NEW_COURSE)

        self.assertEqual(201, response.status_code)
        stored = self.collection.insert_one.call_args.args[0]
        self.assertEqual(self.user_id, stored["instructor_id"])
        self.assertEqual([], stored["enrolled_students"])
        self.assertEqual("CS101", response.get_json()["course"]["code"])

    def test_create_duplicate_code(self) -> None:
        self._login("admin")
        self.collection.insert_one.side_effect = DuplicateKeyError("dup")

        response = self.client.post("/api/courses", json=NEW_COURSE)

        self.assertEqual(409, response.status_code)

    def test_teacher_cannot_update_someone_elses_course(self) -> None:
        self._login("teacher")
        self.collection.find_one.return_value = {
            "_id": self.course_id,
            "instructor_id": ObjectId(),
        }

        response = self.client.put(f"/api/courses/{self.course_id}", json={"title": "Mine now"})

        self.assertEqual(403, response.status_code)
        self.collection.update_one.assert_not_called()

    def test_instructor_updates_course(self) -> None:
        self._login("teacher")
        self.collection.find_one.side_effect = [
            {"_id": self.course_id, "instructor_id": self.user_id},
            {"_id": self.course_id, "title": "Renamed", "instructor_id": self.user_id},
        ]

        response = self.client.put(f"/api/courses/{self.course_id}", json={"title": "Renamed"})

        self.assertEqual(200, response.status_code)
        self.assertEqual("Renamed", response.get_json()["course"]["title"])

    def test_update_rejects_enrolled_students_field(self) -> None:
        self._login("admin")
        response = self.client.put(
            f"/api/courses/{self.course_id}", json={"enrolled_students": []}
        )
        self.assertEqual(400, response.status_code)

    def test_enroll_twice_is_idempotent(self) -> None:
        self._login("student")
        self.collection.update_one.side_effect = [
            SimpleNamespace(matched_count=1, modified_count=1),
            SimpleNamespace(matched_count=1, modified_count=0),
        ]

        first = self.client.post(f"/api/courses/{self.course_id}/enroll")
        second = self.client.post(f"/api/courses/{self.course_id}/enroll")

        self.assertEqual(200, first.status_code)
        self.assertFalse(first.get_json()["already_enrolled"])
        self.assertEqual(200, second.status_code)
        self.assertTrue(second.get_json()["already_enrolled"])

        update = self.collection.update_one.call_args.args[1]
        self.assertEqual({"$addToSet": {"enrolled_students": self.user_id}}, update)

    def test_enroll_missing_course(self) -> None:
        self._login("student")
        self.collection.update_one.return_value = SimpleNamespace(
            matched_count=0, modified_count=0
        )

        response = self.client.post(f"/api/courses/{self.course_id}/enroll")

        self.assertEqual(404, response.status_code)

    def test_materials_require_enrollment(self) -> None:
        self._login("student")
        self.collection.find_one.return_value = {
            "_id": self.course_id,
            "instructor_id": ObjectId(),
            "enrolled_students": [],
            "materials": [],
        }

        response = self.client.get(f"/api/courses/{self.course_id}/materials")

        self.assertEqual(403, response.status_code)

    def test_enrolled_student_sees_materials(self) -> None:
        self._login("student")
        self.collection.find_one.return_value = {
            "_id": self.course_id,
            "instructor_id": ObjectId(),
            "enrolled_students": [self.user_id],
            "materials": [{"title": "Syllabus", "type": "application/pdf", "url": "/uploads/x"}],
        }

        response = self.client.get(f"/api/courses/{self.course_id}/materials")

        self.assertEqual(200, response.status_code)
        self.assertEqual("Syllabus", response.get_json()["materials"][0]["title"])


class MaterialUploadTestCase(unittest.TestCase):
    def setUp(self) -> None:
        app.config["TESTING"] = True
        self.client = app.test_client()

        self.upload_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.upload_root, True)
        folder_patch = mock.patch("portal.config.UPLOAD_FOLDER", self.upload_root)
        folder_patch.start()
        self.addCleanup(folder_patch.stop)

        self.collection = mock.MagicMock()
        patcher = mock.patch(
            "portal.routes.courses.get_courses_collection", return_value=self.collection
        )
        patcher.start()
        self.addCleanup(patcher.stop)

        self.user_id = ObjectId()
        self.course_id = ObjectId()
        self.collection.find_one.return_value = {
            "_id": self.course_id,
            "instructor_id": self.user_id,
        }
        with self.client.session_transaction() as sess:
            sess["user_id"] = str(self.user_id)
            sess["role"] = "teacher"

        self.accounts = mock.MagicMock()
        self.accounts.find_one.return_value = {
            "_id": self.user_id,
            "role": "teacher",
            "is_active": True,
        }
        accounts_patch = mock.patch(
            "portal.routes.auth.get_users_collection", return_value=self.accounts
        )
        accounts_patch.start()
        self.addCleanup(accounts_patch.stop)

    def test_upload_appends_material(self) -> None:
        response = self.client.post(
            f"/api/courses/{self.course_id}/materials",
            data={
                "title": "Week 1 notes",
                "material": (io.BytesIO(b"%PDF-1.4"), "week1.pdf", "application/pdf"),
            },
            content_type="multipart/form-data",
        )

        self.assertEqual(201, response.status_code)
        material = response.get_json()["material"]
        self.assertTrue(material["url"].startswith("/uploads/materials/material-"))
        update = self.collection.update_one.call_args.args[1]
        self.assertEqual("Week 1 notes", update["$push"]["materials"]["title"])

    def _post_material(self):
        return self.client.post(
            f"/api/courses/{self.course_id}/materials",
            data={
                "title": "Week 1 notes",
                "material": (io.BytesIO(b"%PDF-1.4"), "week1.pdf", "application/pdf"),
            },
            content_type="multipart/form-data",
        )

    def test_database_failure_removes_stored_file(self) -> None:
        self.collection.update_one.side_effect = PyMongoError("down")

        response = self._post_material()

        self.assertEqual(503, response.status_code)
        self.assertEqual([], os.listdir(os.path.join(self.upload_root, "materials")))

    def test_disk_failure_returns_json_error(self) -> None:
        with mock.patch.object(FileStorage, "save", side_effect=OSError("disk full")):
            response = self._post_material()

        self.assertEqual(500, response.status_code)
        self.assertIn("error", response.get_json())
        self.collection.update_one.assert_not_called()

    def test_upload_rejects_bad_type(self) -> None:
        response = self.client.post(
            f"/api/courses/{self.course_id}/materials",
            data={
                "title": "Script",
                "material": (io.BytesIO(b"MZ"), "tool.exe", "application/x-msdownload"),
            },
            content_type="multipart/form-data",
        )

        self.assertEqual(400, response.status_code)
        self.collection.update_one.assert_not_called()


if __name__ == "__main__":
    unittest.main()
