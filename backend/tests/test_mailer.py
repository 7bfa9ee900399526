"""Mailer behaviour against a suppressed Flask-Mail extension."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest import mock

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from bson import ObjectId

from app import app
from portal.contact import submit_contact
from portal.errors import MailDeliveryError
from portal.mailer import Mailer, mail

CONTACT = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "message": "How do I enroll in CS101?",
}


class MailerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        state = app.extensions["mail"]
        original = state.suppress
        state.suppress = True
        self.addCleanup(setattr, state, "suppress", original)

        config_patch = mock.patch.dict(app.config, {"MAIL_DEFAULT_SENDER": "portal@example.com"})
        config_patch.start()
        self.addCleanup(config_patch.stop)

        context = app.app_context()
        context.push()
        self.addCleanup(context.pop)

        self.mailer = Mailer()

    def test_sends_message(self) -> None:
        with mail.record_messages() as outbox:
            self.mailer.send("ada@example.com", "Hello", "<p>Hi</p>")

        self.assertEqual(1, len(outbox))
        self.assertEqual(["ada@example.com"], outbox[0].recipients)
        self.assertEqual("portal@example.com", outbox[0].sender)

    def test_header_injection_is_a_delivery_error(self) -> None:
        with self.assertRaises(MailDeliveryError):
            self.mailer.send("ada@example.com\nBcc: x@example.com", "Hello", "<p>Hi</p>")

    def test_missing_sender(self) -> None:
        app.config["MAIL_DEFAULT_SENDER"] = None
        with self.assertRaises(MailDeliveryError):
            self.mailer.send("ada@example.com", "Hello", "<p>Hi</p>")

    def test_submission_survives_rejected_admin_address(self) -> None:
        collection = mock.MagicMock()
        collection.insert_one.return_value = mock.Mock(inserted_id=ObjectId())

        with mail.record_messages() as outbox:
            document = submit_contact(
                collection,
                self.mailer,
                CONTACT,
                admin_email="admin@example.com\nBcc: x@example.com",
            )

        collection.insert_one.assert_called_once()
        self.assertEqual("pending", document["status"])
        self.assertEqual([["ada@example.com"]], [msg.recipients for msg in outbox])


if __name__ == "__main__":
    unittest.main()
