"""Contact form submissions and their administration."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from markupsafe import escape
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection

from .db import parse_object_id, utcnow
from .errors import MailDeliveryError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CONTACT_STATUSES: Tuple[str, ...] = ("pending", "read", "replied", "archived")

ADMIN_SUBJECT = "New Contact Form Submission - Student Portal"
ACK_SUBJECT = "Thank you for contacting Student Portal"


def render_admin_notification(contact: Dict[str, Any]) -> str:
    submitted = contact["created_at"].strftime("%Y-%m-%d %H:%M UTC")
    return (
        "<h3>New Contact Form Submission</h3>"
        f"<p><strong>Name:</strong> {escape(contact['name'])}</p>"
        f"<p><strong>Email:</strong> {escape(contact['email'])}</p>"
        f"<p><strong>Phone:</strong> {escape(contact.get('phone') or 'Not provided')}</p>"
        "<p><strong>Message:</strong></p>"
        f"<p>{escape(contact['message'])}</p>"
        f"<p><strong>Submitted at:</strong> {submitted}</p>"
    )


def render_acknowledgement(contact: Dict[str, Any]) -> str:
    return (
        "<h3>Thank you for contacting us!</h3>"
        f"<p>Dear {escape(contact['name'])},</p>"
        "<p>We have received your message and will get back to you within 24-48 hours.</p>"
        "<p><strong>Your message:</strong></p>"
        f"<p>{escape(contact['message'])}</p>"
        "<br><p>Best regards,</p><p>Student Portal Team</p>"
    )


def _send_best_effort(mailer, to: str, subject: str, html_body: str) -> bool:
    try:
        mailer.send(to, subject, html_body)
    except MailDeliveryError:
        logger.exception("Failed to send '%s' to %s", subject, to)
        return False
    return True


def submit_contact(
    collection: Collection,
    mailer,
    contact: Dict[str, Any],
    *,
    admin_email: str | None,
) -> Dict[str, Any]:
    """Store a contact message, then notify the admin and the sender.

    Storing the message is the only step that can fail the submission; the two
    emails are attempted once each and a delivery failure is only logged.
    """

    now = utcnow()
    document: Dict[str, Any] = {
        "name": contact["name"],
        "email": contact["email"],
        "message": contact["message"],
        "status": "pending",
        "created_at": now,
        "updated_at": now,
    }
    if contact.get("phone"):
        document["phone"] = contact["phone"]

    result = collection.insert_one(document)
    document["_id"] = result.inserted_id

    if admin_email:
        _send_best_effort(mailer, admin_email, ADMIN_SUBJECT, render_admin_notification(document))
    else:
        logger.warning("ADMIN_EMAIL is not configured; skipping admin notification")

    _send_best_effort(mailer, document["email"], ACK_SUBJECT, render_acknowledgement(document))

    return document


def list_contacts(
    collection: Collection,
    *,
    status: str | None,
    page: int,
    limit: int,
) -> Tuple[List[Dict[str, Any]], int]:
    """Return one page of contact messages, newest first, and the total count."""

    filters: Dict[str, Any] = {}
    if status:
        if status not in CONTACT_STATUSES:
            raise ValidationError(
                "Invalid status filter.",
                {"status": "Status must be one of: " + ", ".join(CONTACT_STATUSES) + "."},
            )
        filters["status"] = status

    total = collection.count_documents(filters)
    cursor = (
        collection.find(filters)
        .sort([("created_at", DESCENDING)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return list(cursor), total


def update_contact_status(
    collection: Collection,
    contact_id: str,
    status: str,
    *,
    reply_message: str | None = None,
) -> Dict[str, Any]:
    """Move a contact message to another status. Messages are archived, never deleted."""

    if status not in CONTACT_STATUSES:
        raise ValidationError(
            "Validation failed.",
            {"status": "Status must be one of: " + ", ".join(CONTACT_STATUSES) + "."},
        )

    now = utcnow()
    changes: Dict[str, Any] = {"status": status, "updated_at": now}
    if status == "replied":
        if not reply_message:
            raise ValidationError(
                "Validation failed.",
                {"reply_message": "A reply message is required when marking as replied."},
            )
        changes["reply_message"] = reply_message
        changes["replied_at"] = now

    updated = collection.find_one_and_update(
        {"_id": parse_object_id(contact_id, entity="Contact message")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFoundError("Contact message not found.")
    return updated


__all__ = [
    "CONTACT_STATUSES",
    "submit_contact",
    "list_contacts",
    "update_contact_status",
]
