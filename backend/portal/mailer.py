"""Outgoing email through Flask-Mail."""

from __future__ import annotations

import logging
import smtplib

from flask import current_app
from flask_mail import BadHeaderError, Mail, Message

from .errors import MailDeliveryError

logger = logging.getLogger(__name__)

mail = Mail()


class Mailer:
    """Send HTML email through the Flask-Mail extension bound to the app."""

    def __init__(self, extension: Mail | None = None):
        self._mail = extension or mail

    def send(self, to: str, subject: str, html_body: str) -> None:
        sender = current_app.config.get("MAIL_DEFAULT_SENDER")
        if not sender:
            raise MailDeliveryError("MAIL_DEFAULT_SENDER is not configured.")

        message = Message(
            subject=subject,
            recipients=[to],
            html=html_body,
            sender=sender,
        )
        try:
            self._mail.send(message)
        except BadHeaderError as exc:
            raise MailDeliveryError(f"Refused to send '{subject}': bad header.") from exc
        except AssertionError as exc:
            # Flask-Mail asserts that recipients and sender are present.
            raise MailDeliveryError(f"Incomplete message '{subject}': {exc}") from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"Could not deliver '{subject}' to {to}.") from exc

        logger.info("Sent '%s' to %s", subject, to)


__all__ = ["mail", "Mailer"]
