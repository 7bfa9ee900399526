"""Error types raised by the portal's domain functions.

Each error carries the HTTP status it maps to so the route layer can turn it
into a JSON response without a lookup table.
"""

from __future__ import annotations

from typing import Dict


class PortalError(Exception):
    """Base class for errors that are reported back to the client."""

    status = 500

    def __init__(self, message: str, details: Dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PortalError):
    """Malformed or missing input the caller can correct."""

    status = 400


class DivideByZeroInput(ValidationError):
    """Raised when a grade is computed against zero possible marks."""


class AuthenticationError(PortalError):
    status = 401


class AuthorizationError(PortalError):
    status = 403


class NotFoundError(PortalError):
    status = 404


class ConflictError(PortalError):
    status = 409


class MailDeliveryError(RuntimeError):
    """Raised by the mailer when a message could not be handed to the server."""


__all__ = [
    "PortalError",
    "ValidationError",
    "DivideByZeroInput",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "MailDeliveryError",
]
