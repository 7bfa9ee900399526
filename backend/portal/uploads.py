"""Validation and storage of uploaded files."""

from __future__ import annotations

import logging
import os
import secrets
import time

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .errors import PortalError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "application/pdf",
        "application/msword",
        "text/plain",
    }
)

# Each kind is stored in its own sub-folder: avatars/, materials/.
UPLOAD_KINDS = ("avatar", "material")


class FileTooLargeError(PortalError):
    status = 413


class UploadStorageError(PortalError):
    status = 500


def _stream_size(file: FileStorage) -> int:
    stream = file.stream
    position = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(position)
    return size


def stored_name(kind: str, filename: str) -> str:
    """Build a unique on-disk name that keeps the original extension."""

    _, ext = os.path.splitext(secure_filename(filename))
    suffix = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
    return f"{kind}-{suffix}{ext.lower()}"


def save_upload(
    file: FileStorage | None,
    kind: str,
    *,
    upload_root: str,
    max_bytes: int,
) -> str:
    """Validate ``file`` and store it under ``upload_root``.

    Returns the stored path relative to ``upload_root``, using forward
    slashes, e.g. ``avatars/avatar-1700000000000-123.png``.
    """

    if kind not in UPLOAD_KINDS:
        raise ValueError(f"Unknown upload kind: {kind}")

    if file is None or not file.filename:
        raise ValidationError("No file uploaded.", {kind: "Choose a file to upload."})

    if file.mimetype not in ALLOWED_MIME_TYPES:
        raise ValidationError("Invalid file type.", {kind: "Invalid file type."})

    if _stream_size(file) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise FileTooLargeError(
            f"File exceeds the {limit_mb} MB limit.", {kind: "File is too large."}
        )

    folder = f"{kind}s"
    target_dir = os.path.join(upload_root, folder)
    name = stored_name(kind, file.filename)
    try:
        os.makedirs(target_dir, exist_ok=True)
        file.save(os.path.join(target_dir, name))
    except OSError as exc:
        logger.exception("Could not store %s upload under %s", kind, target_dir)
        raise UploadStorageError("Could not store the uploaded file.") from exc

    logger.info("Stored %s upload as %s/%s", kind, folder, name)
    return f"{folder}/{name}"


def discard_upload(upload_root: str, stored_path: str) -> None:
    """Remove a stored upload whose database record could not be written."""

    try:
        os.remove(os.path.join(upload_root, stored_path))
    except OSError:
        logger.exception("Could not remove orphaned upload %s", stored_path)


__all__ = [
    "ALLOWED_MIME_TYPES",
    "UPLOAD_KINDS",
    "FileTooLargeError",
    "UploadStorageError",
    "stored_name",
    "save_upload",
    "discard_upload",
]
