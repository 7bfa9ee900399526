"""Contact form endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from pymongo.errors import PyMongoError

from .. import config
from ..config import ConfigError
from ..contact import list_contacts, submit_contact, update_contact_status
from ..db import get_contacts_collection, serialize_contact
from ..errors import PortalError
from ..mailer import Mailer
from ..utils.paging import PagingParamError, pagination_payload, parse_paging_params
from ..validators import validate_contact, validate_contact_status
from .auth import Identity, require_admin
from .common import (
    clean_string,
    handle_config_error,
    handle_db_error,
    handle_portal_error,
    json_error,
    validation_failed,
)

contact_bp = Blueprint("contact", __name__, url_prefix="/api/contact")

mailer = Mailer()


@contact_bp.post("/submit")
def submit():
    cleaned, errors = validate_contact(request.get_json(silent=True))
    if errors:
        return validation_failed(errors)

    try:
        document = submit_contact(
            get_contacts_collection(),
            mailer,
            cleaned,
            admin_email=config.ADMIN_EMAIL,
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to store contact message", exc)

    return (
        jsonify(
            {
                "ok": True,
                "id": str(document["_id"]),
                "message": "Thank you for contacting us. We will get back to you soon!",
            }
        ),
        201,
    )


@contact_bp.get("")
@require_admin
def list_messages(identity: Identity):
    try:
        paging = parse_paging_params(request.args)
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    status = clean_string(request.args.get("status")).lower() or None

    try:
        documents, total = list_contacts(
            get_contacts_collection(),
            status=status,
            page=paging.page,
            limit=paging.limit,
        )
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list contact messages", exc)

    return jsonify(
        {
            "contacts": [serialize_contact(doc) for doc in documents],
            "pagination": pagination_payload(paging, total),
        }
    )


@contact_bp.put("/<contact_id>/status")
@require_admin
def change_status(contact_id: str, identity: Identity):
    cleaned, errors = validate_contact_status(request.get_json(silent=True))
    if errors:
        return validation_failed(errors)

    try:
        updated = update_contact_status(
            get_contacts_collection(),
            contact_id,
            cleaned["status"],
            reply_message=cleaned.get("reply_message"),
        )
    except PortalError as exc:
        return handle_portal_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to update contact message", exc)

    return jsonify({"ok": True, "contact": serialize_contact(updated)})


__all__ = ["contact_bp", "mailer"]
