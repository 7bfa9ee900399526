"""Request payload validation.

Every validator returns ``(cleaned, errors)``. ``cleaned`` only ever holds the
fields listed for that payload; any other key is reported in ``errors`` so
callers cannot write arbitrary attributes onto a document.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Tuple

from bson import ObjectId
from bson.errors import InvalidId

from .contact import CONTACT_STATUSES

ROLES = ("student", "teacher", "admin")

PROFILE_FIELDS = ("full_name", "phone", "address", "bio", "date_of_birth")

Cleaned = Tuple[Dict[str, Any], Dict[str, str]]


def _clean_string(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _is_valid_email(email: str) -> bool:
    # Addresses end up in mail headers.
    if any(ch.isspace() or not ch.isprintable() for ch in email):
        return False
    if email.count("@") != 1:
        return False
    local, domain = email.split("@")
    return bool(local) and "." in domain and not domain.startswith(".") and not domain.endswith(".")


def _reject_unknown(
    payload: Dict[str, Any], allowed: Iterable[str], errors: Dict[str, str], prefix: str = ""
) -> None:
    allowed_set = set(allowed)
    for key in payload:
        if key not in allowed_set:
            errors[f"{prefix}{key}"] = "Unknown field."


def _require_json_object(payload: Any) -> Dict[str, str] | None:
    if not isinstance(payload, dict):
        return {"_global": "Request body must be a JSON object."}
    return None


def _parse_object_id_field(
    payload: Dict[str, Any], field: str, errors: Dict[str, str], *, required: bool
) -> ObjectId | None:
    raw = _clean_string(payload.get(field))
    if not raw:
        if required:
            errors[field] = f"{field} is required."
        return None
    try:
        return ObjectId(raw)
    except (InvalidId, TypeError):
        errors[field] = "Invalid identifier."
        return None


def _parse_int_range(
    payload: Dict[str, Any],
    field: str,
    errors: Dict[str, str],
    *,
    minimum: int,
    maximum: int,
    label: str,
) -> int | None:
    value = payload.get(field)
    if isinstance(value, bool):
        errors[field] = f"{label} must be a whole number."
        return None
    try:
        number = int(_clean_string(value))
    except (TypeError, ValueError):
        errors[field] = f"{label} must be a whole number."
        return None
    if number < minimum or number > maximum:
        errors[field] = f"{label} must be between {minimum} and {maximum}."
        return None
    return number


def _parse_marks(payload: Dict[str, Any], field: str, errors: Dict[str, str]) -> float | None:
    value = payload.get(field)
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        errors[field] = "Marks must be numeric."
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors[field] = "Marks must be numeric."
        return None
    if number < 0:
        errors[field] = "Marks cannot be negative."
        return None
    return number


def _parse_bool(payload: Dict[str, Any], field: str, errors: Dict[str, str]) -> bool | None:
    value = payload.get(field)
    if isinstance(value, bool):
        return value
    errors[field] = f"{field} must be true or false."
    return None


def validate_registration(payload: Any) -> Cleaned:
    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    _reject_unknown(payload, ("username", "email", "password", "student_id"), errors)

    username = _clean_string(payload.get("username"))
    if len(username) < 3:
        errors["username"] = "Username must be at least 3 characters."
    else:
        cleaned["username"] = username

    email = _clean_string(payload.get("email")).lower()
    if not _is_valid_email(email):
        errors["email"] = "Enter a valid email address."
    else:
        cleaned["email"] = email

    password = payload.get("password")
    if not isinstance(password, str) or len(password) < 6:
        errors["password"] = "Password must be at least 6 characters."
    else:
        cleaned["password"] = password

    student_id = _clean_string(payload.get("student_id"))
    if student_id:
        cleaned["student_id"] = student_id

    return cleaned, errors


def validate_login(payload: Any) -> Cleaned:
    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    email = _clean_string(payload.get("email")).lower()
    password = payload.get("password")

    if not _is_valid_email(email):
        errors["email"] = "Enter a valid email address."
    if not isinstance(password, str) or not password:
        errors["password"] = "Password is required."

    return {"email": email, "password": password}, errors


def validate_contact(payload: Any) -> Cleaned:
    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    _reject_unknown(payload, ("name", "email", "phone", "message"), errors)

    name = _clean_string(payload.get("name"))
    if len(name) < 2:
        errors["name"] = "Name must be at least 2 characters."
    else:
        cleaned["name"] = name

    email = _clean_string(payload.get("email")).lower()
    if not _is_valid_email(email):
        errors["email"] = "Enter a valid email address."
    else:
        cleaned["email"] = email

    phone = _clean_string(payload.get("phone"))
    if phone:
        cleaned["phone"] = phone

    message = _clean_string(payload.get("message"))
    if len(message) < 10:
        errors["message"] = "Message must be at least 10 characters."
    else:
        cleaned["message"] = message

    return cleaned, errors


def validate_contact_status(payload: Any) -> Cleaned:
    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    _reject_unknown(payload, ("status", "reply_message"), errors)

    status = _clean_string(payload.get("status")).lower()
    if status not in CONTACT_STATUSES:
        errors["status"] = "Status must be one of: " + ", ".join(CONTACT_STATUSES) + "."
    else:
        cleaned["status"] = status

    reply = _clean_string(payload.get("reply_message"))
    if reply:
        cleaned["reply_message"] = reply

    return cleaned, errors


def _validate_schedule(value: Any, errors: Dict[str, str]) -> Dict[str, Any] | None:
    if not isinstance(value, dict):
        errors["schedule"] = "Schedule must be an object with days, time and room."
        return None

    unknown = [key for key in value if key not in ("days", "time", "room")]
    for key in unknown:
        errors[f"schedule.{key}"] = "Unknown field."

    days = value.get("days", [])
    if isinstance(days, str):
        days = [part.strip() for part in days.split(",") if part.strip()]
    elif isinstance(days, list):
        days = [_clean_string(day) for day in days if _clean_string(day)]
    else:
        errors["schedule.days"] = "Days must be a list."
        days = []

    return {
        "days": days,
        "time": _clean_string(value.get("time")) or None,
        "room": _clean_string(value.get("room")) or None,
    }


COURSE_FIELDS = (
    "code",
    "title",
    "description",
    "department",
    "semester",
    "credits",
    "schedule",
    "is_active",
)


def validate_course_payload(payload: Any, *, require_all: bool) -> Cleaned:
    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    allowed = COURSE_FIELDS if not require_all else COURSE_FIELDS[:-1]
    _reject_unknown(payload, allowed, errors)

    text_fields = {
        "code": "Course code is required.",
        "title": "Course title is required.",
        "description": "Description is required.",
        "department": "Department is required.",
    }
    for field, message in text_fields.items():
        if require_all or field in payload:
            value = _clean_string(payload.get(field))
            if not value:
                errors[field] = message
            else:
                cleaned[field] = value.upper() if field == "code" else value

    if require_all or "semester" in payload:
        semester = _parse_int_range(
            payload, "semester", errors, minimum=1, maximum=8, label="Semester"
        )
        if semester is not None:
            cleaned["semester"] = semester

    if require_all or "credits" in payload:
        credits = _parse_int_range(
            payload, "credits", errors, minimum=1, maximum=4, label="Credits"
        )
        if credits is not None:
            cleaned["credits"] = credits

    if "schedule" in payload:
        schedule = _validate_schedule(payload.get("schedule"), errors)
        if schedule is not None:
            cleaned["schedule"] = schedule

    if "is_active" in payload and not require_all:
        is_active = _parse_bool(payload, "is_active", errors)
        if is_active is not None:
            cleaned["is_active"] = is_active

    return cleaned, errors


def validate_grade_create(payload: Any) -> Cleaned:
    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    _reject_unknown(
        payload,
        (
            "student_id",
            "course_id",
            "assignment_id",
            "marks_earned",
            "marks_possible",
            "remarks",
            "is_final",
        ),
        errors,
    )

    for field in ("student_id", "course_id"):
        oid = _parse_object_id_field(payload, field, errors, required=True)
        if oid is not None:
            cleaned[field] = oid

    assignment = _parse_object_id_field(payload, "assignment_id", errors, required=False)
    cleaned["assignment_id"] = assignment

    for field in ("marks_earned", "marks_possible"):
        cleaned[field] = _parse_marks(payload, field, errors)

    cleaned["remarks"] = _clean_string(payload.get("remarks"))

    if "is_final" in payload:
        is_final = _parse_bool(payload, "is_final", errors)
        cleaned["is_final"] = bool(is_final)
    else:
        cleaned["is_final"] = False

    return cleaned, errors


def validate_grade_update(payload: Any) -> Cleaned:
    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    _reject_unknown(payload, ("marks_earned", "marks_possible", "remarks", "is_final"), errors)

    for field in ("marks_earned", "marks_possible"):
        if field in payload:
            cleaned[field] = _parse_marks(payload, field, errors)

    if "remarks" in payload:
        cleaned["remarks"] = _clean_string(payload.get("remarks"))

    if "is_final" in payload:
        is_final = _parse_bool(payload, "is_final", errors)
        if is_final is not None:
            cleaned["is_final"] = is_final

    return cleaned, errors


def _validate_profile(value: Any, errors: Dict[str, str]) -> Dict[str, Any]:
    if not isinstance(value, dict):
        errors["profile"] = "Profile must be an object."
        return {}

    _reject_unknown(value, PROFILE_FIELDS, errors, prefix="profile.")
    return {
        f"profile.{field}": _clean_string(value.get(field)) or None
        for field in PROFILE_FIELDS
        if field in value
    }


def validate_profile_update(payload: Any) -> Cleaned:
    """Validate a self-service profile update.

    Profile sub-fields are returned in dotted form (``profile.full_name``) so
    a ``$set`` only touches the supplied keys.
    """

    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    _reject_unknown(payload, ("username", "profile"), errors)

    if "username" in payload:
        username = _clean_string(payload.get("username"))
        if len(username) < 3:
            errors["username"] = "Username must be at least 3 characters."
        else:
            cleaned["username"] = username

    if "profile" in payload:
        cleaned.update(_validate_profile(payload.get("profile"), errors))

    return cleaned, errors


def validate_admin_user_update(payload: Any) -> Cleaned:
    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    _reject_unknown(payload, ("username", "role", "is_active", "student_id", "profile"), errors)

    if "username" in payload:
        username = _clean_string(payload.get("username"))
        if len(username) < 3:
            errors["username"] = "Username must be at least 3 characters."
        else:
            cleaned["username"] = username

    if "role" in payload:
        role = _clean_string(payload.get("role")).lower()
        if role not in ROLES:
            errors["role"] = "Role must be one of: " + ", ".join(ROLES) + "."
        else:
            cleaned["role"] = role

    if "is_active" in payload:
        is_active = _parse_bool(payload, "is_active", errors)
        if is_active is not None:
            cleaned["is_active"] = is_active

    if "student_id" in payload:
        cleaned["student_id"] = _clean_string(payload.get("student_id")) or None

    if "profile" in payload:
        cleaned.update(_validate_profile(payload.get("profile"), errors))

    return cleaned, errors


def validate_password_change(payload: Any) -> Cleaned:
    problem = _require_json_object(payload)
    if problem:
        return {}, problem

    errors: Dict[str, str] = {}
    _reject_unknown(payload, ("current_password", "new_password"), errors)

    current = payload.get("current_password")
    new = payload.get("new_password")
    if not isinstance(current, str) or not current:
        errors["current_password"] = "Current password is required."
    if not isinstance(new, str) or len(new) < 6:
        errors["new_password"] = "New password must be at least 6 characters."

    return {"current_password": current, "new_password": new}, errors


__all__ = [
    "ROLES",
    "PROFILE_FIELDS",
    "validate_registration",
    "validate_login",
    "validate_contact",
    "validate_contact_status",
    "validate_course_payload",
    "validate_grade_create",
    "validate_grade_update",
    "validate_profile_update",
    "validate_admin_user_update",
    "validate_password_change",
]
