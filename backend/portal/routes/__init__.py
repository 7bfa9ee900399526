"""Application route blueprints and helpers."""

from .auth import auth_bp, require_admin, require_login, require_staff
from .contact import contact_bp
from .courses import courses_bp
from .grades import grades_bp
from .users import users_bp

__all__ = [
    "auth_bp",
    "contact_bp",
    "courses_bp",
    "grades_bp",
    "users_bp",
    "require_admin",
    "require_login",
    "require_staff",
]
