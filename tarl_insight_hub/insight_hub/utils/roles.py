from enum import Enum
from functools import wraps
from typing import Optional

from flask import current_app
from flask_login import current_user

from insight_hub.errors import Forbidden, Unauthorized, ValidationError


class Role(str, Enum):
    ADMIN = "admin"
    DIRECTOR = "director"
    PARTNER = "partner"
    COORDINATOR = "coordinator"
    TEACHER = "teacher"
    COLLECTOR = "collector"
    INTERN = "intern"
    PARTICIPANT = "participant"

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        """Case-insensitive lookup; returns None for anything unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def require(cls, value, field: str = "role") -> "Role":
        role = cls.parse(value)
        if role is None:
            raise ValidationError(f"Unknown role: {value!r}.", field=field)
        return role


AVAILABLE_ROLES = [role.value for role in Role]


def is_admin_role(role) -> bool:
    admin = current_app.config.get("ADMIN_ROLE", Role.ADMIN.value)
    return isinstance(role, str) and role.strip().lower() == admin


def admin_required(f):
    """Example: @admin_required on every permission write endpoint."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            raise Unauthorized()
        if not is_admin_role(current_user.role):
            raise Forbidden()
        return f(*args, **kwargs)
    return wrapper
