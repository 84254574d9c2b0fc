from functools import wraps
from flask import g, jsonify

from utils.roles import ROLE_ADMIN


def current_role():
    return getattr(g, "role", None)


def has_role(role_name: str) -> bool:
    return current_role() == role_name


def require_roles(*role_names: str):
    """
    Usage: @require_roles("barber", "admin")

    Admins pass every role check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required", code="unauthenticated"), 401

            role = current_role()
            if role != ROLE_ADMIN and role not in role_names:
                return jsonify(error="Forbidden", code="forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
