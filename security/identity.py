from datetime import datetime

from models import db
from models.user import User, UserRole
from utils.roles import ROLE_CUSTOMER, normalize_role


def role_of(user_id) -> str | None:
    """Current role of a user, ``customer`` when no role row exists, None for unknown users."""
    if user_id is None:
        return None
    row = db.session.get(UserRole, user_id)
    if row is not None:
        return row.role
    if db.session.get(User, user_id) is None:
        return None
    return ROLE_CUSTOMER


def set_role(user_id: int, role: str) -> UserRole:
    """Replace the user's role (last write wins). Caller commits."""
    name = normalize_role(role)
    if name is None:
        raise ValueError(f"Unknown role: {role!r}")

    row = db.session.get(UserRole, user_id)
    if row is None:
        row = UserRole(user_id=user_id, role=name)
        db.session.add(row)
    else:
        row.role = name
        row.updated_at = datetime.utcnow()
    return row
