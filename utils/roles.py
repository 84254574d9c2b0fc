ROLE_CUSTOMER = "customer"
ROLE_BARBER = "barber"
ROLE_ADMIN = "admin"

ALLOWED_ROLES = (ROLE_CUSTOMER, ROLE_BARBER, ROLE_ADMIN)
STAFF_ROLES = {ROLE_BARBER, ROLE_ADMIN}


def normalize_role(value) -> str | None:
    name = (value or "").strip().lower() if isinstance(value, str) else None
    if name in ALLOWED_ROLES:
        return name
    return None


def is_staff(role: str) -> bool:
    return role in STAFF_ROLES
