"""
Authorization policy for bookings.

Pure functions of (role, acting user, booking, operation); no database access, so the
rules can be exercised without an app. ``booking`` is anything with ``customer_id``,
``barber_id`` and ``status`` attributes.
"""
from collections import namedtuple

from models.booking import BOOKING_STATUSES
from utils.roles import ROLE_ADMIN, ROLE_BARBER, ROLE_CUSTOMER

OP_VIEW = "view"
OP_CREATE = "create"
OP_TRANSITION = "transition"
OP_RESCHEDULE = "reschedule"
OP_REASSIGN = "reassign"

OPERATIONS = (OP_VIEW, OP_CREATE, OP_TRANSITION, OP_RESCHEDULE, OP_REASSIGN)

SCOPE_OWN = "own"
SCOPE_ASSIGNED = "assigned"
SCOPE_ALL = "all"

# Stand-in for a booking that does not exist yet (create checks)
BookingRef = namedtuple("BookingRef", ["customer_id", "barber_id", "status"])


def _owns(actor_id, booking) -> bool:
    return actor_id is not None and booking.customer_id == actor_id


def _assigned(actor_id, booking) -> bool:
    return actor_id is not None and booking.barber_id == actor_id


def is_allowed(role, actor_id, booking, operation, target_status=None) -> bool:
    if operation not in OPERATIONS:
        return False

    if role == ROLE_ADMIN:
        return True

    if role == ROLE_BARBER:
        if operation == OP_CREATE:
            # walk-ins booked at the chair
            return True
        if operation in (OP_VIEW, OP_TRANSITION):
            return _assigned(actor_id, booking)
        return False

    if role == ROLE_CUSTOMER:
        if not _owns(actor_id, booking):
            return False
        if operation in (OP_VIEW, OP_CREATE):
            return True
        if operation == OP_TRANSITION:
            return booking.status == "pending" and target_status == "cancelled"
        if operation == OP_RESCHEDULE:
            return booking.status == "pending"
        return False

    return False


def scope_for(role) -> str | None:
    """Which bookings a role sees in personal/list views."""
    return {
        ROLE_ADMIN: SCOPE_ALL,
        ROLE_BARBER: SCOPE_ASSIGNED,
        ROLE_CUSTOMER: SCOPE_OWN,
    }.get(role)


def can_view_queue(role) -> bool:
    # shared queue view is open to every signed-in actor
    return role in (ROLE_CUSTOMER, ROLE_BARBER, ROLE_ADMIN)


def can_see_full_name(role, actor_id, customer_id) -> bool:
    return role in (ROLE_BARBER, ROLE_ADMIN) or (actor_id is not None and actor_id == customer_id)


def is_known_status(value) -> bool:
    return value in BOOKING_STATUSES
