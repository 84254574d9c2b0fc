# Checks run in order: booking exists, policy allows it, status graph allows it,
# expected version matches.
import logging

from engine import catalog
from engine.errors import ConcurrentModification, Forbidden, InvalidTransition, NotFound, ValidationError
from engine.store import booking_day, load_booking_for_update, unit_of_work
from models import db
from models.booking import Booking, BOOKING_STATUSES
from models.user import User
from security import policy
from security.identity import role_of
from utils import clock
from utils.audit import log_event
from utils.roles import ROLE_BARBER

logger = logging.getLogger(__name__)

TRANSITIONS = {
    "pending": frozenset({"confirmed", "in_progress", "completed", "cancelled"}),
    "confirmed": frozenset({"in_progress", "completed", "cancelled"}),
    "in_progress": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}

MAX_NOTES_LENGTH = 1000

_UNSET = object()


def allowed_transitions(status):
    return TRANSITIONS.get(status, frozenset())


def check_transition(current, target):
    if target not in allowed_transitions(current):
        raise InvalidTransition(
            f"Cannot move a {current} booking to {target}",
            current_status=current,
            requested_status=target,
            allowed=sorted(allowed_transitions(current)),
        )


def _resolve_actor(actor_id):
    role = role_of(actor_id)
    if role is None:
        raise Forbidden("Unknown actor")
    return role


def _check_version(booking, expected_version):
    if expected_version is not None and int(expected_version) != booking.version:
        raise ConcurrentModification(current_version=booking.version, expected_version=int(expected_version))


def _clean_notes(notes):
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    notes = notes.strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes must be at most {MAX_NOTES_LENGTH} characters")
    return notes or None


def _require_user(user_id, what="Customer") -> User:
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None:
        raise NotFound(f"{what} not found")
    return user


def _require_barber(barber_id) -> User:
    user = _require_user(barber_id, "Barber")
    if role_of(user.id) != ROLE_BARBER:
        raise ValidationError("Assigned user is not a barber", barber_id=barber_id)
    return user


def _days_for(booking_id, new_time=None):
    days = {booking_day(booking_id)}
    if new_time is not None:
        days.add(new_time.date())
    return days


def _stamp_status(booking, status, actor_id):
    now = clock.now()
    if status == "confirmed":
        booking.confirmed_at = now
    elif status == "in_progress":
        booking.started_at = now
    elif status == "completed":
        booking.completed_at = now
    elif status == "cancelled":
        booking.cancelled_at = now
        booking.cancelled_by = actor_id


def create_booking(customer_id, service_id, scheduled_time, notes=None, barber_id=None, acting_actor_id=None):
    """Reserve a slot. New bookings start ``pending`` and join that day's queue."""
    service = catalog.get_active_service(service_id)
    catalog.validate_slot(scheduled_time)
    _require_user(customer_id)
    if barber_id is not None:
        _require_barber(barber_id)
    notes = _clean_notes(notes)

    with unit_of_work([scheduled_time.date()]) as uow:
        booking = Booking(
            customer_id=customer_id,
            barber_id=barber_id,
            service=service,
            scheduled_time=scheduled_time,
            status="pending",
            notes=notes,
        )
        db.session.add(booking)
        db.session.flush()
        uow.touch(booking.service_day, reason="created")
        log_event(
            "BOOKING_CREATE",
            user_id=acting_actor_id or customer_id,
            entity="booking",
            entity_id=booking.id,
            metadata={"service_id": service.id, "scheduled_time": scheduled_time.isoformat(), "customer_id": customer_id},
        )

    logger.info("booking %s created for %s (service %s)", booking.id, scheduled_time, service.id)
    return booking


def transition_booking(booking_id, new_status, acting_actor_id, expected_version=None):
    if new_status not in BOOKING_STATUSES:
        raise ValidationError(f"Unknown status: {new_status!r}", allowed=list(BOOKING_STATUSES))

    with unit_of_work([booking_day(booking_id)]) as uow:
        booking = load_booking_for_update(booking_id)
        uow.require_held(booking.service_day)
        role = _resolve_actor(acting_actor_id)
        if not policy.is_allowed(role, acting_actor_id, booking, policy.OP_TRANSITION, target_status=new_status):
            logger.warning("actor %s (%s) denied %s -> %s on booking %s", acting_actor_id, role, booking.status, new_status, booking.id)
            raise Forbidden("You cannot change this booking's status")
        check_transition(booking.status, new_status)
        _check_version(booking, expected_version)

        previous = booking.status
        was_active = booking.is_active
        booking.status = new_status
        _stamp_status(booking, new_status, acting_actor_id)
        db.session.flush()

        # ranks only depend on membership of the active set, not on which active status
        uow.touch(booking.service_day, rerank=was_active != booking.is_active, reason=f"status:{new_status}")
        log_event(
            "BOOKING_TRANSITION",
            user_id=acting_actor_id,
            entity="booking",
            entity_id=booking.id,
            metadata={"from": previous, "to": new_status, "role": role},
        )

    logger.info("booking %s: %s -> %s by %s", booking.id, previous, new_status, acting_actor_id)
    return booking


def reschedule_booking(booking_id, new_time, acting_actor_id, new_notes=None, expected_version=None):
    # new_time=None keeps the current time
    with unit_of_work(_days_for(booking_id, new_time)) as uow:
        booking = load_booking_for_update(booking_id)
        uow.require_held(booking.service_day)
        role = _resolve_actor(acting_actor_id)
        if not policy.is_allowed(role, acting_actor_id, booking, policy.OP_RESCHEDULE):
            raise Forbidden("You cannot reschedule this booking")
        if booking.is_terminal:
            raise InvalidTransition(f"Booking is {booking.status} and can no longer change", current_status=booking.status)
        _check_version(booking, expected_version)

        old_day = booking.service_day
        old_time = booking.scheduled_time
        if new_time is not None and new_time != booking.scheduled_time:
            catalog.validate_slot(new_time)
            booking.scheduled_time = new_time
        if new_notes is not None:
            booking.notes = _clean_notes(new_notes)
        db.session.flush()

        moved = booking.scheduled_time != old_time
        uow.touch(old_day, rerank=moved, reason="rescheduled" if moved else "edited")
        uow.touch(booking.service_day, rerank=moved, reason="rescheduled" if moved else "edited")
        log_event(
            "BOOKING_RESCHEDULE",
            user_id=acting_actor_id,
            entity="booking",
            entity_id=booking.id,
            metadata={"from": old_time.isoformat(), "to": booking.scheduled_time.isoformat(), "notes_changed": new_notes is not None},
        )

    logger.info("booking %s rescheduled %s -> %s", booking.id, old_time, booking.scheduled_time)
    return booking


def reassign_booking(booking_id, acting_actor_id, customer_id=_UNSET, barber_id=_UNSET,
                     service_id=None, scheduled_time=None, expected_version=None):
    """Admin edit of an open booking. ``barber_id=None`` unassigns the barber."""
    with unit_of_work(_days_for(booking_id, scheduled_time)) as uow:
        booking = load_booking_for_update(booking_id)
        uow.require_held(booking.service_day)
        role = _resolve_actor(acting_actor_id)
        if not policy.is_allowed(role, acting_actor_id, booking, policy.OP_REASSIGN):
            raise Forbidden("Only admins can reassign bookings")
        if booking.is_terminal:
            raise InvalidTransition(f"Booking is {booking.status} and can no longer change", current_status=booking.status)
        _check_version(booking, expected_version)

        changes = {}
        rerank = False
        old_day = booking.service_day

        if customer_id is not _UNSET and customer_id != booking.customer_id:
            _require_user(customer_id)
            changes["customer_id"] = [booking.customer_id, customer_id]
            booking.customer_id = customer_id
        if barber_id is not _UNSET and barber_id != booking.barber_id:
            if barber_id is not None:
                _require_barber(barber_id)
            changes["barber_id"] = [booking.barber_id, barber_id]
            booking.barber_id = barber_id
        if service_id is not None and service_id != booking.service_id:
            service = catalog.get_active_service(service_id)
            changes["service_id"] = [booking.service_id, service.id]
            booking.service = service
            rerank = True
        if scheduled_time is not None and scheduled_time != booking.scheduled_time:
            catalog.validate_slot(scheduled_time)
            changes["scheduled_time"] = [booking.scheduled_time.isoformat(), scheduled_time.isoformat()]
            booking.scheduled_time = scheduled_time
            rerank = True

        if not changes:
            raise ValidationError("Nothing to change")

        db.session.flush()
        rerank = rerank and booking.is_active
        uow.touch(old_day, rerank=rerank, reason="reassigned")
        uow.touch(booking.service_day, rerank=rerank, reason="reassigned")
        log_event("BOOKING_REASSIGN", user_id=acting_actor_id, entity="booking", entity_id=booking.id, metadata=changes)

    logger.info("booking %s reassigned: %s", booking.id, ", ".join(sorted(changes)))
    return booking
