from flask import request

from engine.errors import ValidationError
from models.booking import Booking
from utils import clock


def _iso(value):
    return value.isoformat() if value else None


def booking_json(b: Booking) -> dict:
    return {
        "id": b.id,
        "status": b.status,
        "version": b.version,
        "scheduled_time": b.scheduled_time.isoformat(),
        "queue_number": b.queue_number,
        "estimated_wait_minutes": b.estimated_wait_minutes,
        "notes": b.notes,
        "customer_id": b.customer_id,
        "barber_id": b.barber_id,
        "service": {
            "id": b.service.id,
            "name": b.service.name,
            "duration_minutes": b.service.duration_minutes,
            "price": b.service.price,
        } if b.service else {"id": b.service_id},
        "created_at": _iso(b.created_at),
        "confirmed_at": _iso(b.confirmed_at),
        "started_at": _iso(b.started_at),
        "completed_at": _iso(b.completed_at),
        "cancelled_at": _iso(b.cancelled_at),
    }


def parse_datetime_field(value, name="scheduled_time"):
    if not value:
        raise ValidationError(f"{name} is required")
    try:
        return clock.parse_iso(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}. Use ISO e.g. 2026-01-20T18:00:00") from None


def day_arg(name="date"):
    """?date=YYYY-MM-DD, defaulting to the shop's today."""
    raw = request.args.get(name)
    if not raw:
        return clock.today()
    try:
        return clock.parse_day(raw)
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD") from None


def optional_int(data, name):
    value = data.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer") from None
