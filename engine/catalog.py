from datetime import date, datetime, time

from flask import current_app

from engine.errors import NotFound, ServiceNotActive, SlotInPast, SlotNotOffered
from models import db
from models.service import Service
from utils import clock


def get_service(service_id):
    service = db.session.get(Service, service_id) if service_id is not None else None
    if service is None:
        raise NotFound("Service not found")
    return service


def get_active_service(service_id):
    service = get_service(service_id)
    if not service.is_active:
        raise ServiceNotActive(f"{service.name} is not currently offered", service_id=service.id)
    return service


def list_services(include_inactive=False):
    q = Service.query
    if not include_inactive:
        q = q.filter(Service.is_active.is_(True))
    return q.order_by(Service.price.asc(), Service.name.asc()).all()


def _slot_times() -> list[time]:
    return [time.fromisoformat(s) for s in current_app.config.get("BOOKING_TIME_SLOTS") or []]


def _closed_weekdays() -> set[int]:
    return set(current_app.config.get("CLOSED_WEEKDAYS") or [])


def offered_slots(day: date) -> list[datetime]:
    """Bookable start times for ``day`` that have not started yet."""
    if day.weekday() in _closed_weekdays():
        return []
    now = clock.now()
    return [
        slot for slot in (datetime.combine(day, t) for t in _slot_times())
        if slot > now
    ]


def validate_slot(scheduled_time):
    if scheduled_time <= clock.now():
        raise SlotInPast(scheduled_time=scheduled_time.isoformat())

    if scheduled_time.weekday() in _closed_weekdays():
        raise SlotNotOffered("The shop is closed that day", scheduled_time=scheduled_time.isoformat())

    slots = _slot_times()
    # an empty grid means any future time is bookable
    if slots and scheduled_time.time() not in slots:
        raise SlotNotOffered(
            scheduled_time=scheduled_time.isoformat(),
            offered=[t.strftime("%H:%M") for t in slots],
        )
