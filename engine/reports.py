from datetime import date

from sqlalchemy import func, select

from models import db
from models.booking import Booking, BOOKING_STATUSES
from utils import clock


def booking_counts_by_status() -> dict:
    rows = db.session.execute(
        select(Booking.status, func.count(Booking.id)).group_by(Booking.status)
    ).all()
    counts = {status: 0 for status in BOOKING_STATUSES}
    counts.update({status: count for status, count in rows})
    counts["total"] = sum(counts[s] for s in BOOKING_STATUSES)
    return counts


def barber_day_stats(barber_id: int, day: date) -> dict:
    start, end = clock.day_bounds(day)
    rows = db.session.execute(
        select(Booking.status, func.count(Booking.id))
        .where(Booking.barber_id == barber_id, Booking.scheduled_time >= start, Booking.scheduled_time < end)
        .group_by(Booking.status)
    ).all()
    by_status = dict(rows)
    return {
        "day": day.isoformat(),
        "total": sum(by_status.values()),
        "completed": by_status.get("completed", 0),
        "waiting": by_status.get("pending", 0) + by_status.get("confirmed", 0),
        "in_progress": by_status.get("in_progress", 0),
    }
