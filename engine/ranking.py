"""
Queue ranking: active bookings of a day ordered by (scheduled_time, created_at, id).
Booking k waits for the summed durations of the k-1 bookings ahead of it.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import insert, select, update
from sqlalchemy.dialects import postgresql, sqlite

from models import db
from models.booking import Booking, ACTIVE_STATUSES
from models.queue_day import QueueDay
from utils import clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueEntry:
    booking_id: int
    scheduled_time: datetime
    created_at: datetime
    duration_minutes: int


@dataclass(frozen=True)
class RankedEntry:
    booking_id: int
    queue_number: int
    estimated_wait_minutes: int


def rank_entries(entries):
    ordered = sorted(entries, key=lambda e: (e.scheduled_time, e.created_at, e.booking_id))
    ranked = []
    wait = 0
    for position, entry in enumerate(ordered, start=1):
        ranked.append(RankedEntry(entry.booking_id, position, wait))
        wait += entry.duration_minutes
    return ranked


def entry_for(booking):
    return QueueEntry(
        booking_id=booking.id,
        scheduled_time=booking.scheduled_time,
        created_at=booking.created_at,
        duration_minutes=booking.service.duration_minutes,
    )


def bookings_for_day(day, active_only=False):
    start, end = clock.day_bounds(day)
    q = select(Booking).where(Booking.scheduled_time >= start, Booking.scheduled_time < end)
    if active_only:
        q = q.where(Booking.status.in_(ACTIVE_STATUSES))
    return list(db.session.execute(q).unique().scalars().all())


def project_day(day):
    """Rank a day in memory without persisting anything."""
    bookings = {b.id: b for b in bookings_for_day(day, active_only=True)}
    ranked = rank_entries(entry_for(b) for b in bookings.values())
    return [(bookings[r.booking_id], r) for r in ranked]


def _ensure_queue_day(day: date) -> None:
    dialect = db.engine.dialect.name
    values = {"day": day, "revision": 0, "live": False}
    if dialect == "postgresql":
        stmt = postgresql.insert(QueueDay).values(**values).on_conflict_do_nothing(index_elements=["day"])
    elif dialect == "sqlite":
        stmt = sqlite.insert(QueueDay).values(**values).on_conflict_do_nothing(index_elements=["day"])
    else:
        if db.session.execute(select(QueueDay.day).where(QueueDay.day == day)).first() is not None:
            return
        stmt = insert(QueueDay).values(**values)
    db.session.execute(stmt)


def lock_queue_day(day: date) -> QueueDay:
    # upsert first so two first-of-day writers both end up waiting on the same row
    _ensure_queue_day(day)
    return db.session.execute(
        select(QueueDay)
        .where(QueueDay.day == day)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one()


def recompute_day(day: date) -> int:
    """
    Re-rank every booking of ``day`` inside the caller's unit of work, which already
    holds the day. Returns the day's new revision.
    """
    is_today = day == clock.today()
    queue_day = lock_queue_day(day)
    queue_day.revision = queue_day.revision + 1
    queue_day.live = is_today
    queue_day.ranked_at = clock.now()
    db.session.flush()

    rows = bookings_for_day(day)
    ranked = {}
    if is_today:
        ranked = {r.booking_id: r for r in rank_entries(entry_for(b) for b in rows if b.is_active)}

    changed = 0
    for booking in rows:
        r = ranked.get(booking.id)
        number = r.queue_number if r else None
        wait = r.estimated_wait_minutes if r else None
        if booking.queue_number == number and booking.estimated_wait_minutes == wait:
            continue
        # plain UPDATE: derived fields must not bump the booking's version
        db.session.execute(
            update(Booking)
            .where(Booking.id == booking.id)
            .values(queue_number=number, estimated_wait_minutes=wait)
        )
        changed += 1

    logger.info("ranked %s: %d active, %d row(s) changed, revision %d", day, len(ranked), changed, queue_day.revision)
    return queue_day.revision
