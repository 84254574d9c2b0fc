import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update

from engine import ranking
from engine.errors import ConcurrentModification
from engine.store import unit_of_work
from models import db
from models.booking import Booking, ACTIVE_STATUSES
from models.queue_day import QueueDay
from utils import clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueRow:
    queue_number: int
    estimated_wait_minutes: int
    booking_id: int
    status: str
    scheduled_time: datetime
    service_id: int
    service_name: str
    duration_minutes: int
    customer_id: int
    customer_name: str
    barber_id: Optional[int]
    projected: bool = False

    def to_dict(self) -> dict:
        return {
            "queue_number": self.queue_number,
            "estimated_wait_minutes": self.estimated_wait_minutes,
            "projected": self.projected,
            "booking": {
                "id": self.booking_id,
                "status": self.status,
                "scheduled_time": self.scheduled_time.isoformat(),
                "service": {
                    "id": self.service_id,
                    "name": self.service_name,
                    "duration_minutes": self.duration_minutes,
                },
                "customer": {"id": self.customer_id, "name": self.customer_name},
                "barber_id": self.barber_id,
            },
        }


def _row(booking: Booking, number, wait, projected=False) -> QueueRow:
    return QueueRow(
        queue_number=number,
        estimated_wait_minutes=wait,
        booking_id=booking.id,
        status=booking.status,
        scheduled_time=booking.scheduled_time,
        service_id=booking.service_id,
        service_name=booking.service.name,
        duration_minutes=booking.service.duration_minutes,
        customer_id=booking.customer_id,
        customer_name=booking.customer.display_name if booking.customer else "Customer",
        barber_id=booking.barber_id,
        projected=projected,
    )


def rollover(day=None):
    """Clear queue numbers left on earlier days and rank ``day`` (default today)."""
    day = day or clock.today()
    start, _ = clock.day_bounds(day)
    with unit_of_work([day]) as uow:
        stale_ids = db.session.execute(
            select(Booking.id).where(Booking.scheduled_time < start, Booking.queue_number.is_not(None))
        ).scalars().all()
        if stale_ids:
            db.session.execute(
                update(Booking)
                .where(Booking.id.in_(stale_ids))
                .values(queue_number=None, estimated_wait_minutes=None)
            )
        uow.touch(day, reason="rollover")
    if stale_ids:
        logger.info("rollover to %s cleared %d stale queue number(s)", day, len(stale_ids))
    return len(stale_ids)


def get_queue_for_day(day):
    # today reads persisted ranks; other days are ranked in memory and marked projected
    if day != clock.today():
        return [_row(b, r.queue_number, r.estimated_wait_minutes, projected=True) for b, r in ranking.project_day(day)]

    queue_day = db.session.get(QueueDay, day)
    if queue_day is None or not queue_day.live:
        try:
            rollover(day)
        except ConcurrentModification:
            logger.info("queue for %s was ranked concurrently; reading the committed ranking", day)

    start, end = clock.day_bounds(day)
    rows = db.session.execute(
        select(Booking)
        .where(
            Booking.scheduled_time >= start,
            Booking.scheduled_time < end,
            Booking.status.in_(ACTIVE_STATUSES),
        )
        .order_by(Booking.queue_number.is_(None), Booking.queue_number, Booking.scheduled_time, Booking.id)
    ).unique().scalars().all()
    return [_row(b, b.queue_number, b.estimated_wait_minutes) for b in rows]
