"""Booking store: the unit of work every mutation runs in, and scoped reads."""
import logging
import threading
from contextlib import contextmanager
from datetime import date

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from engine import ranking
from engine.errors import ConcurrentModification, NotFound, StoreUnavailable
from engine.notifier import get_notifier
from models import db
from models.booking import Booking
from security import policy
from utils import clock

logger = logging.getLogger(__name__)


class DayLocks:
    """In-process single-writer-per-day locks. Different days never contend."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[date, threading.Lock] = {}

    def _lock_for(self, day: date) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(day)
            if lock is None:
                lock = self._locks[day] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, days, timeout: float):
        acquired = []
        try:
            # sorted acquisition order keeps two multi-day writers from deadlocking
            for day in sorted(set(days)):
                lock = self._lock_for(day)
                if not lock.acquire(timeout=timeout):
                    raise StoreUnavailable(f"Timed out waiting to rank queue for {day.isoformat()}")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def get_day_locks() -> DayLocks:
    return current_app.extensions["queue_day_locks"]


class UnitOfWork:
    def __init__(self, days):
        self.days = frozenset(days)
        self.touched = {}
        self.rerank = set()
        self.revisions = {}

    def require_held(self, day):
        # the booking moved to a day this unit of work did not lock
        if day not in self.days:
            raise ConcurrentModification("Booking was moved by someone else; reload and try again")

    def touch(self, day, rerank=True, reason="changed"):
        if rerank and day not in self.days:
            raise RuntimeError(f"cannot re-rank {day}: not held by this unit of work")
        self.touched[day] = reason
        if rerank:
            self.rerank.add(day)


@contextmanager
def unit_of_work(days=()):
    """
    Run one booking mutation while holding ``days``: the in-process day locks first,
    then the days' ``queue_days`` rows, before anything else is written. Touched days
    are re-ranked in the same transaction; change events go out after the commit.
    """
    session = db.session
    uow = UnitOfWork(days)
    timeout = current_app.config.get("STORE_TIMEOUT_SECONDS", 5)
    try:
        with get_day_locks().hold(uow.days, timeout):
            try:
                for day in sorted(uow.days):
                    ranking.lock_queue_day(day)
                yield uow
                session.flush()
                for day in sorted(uow.rerank):
                    uow.revisions[day] = ranking.recompute_day(day)
                session.commit()
            except BaseException:
                session.rollback()
                raise
    except StaleDataError as exc:
        logger.warning("optimistic write conflict: %s", exc)
        raise ConcurrentModification() from exc
    except IntegrityError as exc:
        logger.warning("integrity conflict while committing booking change: %s", exc.orig)
        raise ConcurrentModification() from exc
    except (OperationalError, InterfaceError) as exc:
        logger.exception("booking store failure")
        raise StoreUnavailable() from exc

    notifier = get_notifier()
    for day in sorted(uow.touched):
        notifier.publish(day, uow.revisions.get(day), uow.touched[day])


def booking_day(booking_id):
    """Day a booking is scheduled on, read without locking to pick the days to hold."""
    scheduled = db.session.execute(
        select(Booking.scheduled_time).where(Booking.id == booking_id)
    ).scalar_one_or_none()
    if scheduled is None:
        raise NotFound("Booking not found")
    return scheduled.date()


def load_booking_for_update(booking_id) -> Booking:
    booking = db.session.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update(of=Booking)
        .execution_options(populate_existing=True)
    ).unique().scalar_one_or_none()
    if booking is None:
        raise NotFound("Booking not found")
    return booking


def get_visible_booking(booking_id, actor_id, role) -> Booking:
    booking = db.session.get(Booking, booking_id)
    # other people's bookings look absent, not forbidden
    if booking is None or not policy.is_allowed(role, actor_id, booking, policy.OP_VIEW):
        raise NotFound("Booking not found")
    return booking


def list_visible_bookings(actor_id, role, status=None, day=None, upcoming=None, limit=200) -> list[Booking]:
    scope = policy.scope_for(role)
    if scope is None:
        return []

    q = select(Booking)
    if scope == policy.SCOPE_OWN:
        q = q.where(Booking.customer_id == actor_id)
    elif scope == policy.SCOPE_ASSIGNED:
        q = q.where(Booking.barber_id == actor_id)

    if status:
        q = q.where(Booking.status == status)
    if day:
        start, end = clock.day_bounds(day)
        q = q.where(Booking.scheduled_time >= start, Booking.scheduled_time < end)
    if upcoming is not None:
        now = clock.now()
        q = q.where(Booking.scheduled_time > now) if upcoming else q.where(Booking.scheduled_time <= now)

    q = q.order_by(Booking.scheduled_time.desc(), Booking.id.desc()).limit(limit)
    return list(db.session.execute(q).unique().scalars().all())
