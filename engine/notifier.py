# One topic per service day. Events carry no delta; undelivered events coalesce into
# one pending event per subscriber holding the latest revision.
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Optional

from flask import current_app

logger = logging.getLogger(__name__)

REASON_RESYNC = "resync"


@dataclass(frozen=True)
class ChangeEvent:
    day: date
    revision: Optional[int]
    reason: str

    def to_dict(self) -> dict:
        return {"day": self.day.isoformat(), "revision": self.revision, "reason": self.reason}


class Subscription:
    def __init__(self, notifier: "ChangeNotifier", day: date):
        self.day = day
        self._notifier = notifier
        self._cond = threading.Condition()
        # new (or reconnecting) subscribers start with a full fetch
        self._pending: Optional[ChangeEvent] = ChangeEvent(day, None, REASON_RESYNC)
        self.closed = False

    def _deliver(self, event: ChangeEvent) -> None:
        with self._cond:
            if self.closed:
                return
            self._pending = event
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or None if ``timeout`` elapsed (or the subscription closed) first."""
        with self._cond:
            if self._pending is None and not self.closed:
                self._cond.wait(timeout)
            event, self._pending = self._pending, None
            return event

    def close(self) -> None:
        with self._cond:
            if self.closed:
                return
            self.closed = True
            self._cond.notify_all()
        self._notifier._remove(self)

    def __iter__(self):
        while not self.closed:
            event = self.wait()
            if event is not None:
                yield event

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class ChangeNotifier:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: dict[date, set[Subscription]] = defaultdict(set)

    def subscribe(self, day: date) -> Subscription:
        sub = Subscription(self, day)
        with self._lock:
            self._subscriptions[day].add(sub)
        return sub

    def publish(self, day: date, revision: Optional[int] = None, reason: str = "changed") -> int:
        with self._lock:
            targets = list(self._subscriptions.get(day, ()))
        event = ChangeEvent(day, revision, reason)
        for sub in targets:
            sub._deliver(event)
        logger.debug("queue %s changed (%s, revision=%s) -> %d subscriber(s)", day, reason, revision, len(targets))
        return len(targets)

    def subscriber_count(self, day: date) -> int:
        with self._lock:
            return len(self._subscriptions.get(day, ()))

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.day)
            if subs is None:
                return
            subs.discard(sub)
            if not subs:
                del self._subscriptions[sub.day]


def get_notifier() -> ChangeNotifier:
    return current_app.extensions["queue_notifier"]


def subscribe_to_queue_changes(day: date) -> Subscription:
    """Consumers must call ``get_queue_for_day(day)`` again on every event they receive."""
    return get_notifier().subscribe(day)
