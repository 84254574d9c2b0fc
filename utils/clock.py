"""
Shop-local time.

All booking datetimes are stored as naive wall-clock times of the shop's timezone
(``SHOP_TIMEZONE``). Always call ``clock.now()`` through the module so tests can
patch it.
"""
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from flask import current_app


def shop_timezone() -> ZoneInfo:
    return ZoneInfo(current_app.config.get("SHOP_TIMEZONE") or "UTC")


def now() -> datetime:
    return datetime.now(shop_timezone()).replace(tzinfo=None)


def today() -> date:
    return now().date()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def parse_iso(dt_str: str) -> datetime:
    # Expect ISO format like "2026-01-20T18:00:00"; offsets are converted to shop time
    value = datetime.fromisoformat(dt_str)
    if value.tzinfo is not None:
        value = value.astimezone(shop_timezone()).replace(tzinfo=None)
    return value.replace(second=0, microsecond=0)


def parse_day(day_str: str) -> date:
    return date.fromisoformat(day_str)
