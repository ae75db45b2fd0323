from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from app.config import get_settings
from models.base import utcnow

# Index matches trainer_availability.day_of_week (0 = Sunday).
WEEKDAY_NAMES = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)


def get_booking_now() -> datetime:
    """Current instant as naive UTC, the form stored in every DateTime column."""
    return utcnow()


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_instant(value) -> datetime:
    """
    Accept a datetime, a date or an ISO-8601 string and return naive UTC.
    Raises ValueError("Invalid date format") for anything else.
    """
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc_naive(datetime.fromisoformat(text))
        except ValueError:
            pass
    raise ValueError("Invalid date format")


def parse_day(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValueError("Invalid date format")


def studio_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().studio_timezone)


def to_studio_time(value: datetime) -> datetime:
    """Convert a naive UTC instant to naive wall-clock time in the studio's zone."""
    aware = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value
    return aware.astimezone(studio_zone()).replace(tzinfo=None)


def day_of_week(value: datetime | date) -> int:
    """Sunday-based weekday number (0 = Sunday ... 6 = Saturday)."""
    return (value.weekday() + 1) % 7


def weekday_index(name_or_number) -> int:
    if isinstance(name_or_number, int):
        if 0 <= name_or_number <= 6:
            return name_or_number
    elif isinstance(name_or_number, str):
        key = name_or_number.strip().lower()
        if key.isdigit():
            return weekday_index(int(key))
        for index, name in enumerate(WEEKDAY_NAMES):
            if name == key or name[:3] == key:
                return index
    raise ValueError(f"Unknown day of week: {name_or_number!r}")


def start_of_week(today: date) -> date:
    """Sunday that opens the week containing ``today``."""
    return today - timedelta(days=day_of_week(today))


def start_of_month(today: date) -> date:
    return today.replace(day=1)
