from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

MIN_SESSION_MINUTES = 15
MAX_SESSION_MINUTES = 480

SESSION_DURATIONS = {
    "default": 60,
    "consultation": 45,
    "assessment": 60,
    "personal": 60,
    "group": 75,
    "class": 90,
    "rehabilitation": 60,
}

DURATION_OPTIONS = (15, 30, 45, 60, 75, 90, 120, 150, 180)


def default_duration(session_type: Optional[str] = None) -> int:
    return SESSION_DURATIONS.get(session_type or "default", SESSION_DURATIONS["default"])


def calculate_end_time(start: datetime, duration: int) -> datetime:
    return start + timedelta(minutes=duration)


def format_duration(minutes: int) -> str:
    """45 -> '45 minutes', 60 -> '1 hour', 90 -> '1 hour 30 minutes'."""
    if minutes < 60:
        return f"{minutes} minutes"
    hours, rest = divmod(minutes, 60)
    hour_text = "1 hour" if hours == 1 else f"{hours} hours"
    if rest == 0:
        return hour_text
    return f"{hour_text} {rest} minutes"


def duration_options() -> list[dict]:
    return [{"value": value, "label": format_duration(value)} for value in DURATION_OPTIONS]


def validate_duration(duration: int) -> tuple[bool, Optional[str]]:
    if duration < MIN_SESSION_MINUTES:
        return False, "Duration must be at least 15 minutes"
    if duration > MAX_SESSION_MINUTES:
        return False, "Duration cannot exceed 8 hours"
    return True, None


def generate_time_slots(start_hour: int = 9, end_hour: int = 22, interval_minutes: int = 30) -> list[dict]:
    slots = []
    for hour in range(start_hour, end_hour):
        for minute in range(0, 60, interval_minutes):
            label = f"{hour:02d}:{minute:02d}"
            slots.append({"value": label, "label": label, "hour": hour, "minute": minute})
    return slots
