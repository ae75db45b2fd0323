"""
Booking conflict detection for training sessions.

A slot is bookable when
  * it fits entirely inside one of the trainer's availability windows for
    that weekday (evaluated in the studio's local time), and
  * no other non-cancelled session of the trainer overlaps it:
    ``existing.start < new.end AND existing.end > new.start``.

Lookup failures do not block a booking: the report comes back empty with
``verified=False`` and a warning is logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import select, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.scheduling import TrainerAvailability, TrainingSession
from app.calendar_window import day_of_week, to_studio_time
from app.exceptions import ValidationFailed
from app.session_utils import calculate_end_time

logger = logging.getLogger(__name__)


class ConflictType(str, Enum):
    TRAINER_UNAVAILABLE = "trainer_unavailable"
    TRAINER_BOOKED = "trainer_booked"
    # Reserved; no check produces these yet.
    MEMBER_BOOKED = "member_booked"
    ROOM_OCCUPIED = "room_occupied"


@dataclass
class Conflict:
    type: ConflictType
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "message": self.message, "details": self.details}


@dataclass
class ConflictReport:
    conflicts: list[Conflict] = field(default_factory=list)
    # False when a lookup failed and the slot could not be checked.
    verified: bool = True

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def is_clear(self) -> bool:
        return self.verified and not self.conflicts

    @property
    def kinds(self) -> list[str]:
        return [conflict.type.value for conflict in self.conflicts]

    def to_dict(self) -> dict[str, Any]:
        return {
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "verified": self.verified,
        }


def _format_clock(value) -> str:
    return value.strftime("%H:%M")


def find_availability_conflict(
    session: Session,
    trainer_id: str,
    start: datetime,
    end: datetime,
) -> Optional[Conflict]:
    """Return a trainer_unavailable conflict unless one window contains [start, end)."""
    local_start = to_studio_time(start)
    local_end = to_studio_time(end)
    weekday = day_of_week(local_start)
    on_day = local_start.date()

    windows = list(
        session.scalars(
            select(TrainerAvailability)
            .where(
                TrainerAvailability.trainer_id == trainer_id,
                TrainerAvailability.day_of_week == weekday,
                TrainerAvailability.is_available.is_(True),
                or_(
                    TrainerAvailability.effective_date.is_(None),
                    TrainerAvailability.effective_date <= on_day,
                ),
                or_(
                    TrainerAvailability.end_date.is_(None),
                    TrainerAvailability.end_date >= on_day,
                ),
            )
            .order_by(TrainerAvailability.start_time)
        )
    )

    start_t = local_start.time()
    end_t = local_end.time()
    # A session running past midnight never fits a single-day window.
    same_day = local_end.date() == on_day
    if same_day and any(w.start_time <= start_t and w.end_time >= end_t for w in windows):
        return None

    return Conflict(
        type=ConflictType.TRAINER_UNAVAILABLE,
        message="Trainer is not available at this time",
        details={
            "trainerId": trainer_id,
            "dayOfWeek": weekday,
            "time": f"{_format_clock(start_t)}-{_format_clock(end_t)}",
            "availability": [
                {"start": _format_clock(w.start_time), "end": _format_clock(w.end_time)}
                for w in windows
            ],
        },
    )


def find_overlapping_sessions(
    session: Session,
    trainer_id: str,
    start: datetime,
    end: datetime,
    *,
    exclude_session_id: str | None = None,
) -> list[TrainingSession]:
    stmt = select(TrainingSession).where(
        TrainingSession.trainer_id == trainer_id,
        TrainingSession.status != "cancelled",
        TrainingSession.scheduled_date < end,
        TrainingSession.scheduled_end > start,
    )
    if exclude_session_id:
        stmt = stmt.where(TrainingSession.id != exclude_session_id)
    return list(session.scalars(stmt.order_by(TrainingSession.scheduled_date)))


def check_conflicts(
    session: Session,
    trainer_id: str,
    scheduled_date: datetime,
    duration: int,
    *,
    exclude_session_id: str | None = None,
) -> ConflictReport:
    if not trainer_id:
        raise ValidationFailed("Trainer is required")
    # bool is an int subclass; True must not pass as one minute
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise ValidationFailed("Duration must be a positive number of minutes")

    start = scheduled_date
    end = calculate_end_time(start, duration)
    conflicts: list[Conflict] = []

    try:
        unavailable = find_availability_conflict(session, trainer_id, start, end)
        if unavailable is not None:
            conflicts.append(unavailable)

        overlapping = find_overlapping_sessions(
            session, trainer_id, start, end, exclude_session_id=exclude_session_id
        )
    except SQLAlchemyError as exc:
        logger.warning(
            "Conflict check for trainer %s at %s could not be verified: %s",
            trainer_id,
            start.isoformat(),
            exc,
        )
        return ConflictReport(conflicts=[], verified=False)

    if overlapping:
        conflicts.append(
            Conflict(
                type=ConflictType.TRAINER_BOOKED,
                message="Trainer already has a session booked at this time",
                details={
                    "overlappingSessions": len(overlapping),
                    "sessionIds": [s.id for s in overlapping],
                },
            )
        )

    if conflicts:
        logger.info(
            "Conflicts for trainer %s at %s: %s",
            trainer_id,
            start.isoformat(),
            ", ".join(c.type.value for c in conflicts),
        )
    return ConflictReport(conflicts=conflicts)
