"""
Training session status lifecycle.

    scheduled -> confirmed -> in_progress -> completed
    cancelled / no_show from any non-terminal status

``rescheduled`` is accepted when read from storage and behaves like
``scheduled``, but nothing moves a session into it: rescheduling changes the
time and keeps the status.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from app.exceptions import InvalidTransition


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
)

TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.SCHEDULED: frozenset(
        {SessionStatus.CONFIRMED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
    ),
    SessionStatus.RESCHEDULED: frozenset(
        {SessionStatus.CONFIRMED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
    ),
    SessionStatus.CONFIRMED: frozenset(
        {SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
    ),
    SessionStatus.IN_PROGRESS: frozenset(
        {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
    SessionStatus.NO_SHOW: frozenset(),
}

# user action -> target status
ACTIONS: dict[str, SessionStatus] = {
    "confirm": SessionStatus.CONFIRMED,
    "start": SessionStatus.IN_PROGRESS,
    "complete": SessionStatus.COMPLETED,
    "cancel": SessionStatus.CANCELLED,
    "no_show": SessionStatus.NO_SHOW,
}


def is_terminal(status: SessionStatus | str) -> bool:
    return SessionStatus(status) in TERMINAL_STATUSES


def allowed_transitions(status: SessionStatus | str) -> frozenset[SessionStatus]:
    return TRANSITIONS[SessionStatus(status)]


def can_transition(current: SessionStatus | str, target: SessionStatus | str) -> bool:
    return SessionStatus(target) in allowed_transitions(current)


def ensure_transition(current: SessionStatus | str, target: SessionStatus | str) -> SessionStatus:
    current = SessionStatus(current)
    target = SessionStatus(target)
    if target not in TRANSITIONS[current]:
        allowed = sorted(status.value for status in TRANSITIONS[current])
        raise InvalidTransition(
            f"Cannot change session status from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value, "allowed": allowed},
        )
    return target


def apply_transition(
    training_session,
    target: SessionStatus | str,
    *,
    now: datetime,
    completion_summary: Optional[str] = None,
    member_rating: Optional[int] = None,
    trainer_rating: Optional[int] = None,
) -> None:
    """
    Move ``training_session`` to ``target`` after checking the transition table.

    Starting stamps ``actual_start_time``; completing stamps
    ``actual_end_time`` and keeps whatever start time was recorded.
    """
    target = ensure_transition(training_session.status, target)

    if target is SessionStatus.IN_PROGRESS:
        training_session.actual_start_time = now
    elif target is SessionStatus.COMPLETED:
        training_session.actual_end_time = now
        if completion_summary is not None:
            training_session.completion_summary = completion_summary
        if member_rating is not None:
            training_session.member_rating = member_rating
        if trainer_rating is not None:
            training_session.trainer_rating = trainer_rating

    training_session.status = target.value
