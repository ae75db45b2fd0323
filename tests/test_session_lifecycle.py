from datetime import datetime
from types import SimpleNamespace

import pytest

from app.exceptions import InvalidTransition
from app.session_lifecycle import (
    SessionStatus,
    allowed_transitions,
    apply_transition,
    can_transition,
    ensure_transition,
    is_terminal,
)


def _ts(status="scheduled", **fields):
    values = dict(
        status=status,
        actual_start_time=None,
        actual_end_time=None,
        completion_summary=None,
        member_rating=None,
        trainer_rating=None,
    )
    values.update(fields)
    return SimpleNamespace(**values)


def test_happy_path_stamps_actual_times():
    ts = _ts()
    started = datetime(2030, 1, 7, 10, 2)
    finished = datetime(2030, 1, 7, 11, 0)

    apply_transition(ts, "confirmed", now=datetime(2030, 1, 6, 12, 0))
    apply_transition(ts, SessionStatus.IN_PROGRESS, now=started)
    apply_transition(
        ts,
        "completed",
        now=finished,
        completion_summary="Hit all sets",
        member_rating=5,
        trainer_rating=4,
    )

    assert ts.status == "completed"
    assert ts.actual_start_time == started
    assert ts.actual_end_time == finished
    assert ts.completion_summary == "Hit all sets"
    assert (ts.member_rating, ts.trainer_rating) == (5, 4)


def test_complete_preserves_existing_start_time():
    start = datetime(2030, 1, 7, 9, 55)
    ts = _ts("in_progress", actual_start_time=start)

    apply_transition(ts, "completed", now=datetime(2030, 1, 7, 11, 0))

    assert ts.actual_start_time == start
    assert ts.actual_end_time is not None


@pytest.mark.parametrize("status", ["scheduled", "confirmed", "in_progress", "rescheduled"])
def test_cancel_and_no_show_allowed_from_non_terminal(status):
    assert can_transition(status, "cancelled")
    assert can_transition(status, "no_show")


@pytest.mark.parametrize("status", ["completed", "cancelled", "no_show"])
def test_terminal_states_have_no_exits(status):
    assert is_terminal(status)
    assert allowed_transitions(status) == frozenset()
    with pytest.raises(InvalidTransition):
        ensure_transition(status, "scheduled")


def test_skipping_a_step_is_rejected():
    with pytest.raises(InvalidTransition, match="from scheduled to completed") as exc_info:
        ensure_transition("scheduled", "completed")

    assert exc_info.value.details["allowed"] == ["cancelled", "confirmed", "no_show"]


def test_nothing_leads_to_rescheduled():
    for status in SessionStatus:
        assert not can_transition(status, SessionStatus.RESCHEDULED)


def test_rejected_transition_leaves_session_untouched():
    ts = _ts("scheduled")

    with pytest.raises(ValueError):
        apply_transition(ts, "in_progress", now=datetime(2030, 1, 7, 10, 0))

    assert ts.status == "scheduled"
    assert ts.actual_start_time is None
