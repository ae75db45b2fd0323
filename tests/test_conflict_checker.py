from datetime import datetime, time, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from models.scheduling import TrainingSession
from app import conflict_checker
from app.conflict_checker import ConflictType, check_conflicts
from app.session_utils import calculate_end_time
from tests.helpers import MONDAY, add_trainer_availability, make_member, make_trainer, next_monday


def _monday_trainer(session):
    trainer = make_trainer(session)
    add_trainer_availability(session, trainer, windows=[(MONDAY, time(9, 0), time(17, 0))])
    return trainer


def _book(session, trainer, member, start: datetime, duration: int = 60, status="scheduled"):
    ts = TrainingSession(
        member_id=member.id,
        trainer_id=trainer.id,
        title="Strength block",
        scheduled_date=start,
        duration=duration,
        scheduled_end=calculate_end_time(start, duration),
        status=status,
    )
    session.add(ts)
    session.commit()
    return ts


def test_slot_inside_window_is_clear(session):
    trainer = _monday_trainer(session)

    report = check_conflicts(session, trainer.id, next_monday(10), 60)

    assert report.conflicts == []
    assert report.verified is True
    assert report.is_clear


def test_slot_outside_window_is_unavailable(session):
    trainer = _monday_trainer(session)

    report = check_conflicts(session, trainer.id, next_monday(18), 60)

    assert report.kinds == [ConflictType.TRAINER_UNAVAILABLE.value]
    details = report.conflicts[0].details
    assert details["dayOfWeek"] == MONDAY
    assert details["time"] == "18:00-19:00"
    assert details["availability"] == [{"start": "09:00", "end": "17:00"}]


def test_slot_crossing_window_end_is_unavailable(session):
    trainer = _monday_trainer(session)

    report = check_conflicts(session, trainer.id, next_monday(16, 30), 60)

    assert report.kinds == ["trainer_unavailable"]


def test_day_without_windows_is_unavailable(session):
    trainer = _monday_trainer(session)

    report = check_conflicts(session, trainer.id, next_monday(10) + timedelta(days=1), 60)

    assert report.kinds == ["trainer_unavailable"]
    assert report.conflicts[0].details["availability"] == []


def test_double_booking_reports_trainer_booked(session):
    trainer = _monday_trainer(session)
    member = make_member(session)
    _book(session, trainer, member, next_monday(10))

    report = check_conflicts(session, trainer.id, next_monday(10), 60)

    assert report.kinds == ["trainer_booked"]
    assert report.conflicts[0].details["overlappingSessions"] == 1


def test_cancelled_sessions_are_ignored(session):
    trainer = _monday_trainer(session)
    member = make_member(session)
    booked = _book(session, trainer, member, next_monday(10))
    booked.status = "cancelled"
    session.commit()

    report = check_conflicts(session, trainer.id, next_monday(10), 60)

    assert report.conflicts == []


def test_long_session_starting_earlier_is_detected(session):
    trainer = _monday_trainer(session)
    member = make_member(session)
    _book(session, trainer, member, next_monday(9), duration=180)

    report = check_conflicts(session, trainer.id, next_monday(11), 30)

    assert report.kinds == ["trainer_booked"]


def test_back_to_back_sessions_do_not_overlap(session):
    trainer = _monday_trainer(session)
    member = make_member(session)
    _book(session, trainer, member, next_monday(10))

    report = check_conflicts(session, trainer.id, next_monday(11), 60)

    assert report.is_clear


def test_excluded_session_does_not_conflict_with_itself(session):
    trainer = _monday_trainer(session)
    member = make_member(session)
    booked = _book(session, trainer, member, next_monday(10))

    report = check_conflicts(
        session, trainer.id, next_monday(10, 30), 60, exclude_session_id=booked.id
    )

    assert report.is_clear


def test_both_conflicts_are_reported_together(session):
    trainer = _monday_trainer(session)
    member = make_member(session)
    _book(session, trainer, member, next_monday(16, 30))

    report = check_conflicts(session, trainer.id, next_monday(16, 45), 60)

    assert report.kinds == ["trainer_unavailable", "trainer_booked"]


def test_lookup_failure_fails_open_but_unverified(session, monkeypatch, caplog):
    trainer = _monday_trainer(session)

    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    monkeypatch.setattr(conflict_checker, "find_availability_conflict", broken)

    with caplog.at_level("WARNING", logger="app.conflict_checker"):
        report = check_conflicts(session, trainer.id, next_monday(10), 60)

    assert report.conflicts == []
    assert report.verified is False
    assert not report.is_clear
    assert "could not be verified" in caplog.text


@pytest.mark.parametrize(
    "trainer_id, duration", [("", 60), ("abc", 0), ("abc", -15), ("abc", True), ("abc", "60")]
)
def test_invalid_input_is_rejected(session, trainer_id, duration):
    with pytest.raises(ValueError):
        check_conflicts(session, trainer_id, next_monday(10), duration)
