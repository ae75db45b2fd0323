from datetime import date, time

import pytest
from sqlalchemy import select
from werkzeug.security import check_password_hash

from models.scheduling import Trainer, TrainerAvailability
from models.user import User
from app.trainer_service import (
    TrainerService,
    set_trainer_availability,
    update_trainer_availability,
)
from tests.helpers import make_trainer


@pytest.fixture()
def trainers(session, cache):
    return TrainerService(session, cache)


def _trainer_data(**extra):
    data = {
        "firstName": "Riley",
        "lastName": "Cole",
        "email": "riley@example.com",
        "phone": "+1 555 010 2000",
        "specializations": ["Yoga", "Mobility"],
        "certifications": ["RYT-200"],
        "hourlyRate": 55,
        "availability": {
            "monday": [{"start": "09:00", "end": "12:00"}, {"start": "13:00", "end": "17:00"}],
            "wednesday": [{"start": "10:00", "end": "14:00"}],
        },
        "password": "Trainer123",
    }
    data.update(extra)
    return data


def test_set_trainer_availability_no_overlap(session):
    trainer = make_trainer(session)

    # First availability
    a1 = set_trainer_availability(
        session,
        trainer_id=trainer.id,
        day_of_week=0,
        start=time(9, 0),
        end=time(11, 0),
    )
    assert a1.id is not None

    # Non-overlapping second availability
    a2 = set_trainer_availability(
        session,
        trainer_id=trainer.id,
        day_of_week=0,
        start=time(11, 0),
        end=time(13, 0),
    )
    assert a2.id is not None
    assert trainer.availability == {
        "sunday": [{"start": "09:00", "end": "11:00"}, {"start": "11:00", "end": "13:00"}]
    }


def test_set_trainer_availability_overlap_fails(session):
    trainer = make_trainer(session)

    set_trainer_availability(
        session,
        trainer_id=trainer.id,
        day_of_week=1,
        start=time(9, 0),
        end=time(11, 0),
    )

    with pytest.raises(ValueError, match="overlaps"):
        set_trainer_availability(
            session,
            trainer_id=trainer.id,
            day_of_week=1,
            start=time(10, 0),
            end=time(12, 0),
        )


def test_windows_with_separate_date_ranges_may_share_hours(session):
    trainer = make_trainer(session)

    set_trainer_availability(
        session,
        trainer_id=trainer.id,
        day_of_week=1,
        start=time(9, 0),
        end=time(11, 0),
        end_date=date(2030, 1, 31),
    )
    later = set_trainer_availability(
        session,
        trainer_id=trainer.id,
        day_of_week=1,
        start=time(9, 0),
        end=time(11, 0),
        effective_date=date(2030, 2, 1),
    )

    assert later.effective_date == date(2030, 2, 1)


def test_set_trainer_availability_rejects_inverted_window(session):
    trainer = make_trainer(session)

    with pytest.raises(ValueError, match="start time must be before end time"):
        set_trainer_availability(
            session, trainer_id=trainer.id, day_of_week=2, start=time(12, 0), end=time(9, 0)
        )


def test_update_trainer_availability(session):
    trainer = make_trainer(session)
    morning = set_trainer_availability(
        session, trainer_id=trainer.id, day_of_week=3, start=time(8, 0), end=time(10, 0)
    )
    set_trainer_availability(
        session, trainer_id=trainer.id, day_of_week=3, start=time(12, 0), end=time(14, 0)
    )

    with pytest.raises(ValueError, match="Updated window overlaps"):
        update_trainer_availability(
            session, availability_id=morning.id, start=time(8, 0), end=time(13, 0)
        )

    updated = update_trainer_availability(
        session, availability_id=morning.id, start=time(7, 0), end=time(11, 0)
    )
    assert (updated.start_time, updated.end_time) == (time(7, 0), time(11, 0))
    assert trainer.availability["wednesday"][0] == {"start": "07:00", "end": "11:00"}


def test_create_trainer_builds_user_profile_and_windows(session, trainers):
    result = trainers.create_trainer(_trainer_data())

    assert result.ok, result.error
    trainer = result.data
    user = session.get(User, trainer.id)
    assert user.role == "trainer"
    assert check_password_hash(user.password_hash, "Trainer123")
    assert trainer.full_name == "Riley Cole"
    windows = session.scalars(
        select(TrainerAvailability).where(TrainerAvailability.trainer_id == trainer.id)
    ).all()
    assert sorted((w.day_of_week, w.start_time) for w in windows) == [
        (1, time(9, 0)),
        (1, time(13, 0)),
        (3, time(10, 0)),
    ]
    assert trainer.availability["monday"] == [
        {"start": "09:00", "end": "12:00"},
        {"start": "13:00", "end": "17:00"},
    ]


@pytest.mark.parametrize(
    "extra, message",
    [
        ({"specializations": []}, "specializations: At least one specialization is required"),
        ({"hourlyRate": -5}, "hourlyRate: Hourly rate cannot be negative"),
        ({"password": "short"}, "password: Password must be at least 8 characters"),
        ({"phone": "12"}, "phone: Invalid phone number format"),
    ],
)
def test_create_trainer_validation(trainers, extra, message):
    assert trainers.create_trainer(_trainer_data(**extra)).error == message


def test_create_trainer_with_overlapping_map_is_rolled_back(session, trainers):
    data = _trainer_data(
        availability={"friday": [{"start": "09:00", "end": "12:00"}, {"start": "11:00", "end": "13:00"}]}
    )

    result = trainers.create_trainer(data)

    assert result.error == "Availability window overlaps with an existing one"
    assert session.scalars(select(User)).all() == []


def test_list_trainers_filters_and_sorting(session, trainers):
    make_trainer(session, first_name="Tina", email="tina@example.com", hourly_rate=80,
                 specializations=["Strength Training"])
    make_trainer(session, first_name="Sam", email="sam@example.com", hourly_rate=40,
                 specializations=["Yoga"])
    trainers.create_trainer(_trainer_data())

    yoga = trainers.list_trainers({"specialization": "yoga"}).data
    cheap = trainers.list_trainers({"hourlyRateMax": 50}).data
    by_rate = trainers.list_trainers({"sortBy": "hourlyRate", "sortOrder": "desc"}).data
    search = trainers.list_trainers({"searchTerm": "tina"}).data

    assert sorted(t.first_name for t in yoga) == ["Riley", "Sam"]
    assert [t.first_name for t in cheap] == ["Sam"]
    assert [t.first_name for t in by_rate] == ["Tina", "Riley", "Sam"]
    assert [t.email for t in search] == ["tina@example.com"]


def test_update_trainer_replaces_availability(session, trainers):
    trainer = trainers.create_trainer(_trainer_data()).data

    result = trainers.update_trainer(
        {
            "id": trainer.id,
            "firstName": "Rylee",
            "hourlyRate": 65,
            "availability": {"saturday": [{"start": "08:00", "end": "12:00"}]},
        }
    )

    assert result.ok, result.error
    assert result.data.first_name == "Rylee"
    assert result.data.hourly_rate == 65
    assert result.data.availability == {"saturday": [{"start": "08:00", "end": "12:00"}]}
    days = session.scalars(
        select(TrainerAvailability.day_of_week).where(TrainerAvailability.trainer_id == trainer.id)
    ).all()
    assert days == [6]


def test_update_trainer_keeps_availability_when_omitted(trainers):
    trainer = trainers.create_trainer(_trainer_data()).data

    result = trainers.update_trainer({"id": trainer.id, "bio": "Mobility first"})

    assert result.data.bio == "Mobility first"
    assert set(result.data.availability) == {"monday", "wednesday"}


def test_delete_trainer_removes_user_and_windows(session, trainers):
    trainer_id = trainers.create_trainer(_trainer_data()).data.id

    assert trainers.delete_trainer(trainer_id).data is True

    assert session.get(User, trainer_id) is None
    assert session.get(Trainer, trainer_id) is None
    assert session.scalars(select(TrainerAvailability)).all() == []
    assert trainers.get_trainer(trainer_id).error == "Trainer not found"


def test_trainer_stats(session, trainers):
    trainers.create_trainer(_trainer_data())
    make_trainer(session, email="tina@example.com", hourly_rate=65, specializations=["Yoga", "HIIT"])

    stats = trainers.get_trainer_stats().data

    assert stats["total_trainers"] == 2
    assert stats["active_trainers"] == 2
    assert stats["average_hourly_rate"] == 60
    assert stats["top_specializations"][0] == {"specialization": "Yoga", "count": 2}
    assert stats["total_certifications"] == 1
    assert stats["new_this_month"] == 2


def test_availability_window_management(trainers):
    trainer = trainers.create_trainer(_trainer_data(availability={})).data

    added = trainers.add_availability(
        {"trainerId": trainer.id, "dayOfWeek": "tuesday", "startTime": "09:00", "endTime": "12:00"}
    )
    assert added.ok, added.error
    window = added.data
    assert window.day_of_week == 2

    listed = trainers.list_availability(trainer.id).data
    assert [w.id for w in listed] == [window.id]

    moved = trainers.update_availability(window.id, "10:00", "13:00")
    assert moved.data.start_time == time(10, 0)
    assert trainers.get_trainer(trainer.id).data.availability == {
        "tuesday": [{"start": "10:00", "end": "13:00"}]
    }

    removed = trainers.remove_availability(window.id)
    assert removed.data == trainer.id
    assert trainers.list_availability(trainer.id).data == []


def test_add_availability_validation(trainers):
    trainer = trainers.create_trainer(_trainer_data(availability={})).data

    result = trainers.add_availability(
        {"trainerId": trainer.id, "dayOfWeek": 9, "startTime": "09:00", "endTime": "12:00"}
    )

    assert result.error == "dayOfWeek: Day of week must be between 0 (Sunday) and 6 (Saturday)"
