from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, Tuple

from werkzeug.security import generate_password_hash

from models.member import Member
from models.subscription import MembershipPlan
from models.scheduling import Trainer, TrainerAvailability, TrainingSession
from models.user import User

# (day_of_week with 0 = Sunday, start, end)
AvailabilityWindow = Tuple[int, time, time]

MONDAY = 1


def next_monday(hour: int = 10, minute: int = 0, *, weeks: int = 1) -> datetime:
    """A Monday at least a week out, as naive UTC (tests run with STUDIO_TIMEZONE=UTC)."""
    today = date.today()
    monday = today + timedelta(days=(7 - today.weekday()) % 7 or 7, weeks=weeks - 1)
    return datetime.combine(monday, time(hour, minute))


def make_user(session, *, email="admin@example.com", role="admin", password="Secret123") -> User:
    user = User(
        email=email,
        role=role,
        first_name="Ada",
        last_name="Admin",
        password_hash=generate_password_hash(password),
    )
    session.add(user)
    session.commit()
    return user


def make_trainer(
    session,
    *,
    first_name="Tina",
    last_name="Trainer",
    email="trainer@example.com",
    hourly_rate=60.0,
    specializations=("Strength Training",),
) -> Trainer:
    user = User(email=email, role="trainer", first_name=first_name, last_name=last_name)
    session.add(user)
    session.flush()
    trainer = Trainer(id=user.id, specializations=list(specializations), hourly_rate=hourly_rate)
    session.add(trainer)
    session.commit()
    return trainer


def make_member(session, *, first_name="Alice", last_name="Member", email="alice@example.com", **extra) -> Member:
    member = Member(first_name=first_name, last_name=last_name, email=email, **extra)
    session.add(member)
    session.commit()
    return member


def add_trainer_availability(
    session,
    trainer: Trainer,
    *,
    windows: Iterable[AvailabilityWindow] | None = None,
    start_hour: int = 6,
    end_hour: int = 21,
) -> list[TrainerAvailability]:
    """
    Ensure a trainer has availability windows persisted for upcoming checks.

    By default this seeds every day of week with a wide-open window so tests
    can book sessions without thinking about scheduling.
    Custom windows can be supplied to model specific availability constraints.
    """
    if trainer.id is None:
        raise ValueError("Trainer must be persisted before adding availability")

    if windows is None:
        windows = [
            (day, time(start_hour, 0), time(end_hour, 0))
            for day in range(7)
        ]

    availabilities = [
        TrainerAvailability(
            trainer_id=trainer.id,
            day_of_week=day,
            start_time=start,
            end_time=end,
        )
        for day, start, end in windows
    ]
    session.add_all(availabilities)
    session.commit()
    return availabilities


def make_plan(
    session,
    *,
    name="Basic Monthly",
    price=49.99,
    duration="monthly",
    features=("Gym access",),
    is_active=True,
    **extra,
) -> MembershipPlan:
    plan = MembershipPlan(
        name=name,
        price=price,
        duration=duration,
        features=list(features),
        is_active=is_active,
        **extra,
    )
    session.add(plan)
    session.commit()
    return plan


def make_training_session(session, trainer, member, *, start=None, duration=60, status="scheduled") -> TrainingSession:
    """Persist a session row directly, skipping the booking checks."""
    start = start or next_monday()
    row = TrainingSession(
        trainer_id=trainer.id,
        member_id=member.id,
        title="Personal Training",
        scheduled_date=start,
        duration=duration,
        scheduled_end=start + timedelta(minutes=duration),
        status=status,
    )
    session.add(row)
    session.commit()
    return row
