from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.base import Base, engine, get_session
from models.subscription import MembershipPlan
from app import init_db
from app.base_service import ServiceResponse
from app.calendar_window import get_booking_now, studio_zone, to_studio_time
from app.member_service import MemberService
from app.query_cache import QueryCache
from app.session_service import SessionService
from app.subscription_service import SubscriptionService
from app.trainer_service import TrainerService

logger = logging.getLogger(__name__)

DEFAULT_MEMBERSHIP_PLANS = [
    {
        "name": "Basic Monthly",
        "description": "Perfect for getting started with your fitness journey",
        "price": 29.99,
        "duration": "monthly",
        "features": [
            "Gym access during regular hours",
            "Basic equipment use",
            "Locker room access",
            "Free initial fitness assessment",
        ],
    },
    {
        "name": "Premium Monthly",
        "description": "Enhanced experience with additional perks",
        "price": 59.99,
        "duration": "monthly",
        "features": [
            "24/7 gym access",
            "All equipment including premium machines",
            "Group fitness classes",
            "Locker room with towel service",
            "Free personal training consultation",
            "Guest passes (2/month)",
        ],
    },
    {
        "name": "Elite Monthly",
        "description": "Ultimate fitness experience with premium services",
        "price": 99.99,
        "duration": "monthly",
        "features": [
            "24/7 gym access",
            "VIP area access",
            "Unlimited group classes",
            "Premium locker room with amenities",
            "Monthly personal training session",
            "Nutritional consultation",
            "Priority booking",
            "Unlimited guest passes",
        ],
        "includes_personal_training": True,
    },
    {
        "name": "Basic Quarterly",
        "description": "Three months of basic access with savings",
        "price": 79.99,
        "duration": "quarterly",
        "features": [
            "Gym access during regular hours",
            "Basic equipment use",
            "Locker room access",
            "Free initial fitness assessment",
            "Quarterly progress review",
        ],
    },
    {
        "name": "Premium Quarterly",
        "description": "Three months of premium features at a discounted rate",
        "price": 159.99,
        "duration": "quarterly",
        "features": [
            "24/7 gym access",
            "All equipment including premium machines",
            "Group fitness classes",
            "Locker room with towel service",
            "Free personal training consultation",
            "Guest passes (2/month)",
            "Quarterly body composition analysis",
        ],
    },
    {
        "name": "Basic Annual",
        "description": "Full year of fitness with maximum savings",
        "price": 299.99,
        "duration": "annual",
        "features": [
            "Gym access during regular hours",
            "Basic equipment use",
            "Locker room access",
            "Free initial fitness assessment",
            "Quarterly progress reviews",
            "Annual health screening",
        ],
    },
    {
        "name": "Premium Annual",
        "description": "Complete yearly package with premium benefits",
        "price": 599.99,
        "duration": "annual",
        "features": [
            "24/7 gym access",
            "All equipment including premium machines",
            "Unlimited group fitness classes",
            "Locker room with towel service",
            "Monthly personal training session",
            "Guest passes (2/month)",
            "Quarterly body composition analysis",
            "Annual nutritional consultation",
        ],
        "includes_personal_training": True,
    },
    {
        "name": "Elite Annual",
        "description": "The ultimate yearly fitness package",
        "price": 999.99,
        "duration": "annual",
        "features": [
            "24/7 gym access",
            "VIP area access",
            "Unlimited group classes",
            "Premium locker room with amenities",
            "Bi-weekly personal training sessions",
            "Monthly nutritional consultation",
            "Priority booking",
            "Unlimited guest passes",
            "Annual health screening",
            "Fitness gear allowance",
        ],
        "includes_personal_training": True,
    },
]

WEEKDAY_HOURS = {
    day: [{"start": "09:00", "end": "17:00"}]
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
}


def _unwrap(response: ServiceResponse):
    if not response.ok:
        raise RuntimeError(response.error)
    return response.data


def seed_membership_plans(session: Session) -> list[MembershipPlan]:
    """Insert the default plans whose names are not present yet. Returns the new rows."""
    existing = set(session.scalars(select(MembershipPlan.name)))
    created = []
    for plan_values in DEFAULT_MEMBERSHIP_PLANS:
        if plan_values["name"] in existing:
            continue
        plan = MembershipPlan(is_active=True, **plan_values)
        session.add(plan)
        created.append(plan)
    session.commit()
    logger.info("Seeded %d membership plans", len(created))
    return created


def clear_all_data() -> None:
    """Drop and recreate all tables, including the exclusion constraint."""
    Base.metadata.drop_all(bind=engine)
    init_db.init_db()


def _next_weekday_at(weekday: int, hour: int, *, weeks_ahead: int = 0) -> datetime:
    """Next studio-local Monday..Sunday (0 = Monday here) at ``hour``, as an aware datetime."""
    today = to_studio_time(get_booking_now()).date()
    days = (weekday - today.weekday()) % 7 or 7
    day = today + timedelta(days=days, weeks=weeks_ahead)
    return datetime(day.year, day.month, day.day, hour, tzinfo=studio_zone())


def seed_demo_data(session: Session) -> dict[str, int]:
    """Populate plans, trainers, members, subscriptions and sessions through the services."""
    cache = QueryCache()
    seed_membership_plans(session)
    plans = {p.name: p for p in session.scalars(select(MembershipPlan))}

    trainer_service = TrainerService(session, cache)
    member_service = MemberService(session, cache)
    subscription_service = SubscriptionService(session, cache)
    session_service = SessionService(session, cache)

    # Trainers
    trainer_specs = [
        ("Tina", "Ray", "tina.ray@example.com", ["Strength Training", "Weight Loss"], 65),
        ("Riley", "Cole", "riley.cole@example.com", ["Yoga", "Rehabilitation"], 55),
        ("Morgan", "Lee", "morgan.lee@example.com", ["HIIT", "Nutrition"], 70),
    ]
    trainers = []
    for first_name, last_name, email, specializations, rate in trainer_specs:
        trainers.append(
            _unwrap(
                trainer_service.create_trainer(
                    {
                        "firstName": first_name,
                        "lastName": last_name,
                        "email": email,
                        "phone": "+1 555 010 0000",
                        "specializations": specializations,
                        "hourlyRate": rate,
                        "availability": WEEKDAY_HOURS,
                        "password": "Trainer123",
                    }
                )
            )
        )

    # Members
    member_specs = [
        ("Avery", "Stone", "avery@example.com", "Lean muscle focus"),
        ("Blake", "Summers", "blake@example.com", "Prep for a half marathon"),
        ("Casey", "Rivera", "casey@example.com", "Improve endurance"),
        ("Dakota", "Reed", "dakota@example.com", "Lose 5kg"),
        ("Emery", "Shaw", "emery@example.com", "Maintain weight"),
    ]
    members = []
    for first_name, last_name, email, goals in member_specs:
        members.append(
            _unwrap(
                member_service.create_member(
                    {
                        "firstName": first_name,
                        "lastName": last_name,
                        "email": email,
                        "phone": "+1-555-0123",
                        "fitnessGoals": goals,
                        "preferredTrainingTimes": ["morning"],
                        "emergencyContact": {
                            "name": "Jordan Stone",
                            "phone": "+1-555-0456",
                            "relationship": "Spouse",
                        },
                    }
                )
            )
        )

    # Subscriptions
    plan_cycle = ["Basic Monthly", "Premium Monthly", "Premium Quarterly", "Elite Annual"]
    today = get_booking_now().date()
    for index, member in enumerate(members):
        plan = plans[plan_cycle[index % len(plan_cycle)]]
        _unwrap(
            subscription_service.create_subscription(
                {"memberId": member.id, "planId": plan.id, "startDate": today.isoformat()}
            )
        )

    # Sessions: one per member next week, the first one confirmed
    sessions = []
    for index, member in enumerate(members):
        trainer = trainers[index % len(trainers)]
        start = _next_weekday_at(index % 5, 9 + index)
        sessions.append(
            _unwrap(
                session_service.create_session(
                    {
                        "memberId": member.id,
                        "trainerId": trainer.id,
                        "type": "personal",
                        "title": f"Personal training with {trainer.first_name}",
                        "scheduledDate": start,
                        "duration": 60,
                        "cost": float(trainer.hourly_rate),
                        "sessionRoom": "Studio A",
                    }
                )
            )
        )
    _unwrap(session_service.confirm_session(sessions[0].id))

    counts = {
        "trainers": len(trainers),
        "members": len(members),
        "plans": len(plans),
        "sessions": len(sessions),
    }
    logger.info("Demo data seeded: %s", counts)
    return counts


def reset_demo_data() -> dict[str, int]:
    clear_all_data()
    with get_session() as session:
        return seed_demo_data(session)
