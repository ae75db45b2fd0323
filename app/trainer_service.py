from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, time
from typing import Any, Optional

from sqlalchemy import select, and_, or_
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from models.scheduling import Trainer, TrainerAvailability
from models.user import User
from app.base_service import BaseService, ServiceResponse
from app.calendar_window import WEEKDAY_NAMES, get_booking_now, start_of_month, weekday_index
from app.exceptions import NotFound, ValidationFailed
from app.query_cache import query_keys
from app.schemas import (
    AvailabilityWindowInput,
    TrainerCreate,
    TrainerFilters,
    TrainerUpdate,
    parse_clock,
)

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "name": (User.first_name, User.last_name),
    "email": (User.email,),
    "hourlyRate": (Trainer.hourly_rate,),
    "createdAt": (Trainer.created_at,),
}


# ---------------------------
# 1. Availability windows
# ---------------------------

def _overlapping_window(
    session: Session,
    *,
    trainer_id: str,
    day_of_week: int,
    start: time,
    end: time,
    effective_date: Optional[date] = None,
    end_date: Optional[date] = None,
    exclude_id: Optional[str] = None,
) -> Optional[TrainerAvailability]:
    """First window on the same trainer/day whose hours and validity dates both intersect."""
    stmt = select(TrainerAvailability).where(
        TrainerAvailability.trainer_id == trainer_id,
        TrainerAvailability.day_of_week == day_of_week,
        and_(
            TrainerAvailability.start_time < end,
            TrainerAvailability.end_time > start,
        ),
    )
    if end_date is not None:
        stmt = stmt.where(
            or_(
                TrainerAvailability.effective_date.is_(None),
                TrainerAvailability.effective_date <= end_date,
            )
        )
    if effective_date is not None:
        stmt = stmt.where(
            or_(
                TrainerAvailability.end_date.is_(None),
                TrainerAvailability.end_date >= effective_date,
            )
        )
    if exclude_id:
        stmt = stmt.where(TrainerAvailability.id != exclude_id)
    return session.scalars(stmt).first()


def _sync_availability_map(session: Session, trainer: Trainer) -> None:
    """Rebuild the trainer's weekday -> slots summary from the window rows."""
    session.flush()
    windows = session.scalars(
        select(TrainerAvailability)
        .where(
            TrainerAvailability.trainer_id == trainer.id,
            TrainerAvailability.is_available.is_(True),
        )
        .order_by(TrainerAvailability.day_of_week, TrainerAvailability.start_time)
    )
    summary: dict[str, list[dict]] = {}
    for window in windows:
        summary.setdefault(WEEKDAY_NAMES[window.day_of_week], []).append(
            {"start": window.start_time.strftime("%H:%M"), "end": window.end_time.strftime("%H:%M")}
        )
    trainer.availability = summary


def set_trainer_availability(
    session: Session,
    *,
    trainer_id: str,
    day_of_week: int,
    start: time,
    end: time,
    effective_date: Optional[date] = None,
    end_date: Optional[date] = None,
    is_available: bool = True,
) -> TrainerAvailability:
    """
    Add a weekly availability window for a trainer.
    Windows for the same trainer + day_of_week may not overlap.
    Flushes but does not commit.
    """
    if start >= end:
        raise ValidationFailed("Availability start time must be before end time")
    if effective_date and end_date and end_date < effective_date:
        raise ValidationFailed("Availability end date must be on or after its effective date")

    trainer = session.get(Trainer, trainer_id)
    if not trainer:
        raise NotFound("Trainer not found")

    clash = _overlapping_window(
        session,
        trainer_id=trainer_id,
        day_of_week=day_of_week,
        start=start,
        end=end,
        effective_date=effective_date,
        end_date=end_date,
    )
    if clash is not None:
        raise ValidationFailed("Availability window overlaps with an existing one")

    avail = TrainerAvailability(
        trainer_id=trainer_id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        effective_date=effective_date,
        end_date=end_date,
        is_available=is_available,
    )
    trainer.availabilities.append(avail)
    _sync_availability_map(session, trainer)
    return avail


def update_trainer_availability(
    session: Session,
    *,
    availability_id: str,
    start: time,
    end: time,
) -> TrainerAvailability:
    """
    Update start/end of an existing availability window while keeping trainer/day fixed.
    Prevents overlaps with other windows on the same day.
    """
    if start >= end:
        raise ValidationFailed("Availability start time must be before end time")

    availability = session.get(TrainerAvailability, availability_id)
    if not availability:
        raise NotFound("Availability window not found")

    clash = _overlapping_window(
        session,
        trainer_id=availability.trainer_id,
        day_of_week=availability.day_of_week,
        start=start,
        end=end,
        effective_date=availability.effective_date,
        end_date=availability.end_date,
        exclude_id=availability.id,
    )
    if clash is not None:
        raise ValidationFailed("Updated window overlaps with an existing one")

    availability.start_time = start
    availability.end_time = end
    _sync_availability_map(session, availability.trainer)
    return availability


def _replace_weekly_availability(session: Session, trainer: Trainer, weekly: dict) -> None:
    trainer.availabilities.clear()
    session.flush()
    for day, slots in weekly.items():
        for slot in slots:
            set_trainer_availability(
                session,
                trainer_id=trainer.id,
                day_of_week=weekday_index(day),
                start=parse_clock(slot.start),
                end=parse_clock(slot.end),
            )
    _sync_availability_map(session, trainer)


# ---------------------------
# 2. Trainer service
# ---------------------------

class TrainerService(BaseService):
    not_found_message = "Trainer not found"

    def list_trainers(self, filters: Any = None) -> ServiceResponse:
        try:
            filters = self.validate_input(TrainerFilters, filters)
        except ValidationFailed as exc:
            return self.handle_error(exc)

        def load():
            stmt = select(Trainer).join(Trainer.user)
            if filters.search_term and filters.search_term.strip():
                pattern = f"%{filters.search_term.strip()}%"
                stmt = stmt.where(
                    or_(
                        User.first_name.ilike(pattern),
                        User.last_name.ilike(pattern),
                        User.email.ilike(pattern),
                    )
                )
            if filters.is_active is not None:
                stmt = stmt.where(Trainer.is_active.is_(filters.is_active))
            if filters.hourly_rate_min is not None:
                stmt = stmt.where(Trainer.hourly_rate >= filters.hourly_rate_min)
            if filters.hourly_rate_max is not None:
                stmt = stmt.where(Trainer.hourly_rate <= filters.hourly_rate_max)
            columns = SORT_COLUMNS[filters.sort_by]
            if filters.sort_order == "desc":
                columns = tuple(column.desc() for column in columns)
            trainers = list(self.session.scalars(stmt.order_by(*columns)))
            if filters.specialization:
                wanted = filters.specialization.strip().lower()
                # specializations is a JSON list; matched here to stay portable across backends
                trainers = [
                    t for t in trainers
                    if any(wanted in s.lower() for s in t.specializations or [])
                ]
            return trainers

        return self.execute_query(
            load,
            key=query_keys.trainer_list(filters.model_dump()),
            default_error="Failed to fetch trainers",
        )

    def get_trainer(self, trainer_id: str) -> ServiceResponse:
        return self.execute_query(
            lambda: self.session.get(Trainer, trainer_id),
            key=query_keys.trainer(trainer_id),
            not_found=self.not_found_message,
        )

    def create_trainer(self, data: Any) -> ServiceResponse:
        """Create the login user and the trainer profile in one transaction."""

        def mutate():
            payload = self.validate_input(TrainerCreate, data)
            user = User(
                email=payload.email,
                role="trainer",
                first_name=payload.first_name,
                last_name=payload.last_name,
                phone=payload.phone,
                password_hash=(
                    generate_password_hash(payload.password) if payload.password else None
                ),
            )
            self.session.add(user)
            self.session.flush()

            trainer = Trainer(
                id=user.id,
                specializations=payload.specializations,
                certifications=payload.certifications,
                hourly_rate=payload.hourly_rate,
                bio=payload.bio,
                years_experience=payload.years_experience,
            )
            self.session.add(trainer)
            self.session.flush()
            _replace_weekly_availability(self.session, trainer, payload.availability)
            logger.info("Created trainer %s (%s)", trainer.id, user.email)
            return trainer

        return self.execute_mutation(
            mutate, invalidate="create_trainer", default_error="Failed to create trainer"
        )

    def update_trainer(self, data: Any) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(TrainerUpdate, data)
            trainer = self.get_or_raise(Trainer, payload.id)
            changes = payload.model_dump(exclude_unset=True, exclude={"id", "availability"})

            user_fields = {k: changes.pop(k) for k in ("first_name", "last_name", "email", "phone") if k in changes}
            self.apply_changes(trainer.user, user_fields)
            self.apply_changes(trainer, changes)
            if "availability" in payload.model_fields_set:
                _replace_weekly_availability(self.session, trainer, payload.availability or {})
            self.session.flush()
            return trainer

        return self.execute_mutation(
            mutate, invalidate="update_trainer", default_error="Failed to update trainer"
        )

    def delete_trainer(self, trainer_id: str) -> ServiceResponse:
        def mutate():
            trainer = self.get_or_raise(Trainer, trainer_id)
            # deleting the user row takes the profile, windows and sessions with it
            self.session.delete(trainer.user)
            logger.info("Deleted trainer %s", trainer_id)
            return True

        return self.execute_mutation(
            mutate, invalidate="delete_trainer", default_error="Failed to delete trainer"
        )

    def get_trainer_stats(self) -> ServiceResponse:
        def load():
            trainers = list(self.session.scalars(select(Trainer)))
            month_start = datetime.combine(start_of_month(get_booking_now().date()), time.min)
            specializations = Counter(
                s for t in trainers for s in (t.specializations or [])
            )
            rates = [t.hourly_rate for t in trainers if t.hourly_rate is not None]
            return {
                "total_trainers": len(trainers),
                "active_trainers": sum(1 for t in trainers if t.is_active),
                "average_hourly_rate": round(sum(rates) / len(rates), 2) if rates else 0,
                "top_specializations": [
                    {"specialization": name, "count": count}
                    for name, count in specializations.most_common(5)
                ],
                "new_this_month": sum(1 for t in trainers if t.created_at >= month_start),
                "total_certifications": sum(len(t.certifications or []) for t in trainers),
            }

        return self.execute_query(
            load, key=query_keys.trainer_stats(), default_error="Failed to fetch trainer statistics"
        )

    # ---------------------------
    # 3. Availability management
    # ---------------------------

    def list_availability(self, trainer_id: str, day_of_week: int | None = None) -> ServiceResponse:
        def load():
            if self.session.get(Trainer, trainer_id) is None:
                raise NotFound(self.not_found_message)
            stmt = select(TrainerAvailability).where(TrainerAvailability.trainer_id == trainer_id)
            if day_of_week is not None:
                stmt = stmt.where(TrainerAvailability.day_of_week == weekday_index(day_of_week))
            return list(
                self.session.scalars(
                    stmt.order_by(TrainerAvailability.day_of_week, TrainerAvailability.start_time)
                )
            )

        key = query_keys.trainer_availability(trainer_id) + (day_of_week,)
        return self.execute_query(load, key=key)

    def add_availability(self, data: Any) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(AvailabilityWindowInput, data)
            return set_trainer_availability(
                self.session,
                trainer_id=payload.trainer_id,
                day_of_week=payload.day_of_week,
                start=payload.start_time,
                end=payload.end_time,
                effective_date=payload.effective_date,
                end_date=payload.end_date,
                is_available=payload.is_available,
            )

        return self.execute_mutation(
            mutate,
            invalidate="change_availability",
            params=lambda window: {"trainer_id": window.trainer_id},
            default_error="Failed to add availability",
        )

    def update_availability(self, availability_id: str, start, end) -> ServiceResponse:
        def mutate():
            try:
                start_t, end_t = parse_clock(start), parse_clock(end)
            except ValueError as exc:
                raise ValidationFailed(str(exc))
            return update_trainer_availability(
                self.session, availability_id=availability_id, start=start_t, end=end_t
            )

        return self.execute_mutation(
            mutate,
            invalidate="change_availability",
            params=lambda window: {"trainer_id": window.trainer_id},
            default_error="Failed to update availability",
        )

    def remove_availability(self, availability_id: str) -> ServiceResponse:
        def mutate():
            window = self.get_or_raise(
                TrainerAvailability, availability_id, "Availability window not found"
            )
            trainer = window.trainer
            trainer.availabilities.remove(window)
            _sync_availability_map(self.session, trainer)
            return trainer.id

        return self.execute_mutation(
            mutate,
            invalidate="change_availability",
            params=lambda trainer_id: {"trainer_id": trainer_id},
            default_error="Failed to remove availability",
        )
