from datetime import date, datetime, time

from sqlalchemy import (
    Integer,
    String,
    Date,
    DateTime,
    Time,
    Text,
    JSON,
    ForeignKey,
    Boolean,
    Numeric,
    CheckConstraint,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, generate_uuid, utcnow
from . import member, subscription, user  # noqa: F401 (relationship targets)

SESSION_TYPES = (
    "personal",
    "group",
    "class",
    "assessment",
    "consultation",
    "rehabilitation",
)
COMMENT_TYPES = (
    "note",
    "progress",
    "issue",
    "goal",
    "equipment",
    "feedback",
    "reminder",
)


class Trainer(Base):
    """Trainer profile attached to a ``users`` row; shares its id."""

    __tablename__ = "trainers"
    __table_args__ = (
        CheckConstraint("hourly_rate >= 0", name="ck_trainers_hourly_rate"),
    )

    id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    specializations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    certifications: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    hourly_rate: Mapped[float] = mapped_column(
        Numeric(8, 2, asdecimal=False), nullable=False, default=50
    )
    # weekday name -> [{"start": "09:00", "end": "17:00"}]; mirrors trainer_availability
    availability: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    years_experience: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship(back_populates="trainer_profile", lazy="joined")
    availabilities: Mapped[list["TrainerAvailability"]] = relationship(
        "TrainerAvailability",
        back_populates="trainer",
        cascade="all, delete-orphan",
        order_by=lambda: [TrainerAvailability.day_of_week, TrainerAvailability.start_time],
    )
    training_sessions: Mapped[list["TrainingSession"]] = relationship(
        back_populates="trainer",
        cascade="all, delete-orphan",
    )

    @property
    def first_name(self) -> str:
        return self.user.first_name

    @property
    def last_name(self) -> str:
        return self.user.last_name

    @property
    def email(self) -> str:
        return self.user.email

    @property
    def phone(self) -> str | None:
        return self.user.phone

    @property
    def full_name(self) -> str:
        return self.user.full_name


class TrainerAvailability(Base):
    __tablename__ = "trainer_availability"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_trainer_availability_day"),
        CheckConstraint("start_time < end_time", name="ck_trainer_availability_window"),
        UniqueConstraint(
            "trainer_id",
            "day_of_week",
            "start_time",
            "effective_date",
            name="uq_trainer_availability_slot",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    trainer_id: Mapped[str] = mapped_column(
        ForeignKey("trainers.id", ondelete="CASCADE"), nullable=False
    )
    # 0 = Sunday ... 6 = Saturday
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    trainer: Mapped["Trainer"] = relationship(back_populates="availabilities")


class TrainingSession(Base):
    __tablename__ = "training_sessions"
    __table_args__ = (
        CheckConstraint("duration BETWEEN 15 AND 480", name="ck_training_sessions_duration"),
        CheckConstraint("cost >= 0", name="ck_training_sessions_cost"),
        CheckConstraint(
            "member_rating IS NULL OR member_rating BETWEEN 1 AND 5",
            name="ck_training_sessions_member_rating",
        ),
        CheckConstraint(
            "trainer_rating IS NULL OR trainer_rating BETWEEN 1 AND 5",
            name="ck_training_sessions_trainer_rating",
        ),
        Index("ix_training_sessions_trainer_window", "trainer_id", "scheduled_date", "scheduled_end"),
        Index("ix_training_sessions_member_date", "member_id", "scheduled_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    member_id: Mapped[str] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    trainer_id: Mapped[str] = mapped_column(
        ForeignKey("trainers.id", ondelete="CASCADE"), nullable=False
    )
    session_type: Mapped[str] = mapped_column("type", String(20), nullable=False, default="personal")
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    scheduled_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    # scheduled_date + duration, kept in sync by the session service
    scheduled_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")

    cost: Mapped[float | None] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=True)
    session_room: Mapped[str | None] = mapped_column(String(50), nullable=True)
    equipment_needed: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    session_goals: Mapped[str | None] = mapped_column(Text, nullable=True)
    preparation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recurring_pattern: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), nullable=True)

    actual_start_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_end_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completion_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    member_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trainer_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_by: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    member: Mapped["Member"] = relationship(back_populates="training_sessions")
    trainer: Mapped["Trainer"] = relationship(back_populates="training_sessions")
    comments: Mapped[list["SessionComment"]] = relationship(
        back_populates="training_session",
        cascade="all, delete-orphan",
        order_by="SessionComment.created_at",
    )


class SessionComment(Base):
    __tablename__ = "session_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    comment_type: Mapped[str] = mapped_column(String(20), nullable=False, default="note")
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    training_session: Mapped["TrainingSession"] = relationship(back_populates="comments")
    author: Mapped["User | None"] = relationship()
