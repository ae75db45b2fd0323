from datetime import date, datetime

from sqlalchemy import (
    String,
    Date,
    DateTime,
    Text,
    JSON,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, generate_uuid, utcnow

MEMBERSHIP_STATUSES = ("active", "inactive", "frozen", "cancelled")


class Member(Base):
    __tablename__ = "members"
    __table_args__ = (
        CheckConstraint(
            "membership_status IN ('active', 'inactive', 'frozen', 'cancelled')",
            name="ck_members_membership_status",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    membership_status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    # {"name": ..., "phone": ..., "relationship": ...}
    emergency_contact: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    medical_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)
    fitness_goals: Mapped[str | None] = mapped_column(Text, nullable=True)
    preferred_training_times: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    join_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    subscriptions: Mapped[list["Subscription"]] = relationship(
        back_populates="member", cascade="all, delete-orphan"
    )
    training_sessions: Mapped[list["TrainingSession"]] = relationship(
        back_populates="member", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
