from datetime import date, datetime

from sqlalchemy import (
    Integer,
    String,
    Date,
    DateTime,
    Boolean,
    Numeric,
    Text,
    JSON,
    ForeignKey,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, generate_uuid, utcnow

PLAN_DURATIONS = ("monthly", "quarterly", "annual")
SUBSCRIPTION_STATUSES = ("active", "cancelled", "frozen", "expired")


class MembershipPlan(Base):
    __tablename__ = "membership_plans"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_membership_plans_price"),
        CheckConstraint(
            "duration IN ('monthly', 'quarterly', 'annual')",
            name="ck_membership_plans_duration",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    duration: Mapped[str] = mapped_column(String(20), nullable=False)
    features: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    max_sessions_per_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    includes_personal_training: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    subscriptions: Mapped[list["Subscription"]] = relationship(back_populates="plan")


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_subscriptions_price"),
        CheckConstraint(
            "status IN ('active', 'cancelled', 'frozen', 'expired')",
            name="ck_subscriptions_status",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    member_id: Mapped[str] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plan_id: Mapped[str] = mapped_column(ForeignKey("membership_plans.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    auto_renew: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    member: Mapped["Member"] = relationship(back_populates="subscriptions", lazy="joined")
    plan: Mapped["MembershipPlan"] = relationship(back_populates="subscriptions", lazy="joined")

    @property
    def member_name(self) -> str | None:
        return self.member.full_name if self.member else None

    @property
    def member_email(self) -> str | None:
        return self.member.email if self.member else None

    @property
    def plan_name(self) -> str | None:
        return self.plan.name if self.plan else None

    @property
    def plan_duration(self) -> str | None:
        return self.plan.duration if self.plan else None
