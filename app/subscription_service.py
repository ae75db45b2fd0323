from __future__ import annotations

import calendar
import logging
from collections import Counter
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select

from models.member import Member
from models.scheduling import TrainingSession  # noqa: F401 (relationship target)
from models.subscription import MembershipPlan, Subscription
from app.base_service import BaseService, ServiceResponse
from app.calendar_window import get_booking_now, parse_day
from app.exceptions import ValidationFailed
from app.query_cache import query_keys
from app.schemas import SubscriptionCreate, SubscriptionUpdate

logger = logging.getLogger(__name__)

PLAN_LENGTH_MONTHS = {"monthly": 1, "quarterly": 3, "annual": 12}
EXPIRING_WINDOW_DAYS = 30


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_end_date(start: date | str, duration: str) -> date:
    if duration not in PLAN_LENGTH_MONTHS:
        raise ValidationFailed(f"Unknown plan duration: {duration}")
    return add_months(parse_day(start), PLAN_LENGTH_MONTHS[duration])


class SubscriptionService(BaseService):
    not_found_message = "Subscription not found"

    # ---------------------------
    # Reads
    # ---------------------------

    def get_active_plans(self) -> ServiceResponse:
        stmt = (
            select(MembershipPlan)
            .where(MembershipPlan.is_active.is_(True))
            .order_by(MembershipPlan.price)
        )
        return self.execute_query(
            lambda: list(self.session.scalars(stmt)),
            key=("plans", "active"),
            default_error="Failed to fetch membership plans",
        )

    def get_member_subscriptions(self, member_id: str) -> ServiceResponse:
        stmt = (
            select(Subscription)
            .where(Subscription.member_id == member_id)
            .order_by(Subscription.created_at.desc())
        )
        return self.execute_query(
            lambda: list(self.session.scalars(stmt).unique()),
            key=query_keys.member_subscriptions(member_id),
            default_error="Failed to fetch subscriptions",
        )

    def get_subscription(self, subscription_id: str) -> ServiceResponse:
        return self.execute_query(
            lambda: self.session.get(Subscription, subscription_id),
            key=("subscriptions", "detail", subscription_id),
            not_found=self.not_found_message,
        )

    def list_subscriptions(self, *, status: str | None = None, search: str | None = None) -> ServiceResponse:
        """Admin listing with member and plan attached; ``search`` matches member name/email or plan name."""

        def load():
            stmt = select(Subscription).order_by(Subscription.created_at.desc())
            if status:
                stmt = stmt.where(Subscription.status == status)
            subscriptions = list(self.session.scalars(stmt).unique())
            if search and search.strip():
                term = search.strip().lower()
                subscriptions = [
                    s for s in subscriptions
                    if term in (s.member_name or "").lower()
                    or term in (s.member_email or "").lower()
                    or term in (s.plan_name or "").lower()
                ]
            return subscriptions

        return self.execute_query(
            load,
            key=("subscriptions", "list", status, search),
            default_error="Failed to fetch subscriptions",
        )

    def get_subscription_stats(self) -> ServiceResponse:
        def load():
            subscriptions = list(self.session.scalars(select(Subscription)).unique())
            horizon = get_booking_now().date() + timedelta(days=EXPIRING_WINDOW_DAYS)
            active = [s for s in subscriptions if s.status == "active"]
            return {
                "total_subscriptions": len(subscriptions),
                "active_subscriptions": len(active),
                "expiring_soon": sum(1 for s in active if s.end_date <= horizon),
                "total_revenue": round(sum(s.price or 0 for s in active), 2),
                "status_distribution": dict(Counter(s.status for s in subscriptions)),
                "plan_distribution": dict(
                    Counter(s.plan_name or "Unknown Plan" for s in subscriptions)
                ),
            }

        return self.execute_query(
            load,
            key=query_keys.subscription_stats(),
            default_error="Failed to fetch subscription statistics",
        )

    # ---------------------------
    # Writes
    # ---------------------------

    def create_subscription(self, data: Any) -> ServiceResponse:
        """
        Start a subscription. Without an explicit end date it runs for the
        plan's duration; without a price it uses the plan's current price.
        """

        def mutate():
            payload = self.validate_input(SubscriptionCreate, data)
            self.get_or_raise(Member, payload.member_id, "Member not found")
            plan = self.get_or_raise(MembershipPlan, payload.plan_id, "Subscription plan not found")
            if not plan.is_active:
                raise ValidationFailed("This plan is no longer offered")

            subscription = Subscription(
                member_id=payload.member_id,
                plan_id=plan.id,
                status="active",
                start_date=payload.start_date,
                end_date=payload.end_date or calculate_end_date(payload.start_date, plan.duration),
                auto_renew=payload.auto_renew,
                price=payload.price if payload.price is not None else plan.price,
            )
            self.session.add(subscription)
            self.session.flush()
            logger.info("Member %s subscribed to plan %s", payload.member_id, plan.name)
            return subscription

        return self.execute_mutation(
            mutate,
            invalidate="create_subscription",
            params=lambda s: {"member_id": s.member_id},
            default_error="Failed to create subscription",
        )

    def update_subscription(self, data: Any) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(SubscriptionUpdate, data)
            subscription = self.get_or_raise(Subscription, payload.id)
            changes = payload.model_dump(exclude_unset=True, exclude={"id"})
            end_date = changes.get("end_date")
            if end_date is not None and end_date <= subscription.start_date:
                raise ValidationFailed("endDate: End date must be after start date")
            self.apply_changes(subscription, changes)
            self.session.flush()
            return subscription

        return self.execute_mutation(
            mutate, invalidate="update_subscription", default_error="Failed to update subscription"
        )

    def _set_status(self, subscription_id: str, status: str) -> ServiceResponse:
        return self.update_subscription({"id": subscription_id, "status": status})

    def cancel_subscription(self, subscription_id: str) -> ServiceResponse:
        return self._set_status(subscription_id, "cancelled")

    def freeze_subscription(self, subscription_id: str) -> ServiceResponse:
        return self._set_status(subscription_id, "frozen")

    def reactivate_subscription(self, subscription_id: str) -> ServiceResponse:
        return self._set_status(subscription_id, "active")
