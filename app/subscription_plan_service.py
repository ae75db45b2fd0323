from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, or_

from models.scheduling import TrainingSession  # noqa: F401 (relationship target)
from models.subscription import MembershipPlan, Subscription
from app.base_service import BaseService, ServiceResponse
from app.exceptions import ValidationFailed
from app.query_cache import query_keys
from app.schemas import PlanCreate, PlanFilters, PlanUpdate

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "name": MembershipPlan.name,
    "price": MembershipPlan.price,
    "duration": MembershipPlan.duration,
    "createdAt": MembershipPlan.created_at,
}


class SubscriptionPlanService(BaseService):
    not_found_message = "Subscription plan not found"

    def list_plans(self, filters: Any = None) -> ServiceResponse:
        try:
            filters = self.validate_input(PlanFilters, filters)
        except ValidationFailed as exc:
            return self.handle_error(exc)

        stmt = select(MembershipPlan)
        if filters.is_active is not None:
            stmt = stmt.where(MembershipPlan.is_active.is_(filters.is_active))
        if filters.duration:
            stmt = stmt.where(MembershipPlan.duration == filters.duration)
        if filters.price_min is not None:
            stmt = stmt.where(MembershipPlan.price >= filters.price_min)
        if filters.price_max is not None:
            stmt = stmt.where(MembershipPlan.price <= filters.price_max)
        if filters.includes_personal_training is not None:
            stmt = stmt.where(
                MembershipPlan.includes_personal_training.is_(filters.includes_personal_training)
            )
        if filters.search_term and filters.search_term.strip():
            pattern = f"%{filters.search_term.strip()}%"
            stmt = stmt.where(
                or_(MembershipPlan.name.ilike(pattern), MembershipPlan.description.ilike(pattern))
            )
        column = SORT_COLUMNS[filters.sort_by]
        stmt = stmt.order_by(column.desc() if filters.sort_order == "desc" else column)

        return self.execute_query(
            lambda: list(self.session.scalars(stmt)),
            key=query_keys.plan_list(filters.model_dump()),
            default_error="Failed to fetch subscription plans",
        )

    def get_plan(self, plan_id: str) -> ServiceResponse:
        return self.execute_query(
            lambda: self.session.get(MembershipPlan, plan_id),
            key=query_keys.plan(plan_id),
            not_found=self.not_found_message,
        )

    def create_plan(self, data: Any) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(PlanCreate, data)
            plan = MembershipPlan(**payload.model_dump())
            self.session.add(plan)
            self.session.flush()
            logger.info("Created plan %s (%s)", plan.name, plan.id)
            return plan

        return self.execute_mutation(
            mutate, invalidate="create_plan", default_error="Failed to create subscription plan"
        )

    def update_plan(self, data: Any) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(PlanUpdate, data)
            plan = self.get_or_raise(MembershipPlan, payload.id)
            self.apply_changes(plan, payload.model_dump(exclude_unset=True, exclude={"id"}))
            self.session.flush()
            return plan

        return self.execute_mutation(
            mutate, invalidate="update_plan", default_error="Failed to update subscription plan"
        )

    def delete_plan(self, plan_id: str) -> ServiceResponse:
        """Soft delete: the plan is deactivated, never removed, and only when nobody is on it."""

        def mutate():
            plan = self.get_or_raise(MembershipPlan, plan_id)
            in_use = self.session.scalar(
                select(Subscription.id)
                .where(Subscription.plan_id == plan_id, Subscription.status == "active")
                .limit(1)
            )
            if in_use:
                raise ValidationFailed(
                    "Cannot delete plan with active subscriptions. Please set it as inactive instead."
                )
            plan.is_active = False
            self.session.flush()
            return plan

        return self.execute_mutation(
            mutate,
            invalidate="update_plan",
            optimistic=(
                query_keys.plan_list(PlanFilters().model_dump()),
                lambda plans: [p for p in plans if p.id != plan_id],
            ),
            default_error="Failed to delete subscription plan",
        )

    def toggle_plan_status(self, plan_id: str, is_active: bool) -> ServiceResponse:
        return self.update_plan({"id": plan_id, "is_active": bool(is_active)})

    def get_plan_stats(self) -> ServiceResponse:
        def load():
            plans = list(self.session.scalars(select(MembershipPlan)))
            active_subscriptions = list(
                self.session.scalars(
                    select(Subscription).where(Subscription.status == "active")
                ).unique()
            )
            revenue = {"monthly": 0.0, "quarterly": 0.0, "annual": 0.0}
            for subscription in active_subscriptions:
                # the price the member actually pays, not the plan's list price
                if subscription.plan and subscription.plan.duration in revenue:
                    revenue[subscription.plan.duration] += subscription.price or 0
            return {
                "total_plans": len(plans),
                "active_plans": sum(1 for p in plans if p.is_active),
                "inactive_plans": sum(1 for p in plans if not p.is_active),
                "total_subscribers": len(active_subscriptions),
                "monthly_revenue": round(revenue["monthly"], 2),
                "quarterly_revenue": round(revenue["quarterly"], 2),
                "annual_revenue": round(revenue["annual"], 2),
            }

        return self.execute_query(
            load, key=query_keys.plan_stats(), default_error="Failed to fetch plan statistics"
        )
