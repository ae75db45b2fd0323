from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import Any, Iterable

from sqlalchemy import select, func, or_

from models.member import Member, MEMBERSHIP_STATUSES
from models.scheduling import TrainingSession  # noqa: F401 (relationship target)
from app.base_service import BaseService, ServiceResponse
from app.calendar_window import get_booking_now, start_of_month
from app.csv_export import (
    CsvColumn,
    export_filename,
    format_list,
    format_mapping,
    format_timestamp,
    rows_to_csv,
)
from app.exceptions import NotFound, ValidationFailed
from app.query_cache import query_keys
from app.schemas import MemberCreate, MemberFilters, MemberUpdate

logger = logging.getLogger(__name__)

# Grey scale used by the dashboard chart, darkest for the largest group.
STATUS_COLORS = {
    "active": "rgb(102 102 102)",
    "frozen": "rgb(191 191 191)",
    "inactive": "rgb(153 153 153)",
    "cancelled": "rgb(230 230 230)",
}

MEMBER_CSV_COLUMNS = [
    CsvColumn("first_name", "First Name"),
    CsvColumn("last_name", "Last Name"),
    CsvColumn("email", "Email"),
    CsvColumn("phone", "Phone"),
    CsvColumn("membership_status", "Membership Status"),
    CsvColumn("join_date", "Join Date", format_timestamp),
    CsvColumn("emergency_contact", "Emergency Contact", format_mapping),
    CsvColumn("medical_conditions", "Medical Conditions"),
    CsvColumn("fitness_goals", "Fitness Goals"),
    CsvColumn("preferred_training_times", "Preferred Training Times", format_list),
    CsvColumn("created_at", "Created Date", format_timestamp),
]


def _search_clause(term: str):
    pattern = f"%{term.strip()}%"
    return or_(
        Member.first_name.ilike(pattern),
        Member.last_name.ilike(pattern),
        (Member.first_name + " " + Member.last_name).ilike(pattern),
        Member.email.ilike(pattern),
        Member.phone.ilike(pattern),
    )


class MemberService(BaseService):
    not_found_message = "Member not found"

    # ---------------------------
    # 1. Queries
    # ---------------------------

    def _select_members(self, filters: MemberFilters):
        stmt = select(Member)
        if filters.status:
            stmt = stmt.where(Member.membership_status == filters.status)
        if filters.search_term and filters.search_term.strip():
            stmt = stmt.where(_search_clause(filters.search_term))
        if filters.join_date_from:
            stmt = stmt.where(Member.join_date >= filters.join_date_from)
        if filters.join_date_to:
            stmt = stmt.where(Member.join_date <= filters.join_date_to)
        if filters.has_emergency_contact is True:
            stmt = stmt.where(Member.emergency_contact.is_not(None))
        elif filters.has_emergency_contact is False:
            stmt = stmt.where(Member.emergency_contact.is_(None))
        return stmt.order_by(Member.created_at.desc())

    def list_members(self, filters: Any = None) -> ServiceResponse:
        try:
            filters = self.validate_input(MemberFilters, filters)
        except ValidationFailed as exc:
            return self.handle_error(exc)
        return self.execute_query(
            lambda: list(self.session.scalars(self._select_members(filters))),
            key=query_keys.member_list(filters.model_dump()),
            default_error="Failed to fetch members",
        )

    def search_members(self, term: str, limit: int = 10) -> ServiceResponse:
        if not term or not term.strip():
            return ServiceResponse(data=[])
        stmt = (
            select(Member)
            .where(_search_clause(term))
            .order_by(Member.first_name, Member.last_name)
            .limit(limit)
        )
        return self.execute_query(lambda: list(self.session.scalars(stmt)))

    def get_member(self, member_id: str) -> ServiceResponse:
        return self.execute_query(
            lambda: self.session.get(Member, member_id),
            key=query_keys.member(member_id),
            not_found=self.not_found_message,
        )

    def get_member_stats(self) -> ServiceResponse:
        def load():
            counts = dict(
                self.session.execute(
                    select(Member.membership_status, func.count(Member.id))
                    .group_by(Member.membership_status)
                ).all()
            )
            now = get_booking_now()
            month_start = datetime.combine(start_of_month(now.date()), time.min)
            new_this_month = self.session.scalar(
                select(func.count(Member.id)).where(Member.created_at >= month_start)
            )
            new_this_week = self.session.scalar(
                select(func.count(Member.id)).where(Member.created_at >= now - timedelta(days=7))
            )
            return {
                "total_members": sum(counts.values()),
                "active_members": counts.get("active", 0),
                "inactive_members": counts.get("inactive", 0),
                "frozen_members": counts.get("frozen", 0),
                "cancelled_members": counts.get("cancelled", 0),
                "new_this_month": new_this_month or 0,
                "new_this_week": new_this_week or 0,
            }

        return self.execute_query(
            load,
            key=query_keys.member_stats(),
            default_error="Failed to fetch member statistics",
        )

    def get_status_distribution(self) -> ServiceResponse:
        """Share of members per status for the dashboard chart; empty buckets are left out."""
        stats = self.get_member_stats()
        if not stats.ok:
            return stats
        total = stats.data["total_members"]
        if total == 0:
            return ServiceResponse(data=[])
        distribution = []
        for status in ("active", "frozen", "inactive", "cancelled"):
            count = stats.data[f"{status}_members"]
            if count > 0:
                distribution.append(
                    {
                        "status": status.capitalize(),
                        "count": count,
                        "percentage": round(count / total * 100),
                        "color": STATUS_COLORS[status],
                    }
                )
        return ServiceResponse(data=distribution)

    def get_recent_activities(self, limit: int = 10) -> ServiceResponse:
        def load():
            members = self.session.scalars(
                select(Member).order_by(Member.created_at.desc()).limit(limit)
            )
            return [
                {
                    "type": "member_joined",
                    "title": "New member registration",
                    "description": f"{m.full_name} joined",
                    "member_name": m.full_name,
                    "status": m.membership_status,
                    "timestamp": m.created_at.isoformat(),
                }
                for m in members
            ]

        return self.execute_query(
            load,
            key=("members", "activities", limit),
            default_error="Failed to fetch recent activities",
        )

    def export_members_csv(self, filters: Any = None) -> ServiceResponse:
        """Render the filtered member list as CSV; data is {"filename", "content"}."""
        result = self.list_members(filters)
        if not result.ok:
            return result
        if not result.data:
            return ServiceResponse(error="No members found to export", code="not_found")
        return ServiceResponse(
            data={
                "filename": export_filename("members", get_booking_now().date()),
                "content": rows_to_csv(result.data, MEMBER_CSV_COLUMNS),
                "count": len(result.data),
            }
        )

    # ---------------------------
    # 2. Create / update / delete
    # ---------------------------

    def create_member(self, data: Any) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(MemberCreate, data)
            values = payload.model_dump(exclude={"emergency_contact"})
            values["join_date"] = payload.join_date or get_booking_now().date()
            member = Member(
                **values,
                emergency_contact=(
                    payload.emergency_contact.model_dump() if payload.emergency_contact else None
                ),
            )
            self.session.add(member)
            self.session.flush()
            logger.info("Created member %s", member.id)
            return member

        return self.execute_mutation(
            mutate, invalidate="create_member", default_error="Failed to create member"
        )

    def update_member(self, data: Any) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(MemberUpdate, data)
            member = self.get_or_raise(Member, payload.id)
            changes = payload.model_dump(exclude_unset=True, exclude={"id"})
            self.apply_changes(member, changes)
            self.session.flush()
            return member

        return self.execute_mutation(
            mutate, invalidate="update_member", default_error="Failed to update member"
        )

    def delete_member(self, member_id: str) -> ServiceResponse:
        def mutate():
            member = self.get_or_raise(Member, member_id)
            self.session.delete(member)
            logger.info("Deleted member %s", member_id)
            return True

        return self.execute_mutation(
            mutate,
            invalidate="delete_member",
            optimistic=(
                query_keys.member_list(),
                lambda members: [m for m in members if m.id != member_id],
            ),
            default_error="Failed to delete member",
        )

    def delete_members(self, member_ids: Iterable[str]) -> ServiceResponse:
        ids = [member_id for member_id in (member_ids or []) if member_id]
        if not ids:
            return self.handle_error(ValidationFailed("Invalid member IDs provided"))

        def mutate():
            members = list(self.session.scalars(select(Member).where(Member.id.in_(ids))))
            if not members:
                raise NotFound("No matching members found")
            for member in members:
                self.session.delete(member)
            return {"deleted": len(members)}

        wanted = set(ids)
        return self.execute_mutation(
            mutate,
            invalidate="delete_member",
            optimistic=(
                query_keys.member_list(),
                lambda members: [m for m in members if m.id not in wanted],
            ),
            default_error="Failed to delete members",
        )

    # ---------------------------
    # 3. Membership status
    # ---------------------------

    def _set_status(self, member_id: str, status: str) -> ServiceResponse:
        if status not in MEMBERSHIP_STATUSES:
            return self.handle_error(ValidationFailed(f"Invalid membership status: {status}"))

        def mutate():
            member = self.get_or_raise(Member, member_id)
            member.membership_status = status
            self.session.flush()
            return member

        return self.execute_mutation(
            mutate,
            invalidate="update_member",
            default_error="Failed to update membership status",
        )

    def freeze_member(self, member_id: str) -> ServiceResponse:
        return self._set_status(member_id, "frozen")

    def unfreeze_member(self, member_id: str) -> ServiceResponse:
        return self._set_status(member_id, "active")

    def cancel_membership(self, member_id: str) -> ServiceResponse:
        return self._set_status(member_id, "cancelled")

    def reactivate_member(self, member_id: str) -> ServiceResponse:
        return self._set_status(member_id, "active")
