from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select

from models.member import Member
from models.scheduling import Trainer, TrainingSession
from app.base_service import BaseService, ServiceResponse
from app.calendar_window import get_booking_now
from app.conflict_checker import ConflictReport, check_conflicts
from app.exceptions import InvalidTransition, NotFound, ScheduleConflict, ValidationFailed
from app.query_cache import query_keys
from app.schemas import (
    ConflictCheckRequest,
    SessionCompletion,
    SessionCreate,
    SessionFilters,
    SessionReschedule,
    SessionUpdate,
)
from app.session_lifecycle import (
    SessionStatus,
    apply_transition,
    ensure_transition,
    is_terminal,
)
from app.session_utils import calculate_end_time, default_duration

logger = logging.getLogger(__name__)

UPCOMING_STATUSES = (
    SessionStatus.SCHEDULED.value,
    SessionStatus.CONFIRMED.value,
    SessionStatus.RESCHEDULED.value,
)


class SessionService(BaseService):
    """Training sessions: booking with conflict checks, edits and lifecycle actions."""

    not_found_message = "Training session not found"

    # ---------------------------
    # Reads
    # ---------------------------

    def _select_sessions(self, filters: SessionFilters):
        stmt = select(TrainingSession)
        if filters.member_id:
            stmt = stmt.where(TrainingSession.member_id == filters.member_id)
        if filters.trainer_id:
            stmt = stmt.where(TrainingSession.trainer_id == filters.trainer_id)
        if filters.status:
            stmt = stmt.where(TrainingSession.status == filters.status)
        if filters.session_type:
            stmt = stmt.where(TrainingSession.session_type == filters.session_type)
        if filters.session_room:
            stmt = stmt.where(TrainingSession.session_room == filters.session_room)
        if filters.start_date:
            stmt = stmt.where(TrainingSession.scheduled_date >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(TrainingSession.scheduled_date <= filters.end_date)
        return stmt.order_by(TrainingSession.scheduled_date)

    def list_sessions(self, filters: Any = None) -> ServiceResponse:
        try:
            filters = self.validate_input(SessionFilters, filters)
        except ValidationFailed as exc:
            return self.handle_error(exc)
        return self.execute_query(
            lambda: list(self.session.scalars(self._select_sessions(filters))),
            key=query_keys.session_list(filters.model_dump()),
            default_error="Failed to load sessions",
        )

    def get_sessions_by_date_range(self, start, end, **filters) -> ServiceResponse:
        return self.list_sessions({**filters, "start_date": start, "end_date": end})

    def get_member_sessions(self, member_id: str, start=None, end=None) -> ServiceResponse:
        return self.list_sessions({"member_id": member_id, "start_date": start, "end_date": end})

    def get_trainer_sessions(self, trainer_id: str, start=None, end=None) -> ServiceResponse:
        return self.list_sessions({"trainer_id": trainer_id, "start_date": start, "end_date": end})

    def get_session(self, session_id: str) -> ServiceResponse:
        return self.execute_query(
            lambda: self.session.get(TrainingSession, session_id),
            key=query_keys.session(session_id),
            not_found=self.not_found_message,
        )

    def get_recent_sessions(self, limit: int = 10) -> ServiceResponse:
        stmt = (
            select(TrainingSession)
            .order_by(TrainingSession.created_at.desc())
            .limit(limit)
        )
        return self.execute_query(
            lambda: list(self.session.scalars(stmt)),
            key=("sessions", "recent", limit),
        )

    def get_session_stats(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        *,
        trainer_id: str | None = None,
        member_id: str | None = None,
    ) -> ServiceResponse:
        def load():
            filters = SessionFilters(
                start_date=start, end_date=end, trainer_id=trainer_id, member_id=member_id
            )
            sessions = list(self.session.scalars(self._select_sessions(filters)))
            now = get_booking_now()
            total = len(sessions)
            completed = sum(1 for s in sessions if s.status == SessionStatus.COMPLETED.value)
            ratings = [s.member_rating for s in sessions if s.member_rating]
            return {
                "total_sessions": total,
                "completed_sessions": completed,
                "cancelled_sessions": sum(
                    1 for s in sessions if s.status == SessionStatus.CANCELLED.value
                ),
                "no_show_sessions": sum(
                    1 for s in sessions if s.status == SessionStatus.NO_SHOW.value
                ),
                "upcoming_sessions": sum(
                    1 for s in sessions
                    if s.status in UPCOMING_STATUSES and s.scheduled_date > now
                ),
                "completion_rate": round(completed / total * 100, 1) if total else 0,
                "average_rating": round(sum(ratings) / len(ratings), 1) if ratings else 0,
            }

        key = query_keys.session_stats(
            {"start": start, "end": end, "trainer": trainer_id, "member": member_id}
        )
        return self.execute_query(load, key=key, default_error="Failed to load session stats")

    def check_conflicts(
        self,
        trainer_id: str,
        scheduled_date,
        duration: int,
        exclude_session_id: str | None = None,
    ) -> ServiceResponse:
        """Read-only check used by the booking form before submitting."""
        try:
            request = self.validate_input(
                ConflictCheckRequest,
                {
                    "trainer_id": trainer_id,
                    "scheduled_date": scheduled_date,
                    "duration": duration,
                    "exclude_session_id": exclude_session_id,
                },
            )
            report = check_conflicts(
                self.session,
                request.trainer_id,
                request.scheduled_date,
                request.duration,
                exclude_session_id=request.exclude_session_id,
            )
        except Exception as exc:
            return self.handle_error(exc, "Failed to check conflicts")
        if not report.verified:
            self.session.rollback()
        return ServiceResponse(data=report)

    # ---------------------------
    # Writes
    # ---------------------------

    def _lock_trainer(self, trainer_id: str) -> str:
        """Serialize bookings per trainer by locking the trainer row for this transaction."""
        locked = self.session.scalar(
            select(Trainer.id).where(Trainer.id == trainer_id).with_for_update()
        )
        if locked is None:
            raise NotFound("Trainer not found")
        return locked

    def _checked_slot(
        self,
        trainer_id: str,
        start: datetime,
        duration: int,
        *,
        exclude_session_id: str | None = None,
    ) -> ConflictReport:
        report = check_conflicts(
            self.session, trainer_id, start, duration, exclude_session_id=exclude_session_id
        )
        if not report.verified:
            # the failed lookup leaves the transaction unusable
            self.session.rollback()
        if report.has_conflicts and self.settings.conflict_policy == "block":
            raise ScheduleConflict(report.conflicts)
        return report

    @staticmethod
    def _result(training_session: TrainingSession, report: ConflictReport | None):
        if report is None or report.is_clear:
            return training_session
        return ServiceResponse(data=training_session, details=report.to_dict())

    def create_session(self, data: Any, *, created_by: str | None = None) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(SessionCreate, data)
            if payload.duration is None:
                payload.duration = default_duration(payload.session_type)
            self.get_or_raise(Member, payload.member_id, "Member not found")
            self._lock_trainer(payload.trainer_id)
            report = self._checked_slot(payload.trainer_id, payload.scheduled_date, payload.duration)

            values = payload.model_dump(exclude={"recurring_pattern"})
            training_session = TrainingSession(
                **values,
                scheduled_end=calculate_end_time(payload.scheduled_date, payload.duration),
                status=SessionStatus.SCHEDULED.value,
                recurring_pattern=(
                    payload.recurring_pattern.model_dump(mode="json", by_alias=True)
                    if payload.recurring_pattern
                    else None
                ),
                created_by=created_by,
            )
            self.session.add(training_session)
            self.session.flush()
            logger.info(
                "Booked session %s for trainer %s at %s",
                training_session.id,
                training_session.trainer_id,
                training_session.scheduled_date.isoformat(),
            )
            return self._result(training_session, report)

        return self.execute_mutation(
            mutate,
            invalidate="create_session",
            params=lambda s: {"member_id": s.member_id},
            default_error="Failed to create session",
        )

    def update_session(self, data: Any) -> ServiceResponse:
        """
        Apply a partial update. A status change must follow the lifecycle
        table; moving the slot (trainer, start or duration) re-runs the
        conflict check with the session itself excluded.
        """

        def mutate():
            payload = self.validate_input(SessionUpdate, data)
            changes = payload.model_dump(exclude_unset=True, exclude={"id"})
            training_session = self.get_or_raise(TrainingSession, payload.id)

            status = changes.pop("status", None)
            if status is not None and status != training_session.status:
                ensure_transition(training_session.status, status)
            if "member_id" in changes:
                self.get_or_raise(Member, changes["member_id"], "Member not found")

            trainer_id = changes.get("trainer_id") or training_session.trainer_id
            start = changes.get("scheduled_date") or training_session.scheduled_date
            duration = changes.get("duration") or training_session.duration
            moved = (trainer_id, start, duration) != (
                training_session.trainer_id,
                training_session.scheduled_date,
                training_session.duration,
            )
            final_status = status or training_session.status
            report = None
            if moved and final_status != SessionStatus.CANCELLED.value:
                self._lock_trainer(trainer_id)
                report = self._checked_slot(
                    trainer_id, start, duration, exclude_session_id=training_session.id
                )

            if status is not None and status != training_session.status:
                apply_transition(training_session, status, now=get_booking_now())
            self.apply_changes(training_session, changes)
            training_session.scheduled_end = calculate_end_time(
                training_session.scheduled_date, training_session.duration
            )
            self.session.flush()
            return self._result(training_session, report)

        return self.execute_mutation(
            mutate,
            invalidate="update_session",
            params=lambda s: {"id": s.id},
            default_error="Failed to update session",
        )

    def delete_session(self, session_id: str) -> ServiceResponse:
        def mutate():
            training_session = self.get_or_raise(TrainingSession, session_id)
            self.session.delete(training_session)
            return True

        return self.execute_mutation(
            mutate,
            invalidate="delete_session",
            params={"id": session_id},
            default_error="Failed to delete session",
        )

    def reschedule_session(
        self,
        session_id: str,
        scheduled_date,
        duration: int | None = None,
    ) -> ServiceResponse:
        """Move a session to a new slot; the status is left unchanged."""

        def mutate():
            slot = self.validate_input(
                SessionReschedule, {"scheduled_date": scheduled_date, "duration": duration}
            )
            training_session = self.get_or_raise(TrainingSession, session_id)
            if is_terminal(training_session.status):
                raise InvalidTransition(
                    f"Cannot reschedule a session that is {training_session.status}"
                )
            new_start = slot.scheduled_date
            new_duration = training_session.duration if slot.duration is None else slot.duration

            self._lock_trainer(training_session.trainer_id)
            report = self._checked_slot(
                training_session.trainer_id,
                new_start,
                new_duration,
                exclude_session_id=training_session.id,
            )
            training_session.scheduled_date = new_start
            training_session.duration = new_duration
            training_session.scheduled_end = calculate_end_time(new_start, new_duration)
            self.session.flush()
            return self._result(training_session, report)

        return self.execute_mutation(
            mutate,
            invalidate="update_session",
            params={"id": session_id},
            default_error="Failed to reschedule session",
        )

    # ---------------------------
    # Lifecycle actions
    # ---------------------------

    def _transition(self, session_id: str, target: SessionStatus, **extra) -> ServiceResponse:
        notes = extra.pop("notes", None)

        def mutate():
            training_session = self.get_or_raise(TrainingSession, session_id)
            apply_transition(training_session, target, now=get_booking_now(), **extra)
            if notes:
                training_session.notes = notes(training_session.notes) if callable(notes) else notes
            self.session.flush()
            logger.info("Session %s is now %s", session_id, target.value)
            return training_session

        return self.execute_mutation(
            mutate,
            invalidate="update_session",
            params={"id": session_id},
            default_error=f"Failed to mark session as {target.value}",
        )

    def confirm_session(self, session_id: str) -> ServiceResponse:
        return self._transition(session_id, SessionStatus.CONFIRMED)

    def start_session(self, session_id: str) -> ServiceResponse:
        return self._transition(session_id, SessionStatus.IN_PROGRESS)

    def complete_session(self, session_id: str, data: Any) -> ServiceResponse:
        try:
            completion = self.validate_input(SessionCompletion, data)
        except ValidationFailed as exc:
            return self.handle_error(exc)
        return self._transition(
            session_id,
            SessionStatus.COMPLETED,
            completion_summary=completion.completion_summary,
            member_rating=completion.member_rating,
            trainer_rating=completion.trainer_rating,
            notes=completion.notes,
        )

    def cancel_session(self, session_id: str, reason: str | None = None) -> ServiceResponse:
        def with_reason(existing: str | None) -> str:
            line = f"Cancelled: {reason}"
            return f"{existing}\n{line}" if existing else line

        return self._transition(
            session_id,
            SessionStatus.CANCELLED,
            notes=with_reason if reason else None,
        )

    def mark_no_show(self, session_id: str) -> ServiceResponse:
        return self._transition(session_id, SessionStatus.NO_SHOW)
