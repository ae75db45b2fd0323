from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select

from models.scheduling import SessionComment, TrainingSession
from app.base_service import BaseService, ServiceResponse
from app.exceptions import PermissionDenied
from app.query_cache import query_keys
from app.schemas import CommentCreate, CommentUpdate

logger = logging.getLogger(__name__)


class CommentService(BaseService):
    """Notes attached to a training session, oldest first."""

    not_found_message = "Comment not found"

    def list_comments(self, session_id: str, *, include_private: bool = True) -> ServiceResponse:
        def load():
            stmt = (
                select(SessionComment)
                .where(SessionComment.session_id == session_id)
                .order_by(SessionComment.created_at, SessionComment.id)
            )
            return list(self.session.scalars(stmt))

        def visible(comments):
            if include_private:
                return comments
            return [c for c in comments if not c.is_private]

        return self.execute_query(
            load,
            key=query_keys.session_comments(session_id),
            transform=visible,
            default_error="Failed to fetch comments",
        )

    def add_comment(self, data: Any, *, user_id: str | None = None) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(CommentCreate, data)
            self.get_or_raise(TrainingSession, payload.session_id, "Training session not found")
            comment = SessionComment(**payload.model_dump(), user_id=user_id)
            self.session.add(comment)
            self.session.flush()
            return comment

        return self.execute_mutation(
            mutate,
            invalidate="create_comment",
            params=lambda c: {"session_id": c.session_id},
            default_error="Failed to add comment",
        )

    def _owned_comment(self, comment_id: str, user_id: str | None) -> SessionComment:
        comment = self.get_or_raise(SessionComment, comment_id)
        if user_id is not None and comment.user_id not in (None, user_id):
            raise PermissionDenied("You do not have permission to perform this action")
        return comment

    def update_comment(self, data: Any, *, user_id: str | None = None) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(CommentUpdate, data)
            comment = self._owned_comment(payload.id, user_id)
            self.apply_changes(comment, payload.model_dump(exclude_unset=True, exclude={"id"}))
            self.session.flush()
            return comment

        return self.execute_mutation(
            mutate,
            invalidate="update_comment",
            params=lambda c: {"session_id": c.session_id},
            default_error="Failed to update comment",
        )

    def delete_comment(self, comment_id: str, *, user_id: str | None = None) -> ServiceResponse:
        def mutate():
            comment = self._owned_comment(comment_id, user_id)
            session_id = comment.session_id
            self.session.delete(comment)
            return session_id

        response = self.execute_mutation(
            mutate,
            invalidate="delete_comment",
            params=lambda session_id: {"session_id": session_id},
            default_error="Failed to delete comment",
        )
        if response.ok:
            response.data = True
        return response
