from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from werkzeug.security import check_password_hash, generate_password_hash

from models.scheduling import Trainer  # noqa: F401 (relationship target)
from models.user import User
from app.base_service import BaseService, ServiceResponse
from app.exceptions import PermissionDenied, ValidationFailed
from app.query_cache import query_keys
from app.schemas import LoginRequest, PasswordChange, UserProfileUpdate

logger = logging.getLogger(__name__)


class UserService(BaseService):
    not_found_message = "User not found"

    def get_user(self, user_id: str) -> ServiceResponse:
        return self.execute_query(
            lambda: self.session.get(User, user_id),
            key=query_keys.user(user_id),
            not_found=self.not_found_message,
        )

    def list_users(self, role: str | None = None) -> ServiceResponse:
        stmt = select(User).order_by(User.first_name, User.last_name)
        if role:
            stmt = stmt.where(User.role == role)
        return self.execute_query(
            lambda: list(self.session.scalars(stmt)),
            key=("users", "list", role),
            default_error="Failed to fetch users",
        )

    def list_trainers(self) -> ServiceResponse:
        return self.list_users(role="trainer")

    def update_profile(self, user_id: str, data: Any) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(UserProfileUpdate, data)
            user = self.get_or_raise(User, user_id)
            self.apply_changes(user, payload.model_dump(exclude_unset=True))
            self.session.flush()
            return user

        return self.execute_mutation(
            mutate, invalidate="update_user", default_error="Failed to update profile"
        )

    def change_password(self, user_id: str, data: Any) -> ServiceResponse:
        def mutate():
            payload = self.validate_input(PasswordChange, data)
            user = self.get_or_raise(User, user_id)
            if not user.password_hash or not check_password_hash(
                user.password_hash, payload.current_password
            ):
                raise ValidationFailed("currentPassword: Current password is incorrect")
            user.password_hash = generate_password_hash(payload.new_password)
            logger.info("Password changed for user %s", user_id)
            return True

        return self.execute_mutation(
            mutate, invalidate="update_user", default_error="Failed to change password"
        )

    def set_password(self, user_id: str, password: str) -> ServiceResponse:
        """Administrative reset, no current password needed."""

        def mutate():
            user = self.get_or_raise(User, user_id)
            user.password_hash = generate_password_hash(password)
            return True

        return self.execute_mutation(mutate, invalidate="update_user")

    def authenticate(self, email: str, password: str) -> ServiceResponse:
        try:
            credentials = self.validate_input(LoginRequest, {"email": email, "password": password})
            user = self.session.scalar(select(User).where(User.email == credentials.email))
            if (
                user is None
                or not user.password_hash
                or not check_password_hash(user.password_hash, credentials.password)
            ):
                raise PermissionDenied("Invalid email or password")
        except Exception as exc:
            return self.handle_error(exc, "Failed to sign in")
        return ServiceResponse(data=user)
