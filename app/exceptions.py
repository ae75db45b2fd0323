"""
Service-level errors.

They all derive from ``ValueError`` so code that only cares that an
operation was refused can keep catching the built-in type.
"""

from __future__ import annotations

from typing import Any


class ServiceError(ValueError):
    code = "service_error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationFailed(ServiceError):
    code = "validation_error"


class NotFound(ServiceError):
    code = "not_found"


class PermissionDenied(ServiceError):
    code = "permission_denied"


class ScheduleConflict(ServiceError):
    """Raised when a booking would collide with availability or another session."""

    code = "schedule_conflict"

    def __init__(self, conflicts: list, message: str | None = None) -> None:
        kinds = ", ".join(conflict.type.value for conflict in conflicts)
        super().__init__(
            message or f"Schedule conflict detected: {kinds}",
            details={"conflicts": [conflict.to_dict() for conflict in conflicts]},
        )
        self.conflicts = list(conflicts)


class InvalidTransition(ServiceError):
    code = "invalid_transition"
