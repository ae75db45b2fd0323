from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import inspect
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.exceptions import NotFound, PermissionDenied, ServiceError, ValidationFailed
from app.query_cache import QueryCache, QueryKey, call_with_retry
from app.schemas import format_validation_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ERROR = "An unexpected error occurred"
NOT_FOUND_MESSAGE = "The requested resource does not exist"
DUPLICATE_MESSAGE = "This record already exists"
REFERENCED_MESSAGE = "Cannot delete - this record is referenced by other data"
PERMISSION_MESSAGE = "You do not have permission to perform this action"
NETWORK_MESSAGE = "Network connection failed. Please check your internet connection."
OVERLAP_MESSAGE = "Schedule conflict detected: trainer_booked"


@dataclass
class ServiceResponse(Generic[T]):
    """Uniform result of every service call: exactly one of data/error is meaningful."""

    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def describe_error(exc: Exception, default_message: str = DEFAULT_ERROR) -> tuple[str, str, dict]:
    """Map an exception to (message, code, details) for the caller."""
    if isinstance(exc, NotFound):
        return exc.message or NOT_FOUND_MESSAGE, exc.code, exc.details
    if isinstance(exc, ServiceError):
        return exc.message, exc.code, exc.details
    if isinstance(exc, ValidationError):
        return format_validation_error(exc), ValidationFailed.code, {}

    if isinstance(exc, IntegrityError):
        state = _sqlstate(exc)
        text = str(exc.orig)
        if state == "23505" or "UNIQUE constraint failed" in text:
            return DUPLICATE_MESSAGE, "duplicate", {}
        if state == "23503" or "FOREIGN KEY constraint failed" in text:
            return REFERENCED_MESSAGE, "foreign_key", {}
        if state == "23P01":
            return OVERLAP_MESSAGE, "schedule_conflict", {}
        return default_message, "constraint_violation", {}

    if isinstance(exc, DBAPIError) and _sqlstate(exc) == "42501":
        return PERMISSION_MESSAGE, PermissionDenied.code, {}
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError)):
        return NETWORK_MESSAGE, "network_error", {}

    return str(exc) or default_message, "unexpected", {}


def is_transient(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, DisconnectionError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def _retry_read(exc: Exception) -> bool:
    # Validation, not-found and permission failures will not change on retry.
    return not isinstance(exc, (ServiceError, ValidationError, IntegrityError))


class BaseService:
    """
    Shared plumbing for the entity services.

    Reads go through ``execute_query`` (cache + retry), writes through
    ``execute_mutation`` (transaction + retry + invalidation). Both return a
    ``ServiceResponse`` and never raise for expected failures.
    """

    not_found_message = NOT_FOUND_MESSAGE

    def __init__(
        self,
        session: Session,
        cache: QueryCache | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        if cache is None:
            cache = QueryCache(
                stale_seconds=self.settings.cache_stale_seconds,
                gc_seconds=self.settings.cache_gc_seconds,
            )
        self.cache = cache

    # ---------------------------
    # Validation / lookup helpers
    # ---------------------------

    def validate_input(self, schema: type[BaseModel], data: Any) -> Any:
        if isinstance(data, schema):
            return data
        try:
            return schema.model_validate(data or {})
        except ValidationError as exc:
            raise ValidationFailed(format_validation_error(exc)) from exc

    def get_or_raise(self, model, entity_id: str, message: str | None = None):
        """Load a row through the session (never the cache) for writes."""
        instance = self.session.get(model, entity_id) if entity_id else None
        if instance is None:
            raise NotFound(message or self.not_found_message)
        return instance

    @staticmethod
    def apply_changes(instance, changes: dict[str, Any]) -> None:
        """Copy changed attributes, skipping explicit nulls for NOT NULL columns."""
        attrs = inspect(type(instance)).attrs
        for key, value in changes.items():
            if key not in attrs:
                continue
            prop = attrs[key]
            columns = getattr(prop, "columns", None)
            if value is None and columns and not columns[0].nullable:
                continue
            setattr(instance, key, value)

    # ---------------------------
    # Query / mutation wrappers
    # ---------------------------

    def execute_query(
        self,
        loader: Callable[[], T],
        *,
        key: QueryKey | None = None,
        not_found: str | None = None,
        transform: Callable[[Any], Any] | None = None,
        default_error: str = "Failed to load data",
    ) -> ServiceResponse:
        def load():
            return call_with_retry(
                loader,
                retries=self.settings.query_retries,
                should_retry=_retry_read,
                base_delay=self.settings.retry_base_delay,
                max_delay=self.settings.retry_max_delay,
                on_retry=lambda exc: self.session.rollback(),
            )

        try:
            data = self.cache.fetch(key, load) if key is not None else load()
            if data is None and not_found:
                raise NotFound(not_found)
            if transform is not None:
                data = transform(data)
            return ServiceResponse(data=data)
        except Exception as exc:
            return self.handle_error(exc, default_error)

    def execute_mutation(
        self,
        mutate: Callable[[], Any],
        *,
        invalidate: str | None = None,
        params: dict | Callable[[Any], dict] | None = None,
        optimistic: tuple[QueryKey, Callable[[Any], Any]] | None = None,
        default_error: str = "Failed to save changes",
    ) -> ServiceResponse:
        """
        Run ``mutate`` in a transaction and commit it.

        ``invalidate`` names an entry of MUTATION_INVALIDATIONS; ``params``
        fills its key templates (or is a callable receiving the result).
        ``optimistic`` is ``(key, updater)``: the cached value is replaced
        before the write and restored if the write fails.
        """

        def transaction():
            try:
                result = mutate()
                self.session.commit()
                return result
            except Exception:
                self.session.rollback()
                raise

        transaction.__name__ = getattr(mutate, "__name__", "mutation")

        previous = None
        if optimistic is not None:
            previous = self.cache.set_optimistic(*optimistic)

        try:
            result = call_with_retry(
                transaction,
                retries=self.settings.mutation_retries,
                should_retry=is_transient,
                base_delay=self.settings.retry_base_delay,
                max_delay=self.settings.retry_max_delay,
            )
        except Exception as exc:
            if optimistic is not None:
                self.cache.restore(optimistic[0], previous)
            return self.handle_error(exc, default_error)

        response = result if isinstance(result, ServiceResponse) else ServiceResponse(data=result)
        if invalidate:
            values = params(response.data) if callable(params) else (params or {})
            self.cache.apply_mutation(invalidate, **values)
        return response

    def handle_error(self, exc: Exception, default_message: str = DEFAULT_ERROR) -> ServiceResponse:
        message, code, details = describe_error(exc, default_message)
        name = type(self).__name__
        if isinstance(exc, (ServiceError, ValidationError)):
            logger.warning("%s refused request: %s", name, message)
        elif code == "unexpected":
            logger.exception("%s failed unexpectedly: %s", name, exc)
        else:
            logger.error("%s backend error (%s): %s", name, code, exc)
        return ServiceResponse(error=message, code=code, details=details)
