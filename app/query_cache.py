"""
Keyed cache for service reads.

Keys are tuples such as ``("members", "detail", member_id)``. Invalidating a
key prefix drops every entry underneath it, so ``("members",)`` clears all
member lists, details and stats at once. Which prefixes a write touches is
declared once in ``MUTATION_INVALIDATIONS`` instead of at each call site.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Hashable

from models.base import utcnow

logger = logging.getLogger(__name__)

QueryKey = tuple

_MISSING = object()


def _freeze(value: Any) -> Hashable:
    if isinstance(value, dict):
        return tuple(sorted((k, _freeze(v)) for k, v in value.items() if v is not None))
    if isinstance(value, (list, tuple, set)):
        return tuple(_freeze(v) for v in value)
    return value


class QueryKeys:
    """Key factory; keeps key layout in one place."""

    def members(self) -> QueryKey:
        return ("members",)

    def member_list(self, filters: dict | None = None) -> QueryKey:
        return ("members", "list", _freeze(filters or {}))

    def member(self, member_id: str) -> QueryKey:
        return ("members", "detail", member_id)

    def member_stats(self) -> QueryKey:
        return ("members", "stats")

    def sessions(self) -> QueryKey:
        return ("sessions",)

    def session_list(self, filters: dict | None = None) -> QueryKey:
        return ("sessions", "list", _freeze(filters or {}))

    def session(self, session_id: str) -> QueryKey:
        return ("sessions", "detail", session_id)

    def session_stats(self, filters: dict | None = None) -> QueryKey:
        return ("sessions", "stats", _freeze(filters or {}))

    def session_comments(self, session_id: str) -> QueryKey:
        return ("session-comments", session_id)

    def trainers(self) -> QueryKey:
        return ("trainers",)

    def trainer_list(self, filters: dict | None = None) -> QueryKey:
        return ("trainers", "list", _freeze(filters or {}))

    def trainer(self, trainer_id: str) -> QueryKey:
        return ("trainers", "detail", trainer_id)

    def trainer_availability(self, trainer_id: str) -> QueryKey:
        return ("trainers", "availability", trainer_id)

    def subscriptions(self) -> QueryKey:
        return ("subscriptions",)

    def member_subscriptions(self, member_id: str) -> QueryKey:
        return ("subscriptions", "member", member_id)

    def plans(self) -> QueryKey:
        return ("plans",)

    def plan_list(self, filters: dict | None = None) -> QueryKey:
        return ("plans", "list", _freeze(filters or {}))

    def plan(self, plan_id: str) -> QueryKey:
        return ("plans", "detail", plan_id)

    def plan_stats(self) -> QueryKey:
        return ("plans", "stats")

    def subscription_stats(self) -> QueryKey:
        return ("subscriptions", "stats")

    def trainer_stats(self) -> QueryKey:
        return ("trainers", "stats")

    def users(self) -> QueryKey:
        return ("users",)

    def user(self, user_id: str) -> QueryKey:
        return ("users", "detail", user_id)


query_keys = QueryKeys()


# mutation name -> key prefixes to drop; "{name}" is filled from the mutation params
MUTATION_INVALIDATIONS: dict[str, list[tuple[str, ...]]] = {
    "create_member": [("members",)],
    "update_member": [("members",), ("subscriptions",)],
    "delete_member": [("members",), ("sessions",), ("subscriptions",)],
    "create_session": [("sessions",), ("members", "detail", "{member_id}")],
    "update_session": [("sessions",), ("session-comments", "{id}")],
    "delete_session": [("sessions",), ("session-comments", "{id}")],
    "create_comment": [("session-comments", "{session_id}")],
    "update_comment": [("session-comments", "{session_id}")],
    "delete_comment": [("session-comments", "{session_id}")],
    "create_trainer": [("trainers",), ("users",)],
    "update_trainer": [("trainers",), ("users",)],
    "delete_trainer": [("trainers",), ("users",), ("sessions",)],
    "change_availability": [
        ("trainers", "availability", "{trainer_id}"),
        ("trainers", "detail", "{trainer_id}"),
        ("trainers", "list"),
    ],
    "create_subscription": [("subscriptions",), ("members", "detail", "{member_id}"), ("plans", "stats")],
    "update_subscription": [("subscriptions",), ("plans", "stats")],
    "create_plan": [("plans",)],
    "update_plan": [("plans",), ("subscriptions",)],
    "update_user": [("users",), ("trainers",)],
}


@dataclass
class CacheEntry:
    value: Any
    updated_at: datetime
    last_used_at: datetime = field(default_factory=utcnow)


class QueryCache:
    """
    Shared by every request thread of the app, so all access to ``_entries``
    holds ``_lock``. Loaders run outside the lock.

    Entries live in process memory: each worker process has its own cache and
    only sees invalidations for writes it handled itself.
    """

    def __init__(
        self,
        stale_seconds: int = 300,
        gc_seconds: int = 600,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.stale_after = timedelta(seconds=stale_seconds)
        self.gc_after = timedelta(seconds=gc_seconds)
        self._clock = clock
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._lock = threading.RLock()

    def __contains__(self, key: QueryKey) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: QueryKey, default: Any = None) -> Any:
        """Return a fresh cached value, or ``default`` when missing or stale."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            now = self._clock()
            if now - entry.updated_at > self.stale_after:
                return default
            entry.last_used_at = now
            return entry.value

    def set(self, key: QueryKey, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(value=value, updated_at=now, last_used_at=now)
        logger.debug("Cached %s", key)

    def fetch(self, key: QueryKey, loader: Callable[[], Any]) -> Any:
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            logger.debug("Cache hit %s", key)
            return value
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry whose key starts with ``prefix``."""
        size = len(prefix)
        with self._lock:
            doomed = [key for key in list(self._entries) if key[:size] == prefix]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cache entries under %s", len(doomed), prefix)
        return len(doomed)

    def apply_mutation(self, name: str, **params: Any) -> int:
        templates = MUTATION_INVALIDATIONS.get(name)
        if templates is None:
            raise KeyError(f"No invalidation rule registered for mutation {name!r}")
        dropped = 0
        with self._lock:
            for template in templates:
                try:
                    prefix = tuple(part.format(**params) for part in template)
                except KeyError:
                    # Parameter not supplied: fall back to the family prefix.
                    prefix = template[:1]
                dropped += self.invalidate(prefix)
        return dropped

    def set_optimistic(self, key: QueryKey, updater: Callable[[Any], Any]) -> Any:
        """Write ``updater(current)`` ahead of the mutation; returns what to restore."""
        with self._lock:
            entry = self._entries.get(key)
            previous = entry.value if entry is not None else _MISSING
            if previous is not _MISSING:
                self.set(key, updater(previous))
            return previous

    def restore(self, key: QueryKey, previous: Any) -> None:
        with self._lock:
            if previous is _MISSING:
                self._entries.pop(key, None)
            else:
                self.set(key, previous)

    def collect_garbage(self) -> int:
        """Remove entries nobody has read within the GC window."""
        with self._lock:
            now = self._clock()
            doomed = [
                key for key, entry in list(self._entries.items())
                if now - entry.last_used_at > self.gc_after
            ]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def retry_delay(attempt: int, base_delay: float = 1.0, max_delay: float = 30.0) -> float:
    """Exponential backoff: base, 2*base, 4*base ... capped at ``max_delay``."""
    return min(base_delay * (2 ** attempt), max_delay)


def call_with_retry(
    func: Callable[[], Any],
    *,
    retries: int,
    should_retry: Callable[[Exception], bool],
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    on_retry: Callable[[Exception], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    attempt = 0
    while True:
        try:
            return func()
        except Exception as exc:
            if attempt >= retries or not should_retry(exc):
                raise
            wait = retry_delay(attempt, base_delay, max_delay)
            logger.warning(
                "Attempt %d/%d failed for %s: %s. Retrying in %.1fs...",
                attempt + 1,
                retries + 1,
                getattr(func, "__name__", "query"),
                exc,
                wait,
            )
            if on_retry is not None:
                on_retry(exc)
            if wait > 0:
                sleep(wait)
            attempt += 1
