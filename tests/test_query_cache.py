import threading
from datetime import datetime, timedelta

import pytest

from app.query_cache import QueryCache, call_with_retry, query_keys, retry_delay


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 6, 3, 12, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QueryCache(stale_seconds=60, gc_seconds=120, clock=clock)


def test_fetch_loads_once(cache):
    calls = []

    def loader():
        calls.append(1)
        return ["row"]

    assert cache.fetch(("members", "list"), loader) == ["row"]
    assert cache.fetch(("members", "list"), loader) == ["row"]
    assert len(calls) == 1


def test_stale_entries_are_reloaded(cache, clock):
    cache.set(("members", "stats"), {"total": 1})
    clock.advance(seconds=61)

    assert cache.get(("members", "stats")) is None
    assert cache.fetch(("members", "stats"), lambda: {"total": 2}) == {"total": 2}


def test_garbage_collection_drops_unused_entries(cache, clock):
    cache.set(("members", "stats"), 1)
    cache.set(("plans", "stats"), 2)
    clock.advance(seconds=100)
    cache.set(("plans", "stats"), 3)
    clock.advance(seconds=30)

    assert cache.collect_garbage() == 1
    assert ("members", "stats") not in cache
    assert ("plans", "stats") in cache


def test_invalidate_by_prefix(cache):
    cache.set(query_keys.member_list(), [])
    cache.set(query_keys.member("m1"), {})
    cache.set(query_keys.member_stats(), {})
    cache.set(query_keys.session("s1"), {})

    assert cache.invalidate(query_keys.members()) == 3
    assert len(cache) == 1


def test_filter_keys_ignore_missing_values():
    assert query_keys.member_list() == query_keys.member_list({"status": None, "search_term": None})
    assert query_keys.member_list({"status": "active"}) != query_keys.member_list()
    assert query_keys.member_list({"b": 1, "a": [1, 2]}) == query_keys.member_list({"a": [1, 2], "b": 1})


def test_apply_mutation_fills_templates(cache):
    cache.set(query_keys.session_list(), [])
    cache.set(query_keys.member("m1"), {})
    cache.set(query_keys.member("m2"), {})

    cache.apply_mutation("create_session", member_id="m1")

    assert query_keys.session_list() not in cache
    assert query_keys.member("m1") not in cache
    assert query_keys.member("m2") in cache


def test_apply_mutation_without_params_drops_whole_family(cache):
    cache.set(query_keys.member("m1"), {})
    cache.set(query_keys.member_stats(), {})

    cache.apply_mutation("create_session")

    assert len(cache) == 0


def test_apply_mutation_unknown_name(cache):
    with pytest.raises(KeyError, match="No invalidation rule"):
        cache.apply_mutation("launch_rocket")


def test_optimistic_update_and_restore(cache):
    key = query_keys.member_list()
    cache.set(key, ["a", "b"])

    previous = cache.set_optimistic(key, lambda rows: [r for r in rows if r != "a"])
    assert cache.get(key) == ["b"]

    cache.restore(key, previous)
    assert cache.get(key) == ["a", "b"]


def test_optimistic_update_on_missing_key(cache):
    key = query_keys.member_list()

    previous = cache.set_optimistic(key, lambda rows: rows[1:])
    assert key not in cache

    cache.set(key, ["loaded meanwhile"])
    cache.restore(key, previous)
    assert key not in cache


@pytest.mark.parametrize(
    "attempt, expected",
    [(0, 1.0), (1, 2.0), (2, 4.0), (10, 30.0)],
)
def test_retry_delay_backs_off_exponentially(attempt, expected):
    assert retry_delay(attempt) == expected


def test_call_with_retry_recovers():
    attempts, waits, resets = [], [], []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("down")
        return "ok"

    result = call_with_retry(
        flaky,
        retries=3,
        should_retry=lambda exc: True,
        base_delay=0.5,
        on_retry=resets.append,
        sleep=waits.append,
    )

    assert result == "ok"
    assert waits == [0.5, 1.0]
    assert len(resets) == 2


def test_call_with_retry_gives_up():
    def broken():
        raise ConnectionError("still down")

    with pytest.raises(ConnectionError):
        call_with_retry(broken, retries=2, should_retry=lambda exc: True, sleep=lambda s: None)


def test_call_with_retry_skips_permanent_errors():
    attempts = []

    def invalid():
        attempts.append(1)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        call_with_retry(
            invalid,
            retries=3,
            should_retry=lambda exc: not isinstance(exc, ValueError),
            sleep=lambda s: None,
        )
    assert len(attempts) == 1


def test_concurrent_writes_and_invalidation():
    cache = QueryCache()
    errors = []
    done = threading.Event()

    def writer():
        i = 0
        try:
            while not done.is_set():
                cache.set(("sessions", "detail", i), i)
                i += 1
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    def invalidator():
        try:
            for _ in range(20000):
                cache.invalidate(("members",))
                cache.apply_mutation("create_member")
            cache.collect_garbage()
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)
        finally:
            done.set()

    threads = [threading.Thread(target=writer), threading.Thread(target=invalidator)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert errors == []
    assert len(cache) > 0
