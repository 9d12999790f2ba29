"""Tests for the in-process window state repository."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from window_limiter.domain.service import RateLimiterService
from window_limiter.domain.window import FixedWindow, SlidingWindowState
from window_limiter.repository import InMemoryWindowRepository


def _state(count: int, start: int = 0) -> SlidingWindowState:
    return SlidingWindowState(previous=FixedWindow(start), current=FixedWindow(start, count))


def test_load_returns_none_for_unknown_key():
    repository = InMemoryWindowRepository()
    assert repository.load("missing") is None
    assert len(repository) == 0


def test_transact_writes_returned_state():
    repository = InMemoryWindowRepository()

    result = repository.transact("k", lambda state: ("ok", _state(1)))

    assert result == "ok"
    assert repository.load("k") == _state(1)


def test_transact_skips_write_when_no_state_returned():
    repository = InMemoryWindowRepository()
    repository.transact("k", lambda state: (None, _state(1)))

    seen = []
    repository.transact("k", lambda state: (seen.append(state), None))

    assert seen == [_state(1)]
    assert repository.load("k") == _state(1)


def test_compare_and_swap_requires_matching_state():
    repository = InMemoryWindowRepository()

    assert repository.compare_and_swap("k", None, _state(1))
    assert not repository.compare_and_swap("k", None, _state(2))
    assert not repository.compare_and_swap("k", _state(5), _state(2))
    assert repository.compare_and_swap("k", _state(1), _state(2))
    assert repository.load("k") == _state(2)


def test_reset_removes_state():
    repository = InMemoryWindowRepository()
    repository.transact("k", lambda state: (None, _state(1)))

    repository.reset("k")
    repository.reset("never-seen")

    assert repository.load("k") is None


def test_concurrent_burst_admits_exactly_the_limit():
    service = RateLimiterService(InMemoryWindowRepository())
    start = threading.Barrier(16)

    def call(_: int) -> bool:
        start.wait()
        return service.evaluate("shared", 1_000, 60, 10)

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(call, range(16)))

    assert results.count(True) == 10
    assert service.current_state("shared").current.count == 10


def test_keys_do_not_share_a_lock():
    repository = InMemoryWindowRepository()
    inside = threading.Event()
    release = threading.Event()

    def slow(state):
        inside.set()
        release.wait(timeout=5)
        return None, _state(1)

    worker = threading.Thread(target=repository.transact, args=("slow", slow))
    worker.start()
    try:
        assert inside.wait(timeout=5)
        # would deadlock if "fast" waited on the lock held for "slow"
        assert repository.transact("fast", lambda state: ("done", _state(1))) == "done"
    finally:
        release.set()
        worker.join()

    assert repository.load("slow") == _state(1)


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_state_written_with_ttl_expires():
    clock = FakeMonotonic()
    repository = InMemoryWindowRepository(monotonic=clock)
    repository.transact("k", lambda state: (None, _state(1)), ttl_ms=2_000)

    clock.now = 1.999
    assert repository.load("k") == _state(1)
    assert repository.evict_expired() == 0

    clock.now = 2.0
    assert repository.load("k") is None
    assert repository.evict_expired() == 1
    assert len(repository) == 0


def test_expired_state_is_seen_as_absent_by_transact():
    clock = FakeMonotonic()
    repository = InMemoryWindowRepository(monotonic=clock)
    repository.transact("k", lambda state: (None, _state(3)), ttl_ms=1_000)
    clock.now = 5.0

    seen = []
    repository.transact("k", lambda state: (seen.append(state), _state(1)), ttl_ms=1_000)

    assert seen == [None]
    assert repository.load("k") == _state(1)


def test_rewrite_extends_expiry():
    clock = FakeMonotonic()
    repository = InMemoryWindowRepository(monotonic=clock)
    repository.transact("k", lambda state: (None, _state(1)), ttl_ms=2_000)
    clock.now = 1.5
    repository.compare_and_swap("k", _state(1), _state(2), ttl_ms=2_000)

    clock.now = 3.0
    assert repository.evict_expired() == 0
    assert repository.load("k") == _state(2)


def test_state_written_without_ttl_is_kept():
    clock = FakeMonotonic()
    repository = InMemoryWindowRepository(monotonic=clock)
    repository.transact("k", lambda state: (None, _state(1)), ttl_ms=1_000)
    repository.transact("k", lambda state: (None, _state(2)))

    clock.now = 3_600.0
    assert repository.evict_expired() == 0
    assert repository.load("k") == _state(2)


def test_transact_sweeps_idle_keys_once_per_interval():
    clock = FakeMonotonic()
    repository = InMemoryWindowRepository(monotonic=clock, sweep_interval_seconds=10)
    repository.transact("idle", lambda state: (None, _state(1)), ttl_ms=2_000)

    clock.now = 5.0
    repository.transact("busy", lambda state: (None, _state(1)), ttl_ms=2_000)
    assert len(repository) == 2

    clock.now = 10.0
    repository.transact("busy", lambda state: (None, _state(2)), ttl_ms=2_000)
    assert len(repository) == 1
    assert repository.load("idle") is None


def test_eviction_skips_a_key_that_is_in_use():
    clock = FakeMonotonic()
    repository = InMemoryWindowRepository(monotonic=clock)
    repository.transact("k", lambda state: (None, _state(1)), ttl_ms=1_000)
    clock.now = 2.0
    evicted = []

    def mutation(state):
        evicted.append(repository.evict_expired())
        return None, _state(5)

    repository.transact("k", mutation, ttl_ms=1_000)

    assert evicted == [0]
    assert repository.load("k") == _state(5)


def test_service_writes_expire_after_two_windows():
    clock = FakeMonotonic()
    repository = InMemoryWindowRepository(monotonic=clock)
    assert RateLimiterService(repository).evaluate("k", 0, 1, 5)

    clock.now = 1.999
    assert repository.evict_expired() == 0
    clock.now = 2.0
    assert repository.evict_expired() == 1
