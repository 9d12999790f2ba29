"""Window state repositories: the storage contract and the in-process store."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from threading import Lock
from typing import Callable, Iterator, Optional, Tuple, TypeVar

from .domain.window import SlidingWindowState

logger = logging.getLogger(__name__)

T = TypeVar("T")

Mutation = Callable[[Optional[SlidingWindowState]], Tuple[T, Optional[SlidingWindowState]]]


class WindowStateRepository(ABC):
    """Per-identity storage of sliding window state.

    Implementations must make :meth:`transact` atomic per key: concurrent
    calls for one key behave as if run one after another, and calls for
    different keys never block each other.
    """

    backend: str = "abstract"

    @abstractmethod
    def load(self, key: str) -> SlidingWindowState | None:
        """Return the stored state for ``key`` or ``None`` when it was never written."""

    @abstractmethod
    def transact(self, key: str, mutation: Mutation[T], *, ttl_ms: int | None = None) -> T:
        """Run ``mutation`` as one atomic read-compute-write cycle for ``key``.

        Parameters
        ----------
        key:
            Identity whose state is read and written.
        mutation:
            Receives the stored state (``None`` when absent) and returns a
            ``(result, new_state)`` pair. ``new_state`` is written unless it is
            ``None``. It may be invoked more than once and must not have side
            effects.
        ttl_ms:
            Optional expiry hint for backends that can evict idle state.

        Returns
        -------
        T
            The ``result`` produced by the invocation whose write succeeded.
        """

    @abstractmethod
    def compare_and_swap(
        self,
        key: str,
        expected: SlidingWindowState | None,
        new_state: SlidingWindowState,
        *,
        ttl_ms: int | None = None,
    ) -> bool:
        """Install ``new_state`` only if the stored state equals ``expected``."""

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget the state stored for ``key``."""


class InMemoryWindowRepository(WindowStateRepository):
    """Process-local store guarded by one lock per identity.

    Writes made with ``ttl_ms`` expire that long after the write, measured on
    the process monotonic clock. Expired state reads as absent straight away;
    its memory and lock are released by :meth:`evict_expired`, which
    :meth:`transact` also runs at most once per ``sweep_interval_seconds``.
    """

    backend = "memory"

    def __init__(
        self,
        *,
        monotonic: Callable[[], float] = time.monotonic,
        sweep_interval_seconds: float = 60.0,
    ) -> None:
        """Initialise empty state, expiry and lock tables."""
        if sweep_interval_seconds < 0:
            raise ValueError("sweep_interval_seconds must be >= 0")
        self._states: dict[str, SlidingWindowState] = {}
        self._expires_at: dict[str, float] = {}
        self._locks: dict[str, Lock] = {}
        self._locks_guard = Lock()
        self._monotonic = monotonic
        self._sweep_interval = sweep_interval_seconds
        self._next_sweep = monotonic() + sweep_interval_seconds

    def __len__(self) -> int:
        return len(self._states)

    def _lock_for(self, key: str) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        while True:
            lock = self._lock_for(key)
            lock.acquire()
            # eviction may have dropped this lock before we got it
            if self._locks.get(key) is lock:
                break
            lock.release()
        try:
            yield
        finally:
            lock.release()

    def _live_state(self, key: str) -> SlidingWindowState | None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and self._monotonic() >= expires_at:
            return None
        return self._states.get(key)

    def _store(self, key: str, state: SlidingWindowState, ttl_ms: int | None) -> None:
        self._states[key] = state
        if ttl_ms:
            self._expires_at[key] = self._monotonic() + ttl_ms / 1000
        else:
            self._expires_at.pop(key, None)

    def evict_expired(self) -> int:
        """Drop expired identities whose lock is free and return how many went."""
        evicted = 0
        with self._locks_guard:
            now = self._monotonic()
            self._next_sweep = now + self._sweep_interval
            for key, expires_at in list(self._expires_at.items()):
                if now < expires_at:
                    continue
                lock = self._locks.get(key)
                if lock is not None and not lock.acquire(blocking=False):
                    continue
                try:
                    self._states.pop(key, None)
                    self._expires_at.pop(key, None)
                    self._locks.pop(key, None)
                    evicted += 1
                finally:
                    if lock is not None:
                        lock.release()
        if evicted:
            logger.debug("evicted %s expired window states", evicted)
        return evicted

    def load(self, key: str) -> SlidingWindowState | None:
        return self._live_state(key)

    def transact(self, key: str, mutation: Mutation[T], *, ttl_ms: int | None = None) -> T:
        if self._monotonic() >= self._next_sweep:
            self.evict_expired()
        with self._locked(key):
            result, new_state = mutation(self._live_state(key))
            if new_state is not None:
                self._store(key, new_state, ttl_ms)
            return result

    def compare_and_swap(
        self,
        key: str,
        expected: SlidingWindowState | None,
        new_state: SlidingWindowState,
        *,
        ttl_ms: int | None = None,
    ) -> bool:
        with self._locked(key):
            if self._live_state(key) != expected:
                return False
            self._store(key, new_state, ttl_ms)
            return True

    def reset(self, key: str) -> None:
        with self._locked(key):
            self._states.pop(key, None)
            self._expires_at.pop(key, None)
