"""Redis-backed window state repository shared by every service instance."""

from __future__ import annotations

import logging
from typing import Any, Final, Sequence

from redis import Redis
from redis.exceptions import RedisError, WatchError

from .domain.window import FixedWindow, SlidingWindowState
from .errors import StoreContention, StoreUnavailable
from .repository import Mutation, T, WindowStateRepository

logger = logging.getLogger(__name__)


class RedisWindowRepository(WindowStateRepository):
    """Stores each bucket as a Redis hash and updates them with WATCH/MULTI/EXEC.

    For identity ``alice`` and prefix ``rate`` the buckets live under
    ``rate:alice:previous`` and ``rate:alice:current``, each a hash with the
    fields ``timestamp`` and ``count``.
    """

    backend = "redis"

    _TIMESTAMP_FIELD: Final[str] = "timestamp"
    _COUNT_FIELD: Final[str] = "count"

    def __init__(self, client: Redis, *, key_prefix: str = "rate", max_attempts: int = 16) -> None:
        """Keep the client, key namespace, and the optimistic retry bound."""
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._client = client
        self._key_prefix = key_prefix
        self._max_attempts = max_attempts

    def bucket_keys(self, key: str) -> tuple[str, str]:
        """Return the ``(previous, current)`` Redis keys for an identity."""
        base = f"{self._key_prefix}:{key}"
        return f"{base}:previous", f"{base}:current"

    def load(self, key: str) -> SlidingWindowState | None:
        previous_key, current_key = self.bucket_keys(key)
        fields = (self._TIMESTAMP_FIELD, self._COUNT_FIELD)
        try:
            with self._client.pipeline() as pipe:
                # both buckets from one MULTI/EXEC snapshot
                pipe.hmget(previous_key, fields)
                pipe.hmget(current_key, fields)
                previous_values, current_values = pipe.execute()
            return self._assemble(previous_key, previous_values, current_key, current_values)
        except RedisError as exc:
            raise StoreUnavailable(f"failed to load window state for {key!r}: {exc}") from exc

    def transact(self, key: str, mutation: Mutation[T], *, ttl_ms: int | None = None) -> T:
        previous_key, current_key = self.bucket_keys(key)
        try:
            with self._client.pipeline() as pipe:
                for attempt in range(1, self._max_attempts + 1):
                    try:
                        pipe.watch(previous_key, current_key)
                        result, new_state = mutation(self._read(pipe, previous_key, current_key))
                        pipe.multi()
                        if new_state is not None:
                            self._write(pipe, previous_key, current_key, new_state, ttl_ms)
                        # EXEC validates the watched reads even when nothing is written
                        pipe.execute()
                        return result
                    except WatchError:
                        logger.debug("window state for %s changed concurrently (attempt %s)", key, attempt)
        except RedisError as exc:
            raise StoreUnavailable(f"failed to update window state for {key!r}: {exc}") from exc
        raise StoreContention(
            f"window state for {key!r} kept changing after {self._max_attempts} attempts"
        )

    def compare_and_swap(
        self,
        key: str,
        expected: SlidingWindowState | None,
        new_state: SlidingWindowState,
        *,
        ttl_ms: int | None = None,
    ) -> bool:
        previous_key, current_key = self.bucket_keys(key)
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(previous_key, current_key)
                if self._read(pipe, previous_key, current_key) != expected:
                    return False
                pipe.multi()
                self._write(pipe, previous_key, current_key, new_state, ttl_ms)
                try:
                    pipe.execute()
                except WatchError:
                    return False
                return True
        except RedisError as exc:
            raise StoreUnavailable(f"failed to swap window state for {key!r}: {exc}") from exc

    def reset(self, key: str) -> None:
        try:
            self._client.delete(*self.bucket_keys(key))
        except RedisError as exc:
            raise StoreUnavailable(f"failed to reset window state for {key!r}: {exc}") from exc

    def _read(self, conn: Any, previous_key: str, current_key: str) -> SlidingWindowState | None:
        fields = (self._TIMESTAMP_FIELD, self._COUNT_FIELD)
        current_values = conn.hmget(current_key, fields)
        previous_values = conn.hmget(previous_key, fields)
        return self._assemble(previous_key, previous_values, current_key, current_values)

    def _assemble(
        self,
        previous_key: str,
        previous_values: Sequence[Any],
        current_key: str,
        current_values: Sequence[Any],
    ) -> SlidingWindowState | None:
        current = self._decode(current_key, current_values)
        if current is None:
            return None
        previous = self._decode(previous_key, previous_values)
        if previous is None:
            previous = FixedWindow(start_ms=current.start_ms)
        try:
            return SlidingWindowState(previous=previous, current=current)
        except ValueError as exc:
            raise StoreUnavailable(f"inconsistent window state under {current_key!r}: {exc}") from exc

    def _decode(self, redis_key: str, values: Sequence[Any]) -> FixedWindow | None:
        timestamp, count = values
        if timestamp is None and count is None:
            return None
        try:
            return FixedWindow(start_ms=int(timestamp), count=int(count or 0))
        except (TypeError, ValueError) as exc:
            raise StoreUnavailable(f"malformed window bucket {redis_key!r}: {values!r}") from exc

    def _write(
        self,
        pipe: Any,
        previous_key: str,
        current_key: str,
        state: SlidingWindowState,
        ttl_ms: int | None,
    ) -> None:
        for redis_key, window in ((previous_key, state.previous), (current_key, state.current)):
            pipe.hset(
                redis_key,
                mapping={self._TIMESTAMP_FIELD: window.start_ms, self._COUNT_FIELD: window.count},
            )
            if ttl_ms:
                pipe.pexpire(redis_key, ttl_ms)
