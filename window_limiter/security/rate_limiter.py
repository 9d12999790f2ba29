"""In-memory sliding window counter rate limiter implementation."""

from __future__ import annotations

from ..clock import Clock, system_clock
from ..domain.contracts import RateLimitPolicy
from ..domain.service import RateLimiterService
from ..repository import InMemoryWindowRepository, WindowStateRepository


class SlidingWindowRateLimiter:
    """Thread-safe sliding window counter limiter bound to one policy."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        *,
        repository: WindowStateRepository | None = None,
        clock: Clock = system_clock,
    ) -> None:
        """Validate limiter parameters and attach per-key storage."""
        self._policy = RateLimitPolicy(period_seconds=window_seconds, max_requests=max_requests)
        self._service = RateLimiterService(repository or InMemoryWindowRepository())
        self._clock = clock

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    @property
    def service(self) -> RateLimiterService:
        return self._service

    def allow(self, key: str) -> bool:
        """Return ``True`` when the request is within the configured rate limit."""
        return self._service.check(key, self._clock(), self._policy).allowed
