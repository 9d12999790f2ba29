"""Redis-backed sliding window counter rate limiter."""

from __future__ import annotations

from redis import Redis

from ..clock import Clock, system_clock
from ..redis_repository import RedisWindowRepository
from .rate_limiter import SlidingWindowRateLimiter


class RedisSlidingWindowRateLimiter(SlidingWindowRateLimiter):
    """Distributed sliding window counter limiter sharing state through Redis."""

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "rate",
        max_attempts: int = 16,
        clock: Clock = system_clock,
    ) -> None:
        """Initialise the Redis repository and the window configuration."""
        super().__init__(
            max_requests,
            window_seconds,
            repository=RedisWindowRepository(client, key_prefix=key_prefix, max_attempts=max_attempts),
            clock=clock,
        )
