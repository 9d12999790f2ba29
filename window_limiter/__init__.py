"""Sliding window counter rate limiting with in-memory and Redis state."""

from .domain.contracts import RateLimitPolicy
from .domain.service import RateLimiterService
from .domain.sliding_window import Decision, decide
from .domain.window import FixedWindow, SlidingWindowState
from .errors import InvalidConfiguration, RateLimiterError, StoreContention, StoreUnavailable
from .factory import build_rate_limiter
from .redis_repository import RedisWindowRepository
from .repository import InMemoryWindowRepository, WindowStateRepository
from .security.rate_limiter import SlidingWindowRateLimiter
from .security.redis_rate_limiter import RedisSlidingWindowRateLimiter

__all__ = [
    "Decision",
    "FixedWindow",
    "InMemoryWindowRepository",
    "InvalidConfiguration",
    "RateLimitPolicy",
    "RateLimiterError",
    "RateLimiterService",
    "RedisSlidingWindowRateLimiter",
    "RedisWindowRepository",
    "SlidingWindowRateLimiter",
    "SlidingWindowState",
    "StoreContention",
    "StoreUnavailable",
    "WindowStateRepository",
    "build_rate_limiter",
    "decide",
]
