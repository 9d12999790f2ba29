"""Construction of the configured rate limiter backend."""

from __future__ import annotations

import logging

import redis
from redis.exceptions import RedisError

from .config import Settings, get_settings
from .security.rate_limiter import SlidingWindowRateLimiter
from .security.redis_rate_limiter import RedisSlidingWindowRateLimiter

logger = logging.getLogger(__name__)


def build_rate_limiter(settings: Settings | None = None) -> SlidingWindowRateLimiter:
    """Instantiate the configured rate limiter backend, preferring Redis when available."""
    settings = settings or get_settings()
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        try:
            client = redis.from_url(
                settings.redis_url,
                socket_timeout=settings.redis_socket_timeout_seconds,
                socket_connect_timeout=settings.redis_socket_timeout_seconds,
            )
            # ensure connectivity early to fail fast and fall back
            client.ping()
            logger.info(
                "%s %s rate limiter configured for redis backend at %s",
                settings.app_name,
                settings.version,
                settings.redis_url,
            )
            return RedisSlidingWindowRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
                key_prefix=settings.redis_key_prefix,
                max_attempts=settings.redis_max_attempts,
            )
        except (RedisError, ValueError) as exc:
            logger.warning("redis rate limiter unavailable, falling back to in-memory: %s", exc)
    elif settings.rate_limit_backend not in ("memory", "redis"):
        logger.warning("unknown rate limit backend %r, using in-memory", settings.rate_limit_backend)

    logger.info("%s %s rate limiter using in-memory backend", settings.app_name, settings.version)
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
