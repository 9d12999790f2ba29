from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values for the rate limiter."""

    app_name: str = "window-limiter"
    version: str = "0.1.0"
    rate_limit_requests: int = int(os.getenv("RATE_LIMIT_REQUESTS", "20"))
    rate_limit_window_seconds: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
    rate_limit_backend: str = os.getenv("RATE_LIMIT_BACKEND", "memory").lower()
    redis_url: str = os.getenv("REDIS_URL", "")
    redis_key_prefix: str = os.getenv("RATE_LIMIT_KEY_PREFIX", "rate")
    redis_max_attempts: int = int(os.getenv("RATE_LIMIT_REDIS_MAX_ATTEMPTS", "16"))
    redis_socket_timeout_seconds: float = float(os.getenv("RATE_LIMIT_REDIS_SOCKET_TIMEOUT", "0.5"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
