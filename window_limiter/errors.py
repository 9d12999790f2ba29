"""Exception types raised by the rate limiter."""

from __future__ import annotations


class RateLimiterError(Exception):
    """Base error for rate limiter failures."""


class InvalidConfiguration(RateLimiterError, ValueError):
    """Raised when a window length or request limit is not a positive integer."""


class StoreUnavailable(RateLimiterError):
    """Raised when the window state store cannot be read or written.

    The decision is neither allowed nor denied; callers choose whether to fail
    open or closed.
    """


class StoreContention(StoreUnavailable):
    """Raised when an optimistic transaction kept losing to concurrent writers."""
