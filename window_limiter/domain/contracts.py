"""Caller-supplied limits shared by the engine and the bound limiters."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidConfiguration


def _require_positive_int(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidConfiguration(f"{name} must be > 0, got {value}")


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Window length and request limit applied to one evaluation."""

    period_seconds: int
    max_requests: int

    def __post_init__(self) -> None:
        _require_positive_int("period_seconds", self.period_seconds)
        _require_positive_int("max_requests", self.max_requests)

    @property
    def window_ms(self) -> int:
        """Window length in milliseconds."""
        return self.period_seconds * 1000
