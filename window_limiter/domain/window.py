from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FixedWindow:
    """One fixed-length time bucket and the requests admitted into it."""

    start_ms: int
    count: int = 0

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("count must be >= 0")

    def incremented(self) -> "FixedWindow":
        """Return a copy of this bucket with one more admitted request."""
        return FixedWindow(start_ms=self.start_ms, count=self.count + 1)


@dataclass(frozen=True, slots=True)
class SlidingWindowState:
    """Persisted per-identity state: the previous and the current bucket."""

    previous: FixedWindow
    current: FixedWindow

    def __post_init__(self) -> None:
        if self.current.start_ms < self.previous.start_ms:
            raise ValueError("current bucket must not start before the previous bucket")

    @classmethod
    def fresh(cls, now_ms: int) -> "SlidingWindowState":
        """Build the initial state for an identity seen for the first time."""
        return cls(previous=FixedWindow(start_ms=now_ms), current=FixedWindow(start_ms=now_ms))
