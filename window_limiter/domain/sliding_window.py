"""Sliding window counter decision.

The sliding window is approximated from two fixed buckets: the requests of the
current bucket count in full, the requests of the previous bucket count in
proportion to how much of it still overlaps the window ``[now - W, now]``.
Only two counters are stored per identity, independent of request volume.

Example with ``W = 10s`` and a limit of 5: at second 14 the window covers
seconds 4..14, so 60% of the previous bucket (0..10) still overlaps and the
estimate is ``0.6 * previous.count + current.count``.
"""

from __future__ import annotations

from dataclasses import dataclass

from .window import FixedWindow, SlidingWindowState


@dataclass(frozen=True, slots=True)
class Decision:
    """Outcome of one evaluation and the state it leaves behind."""

    allowed: bool
    estimate: int
    state: SlidingWindowState
    persist: bool


def weighted_estimate(state: SlidingWindowState, now_ms: int, window_ms: int) -> int:
    """Return ``floor(previous.count * weight + current.count)``.

    ``weight`` is the overlap of the previous bucket with the sliding window
    divided by ``window_ms``. Integer arithmetic keeps the floor exact.
    """
    sliding_window_start = max(0, now_ms - window_ms)
    previous_end = state.previous.start_ms + window_ms
    overlap = max(0, previous_end - sliding_window_start)
    return state.previous.count * overlap // window_ms + state.current.count


def decide(
    state: SlidingWindowState | None,
    now_ms: int,
    window_ms: int,
    max_requests: int,
) -> Decision:
    """Compute whether a request at ``now_ms`` is admitted and the resulting state."""
    created = state is None
    if state is None:
        state = SlidingWindowState.fresh(now_ms)

    rotated = False
    if state.current.start_ms + window_ms < now_ms:
        # one rotation only; a long-idle previous bucket weighs zero
        state = SlidingWindowState(previous=state.current, current=FixedWindow(start_ms=now_ms))
        rotated = True

    estimate = weighted_estimate(state, now_ms, window_ms)
    if estimate >= max_requests:
        return Decision(allowed=False, estimate=estimate, state=state, persist=created or rotated)

    admitted = SlidingWindowState(previous=state.previous, current=state.current.incremented())
    return Decision(allowed=True, estimate=estimate, state=admitted, persist=True)
