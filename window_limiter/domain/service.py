"""Rate limiter service evaluating requests against a window state repository."""

from __future__ import annotations

import logging

from ..clock import Clock, system_clock
from ..errors import StoreUnavailable
from ..metrics import record_decision, record_store_error
from ..repository import WindowStateRepository
from .contracts import RateLimitPolicy
from .sliding_window import Decision, decide
from .window import SlidingWindowState

logger = logging.getLogger(__name__)


class RateLimiterService:
    """Sliding window counter admission control over an injected repository."""

    def __init__(self, repository: WindowStateRepository) -> None:
        """Store the repository that owns every identity's window state."""
        self._repository = repository

    @property
    def repository(self) -> WindowStateRepository:
        return self._repository

    def evaluate(self, key: str, now_ms: int, period_seconds: int, max_requests: int) -> bool:
        """Return ``True`` when a request by ``key`` at ``now_ms`` is admitted.

        Parameters
        ----------
        key:
            Caller identity, e.g. a client address or API key.
        now_ms:
            Request time in epoch milliseconds.
        period_seconds:
            Sliding window length.
        max_requests:
            Requests allowed per window.

        Raises
        ------
        InvalidConfiguration
            When ``period_seconds`` or ``max_requests`` is not a positive
            integer. The repository is not touched.
        StoreUnavailable
            When the repository cannot be read or written.
        """
        return self.check(key, now_ms, RateLimitPolicy(period_seconds, max_requests)).allowed

    def is_allowed(
        self,
        key: str,
        period_seconds: int,
        max_requests: int,
        clock: Clock = system_clock,
    ) -> bool:
        """Evaluate a request by ``key`` at the time reported by ``clock``."""
        policy = RateLimitPolicy(period_seconds, max_requests)
        return self.check(key, clock(), policy).allowed

    def check(self, key: str, now_ms: int, policy: RateLimitPolicy) -> Decision:
        """Evaluate one request and return the full decision."""
        window_ms = policy.window_ms

        def mutation(state: SlidingWindowState | None) -> tuple[Decision, SlidingWindowState | None]:
            decision = decide(state, now_ms, window_ms, policy.max_requests)
            return decision, decision.state if decision.persist else None

        backend = self._repository.backend
        try:
            decision = self._repository.transact(key, mutation, ttl_ms=2 * window_ms)
        except StoreUnavailable as exc:
            record_store_error(backend)
            logger.warning("rate limit store %s unavailable for %s: %s", backend, key, exc)
            raise

        record_decision(backend, decision.allowed)
        if not decision.allowed:
            logger.debug(
                "rate limited %s: estimate=%s limit=%s window_ms=%s",
                key,
                decision.estimate,
                policy.max_requests,
                window_ms,
            )
        return decision

    def current_state(self, key: str) -> SlidingWindowState | None:
        """Return the stored state for ``key`` without evaluating a request."""
        return self._repository.load(key)

    def reset(self, key: str) -> None:
        """Drop the stored state for ``key``."""
        self._repository.reset(key)
