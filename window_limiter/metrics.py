"""Prometheus counters for admission decisions."""

from __future__ import annotations

from prometheus_client import Counter

DECISIONS = Counter(
    "window_limiter_decisions",
    "Rate limit decisions by backend and outcome.",
    ["backend", "outcome"],
)

STORE_ERRORS = Counter(
    "window_limiter_store_errors",
    "Evaluations that failed because the window state store was unavailable.",
    ["backend"],
)


def record_decision(backend: str, allowed: bool) -> None:
    DECISIONS.labels(backend=backend, outcome="allowed" if allowed else "denied").inc()


def record_store_error(backend: str) -> None:
    STORE_ERRORS.labels(backend=backend).inc()
