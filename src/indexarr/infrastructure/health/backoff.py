"""Backoff calculator: consecutive failure count -> disable duration.

Pure and stateless.  The curve is policy (``BackoffConfig``); the
invariants are fixed: ``next_backoff(0) == 0``, non-decreasing in the
failure count, never above ``max_seconds``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BackoffConfig:
    """Exponential backoff policy.

    Args:
        failure_threshold: Failures tolerated before any disablement.
        initial_seconds: Backoff at exactly ``failure_threshold`` failures.
        multiplier: Growth factor per additional failure.
        max_seconds: Upper bound for any backoff.
    """

    failure_threshold: int = 5
    initial_seconds: float = 300.0
    multiplier: float = 2.0
    max_seconds: float = 21_600.0

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.initial_seconds < 0:
            raise ValueError("initial_seconds must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if self.max_seconds < 0:
            raise ValueError("max_seconds must be >= 0")


DEFAULT_BACKOFF = BackoffConfig()


def next_backoff(
    consecutive_failures: int, config: BackoffConfig = DEFAULT_BACKOFF
) -> float:
    """Return the disable duration in seconds for *consecutive_failures*."""
    if consecutive_failures < config.failure_threshold:
        return 0.0

    exponent = consecutive_failures - config.failure_threshold
    delay = config.initial_seconds
    # Stop multiplying once the cap is reached.
    for _ in range(exponent):
        if delay >= config.max_seconds:
            break
        delay *= config.multiplier
    return min(delay, config.max_seconds)
