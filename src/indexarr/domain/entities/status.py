"""Per-instance runtime health state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class HealthState(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DISABLED = "disabled"


@dataclass(frozen=True)
class SourceStatus:
    """Snapshot of one instance's failure record.

    ``disabled_until`` is ``None`` while the backoff for the current
    failure count is zero.
    """

    instance_id: str
    consecutive_failures: int = 0
    last_failure_at: float | None = None
    last_failure_reason: str | None = None
    disabled_until: float | None = None
    average_response_time: float | None = None
    last_success_at: float | None = None
    total_successes: int = 0
    total_failures: int = 0

    def state_at(self, now: float) -> HealthState:
        if self.disabled_until is not None and now < self.disabled_until:
            return HealthState.DISABLED
        if self.consecutive_failures > 0 and self.disabled_until is None:
            return HealthState.DEGRADED
        # Never failed, or the disable window elapsed (probation).
        return HealthState.HEALTHY

    def is_eligible_at(self, now: float) -> bool:
        return self.disabled_until is None or now >= self.disabled_until
