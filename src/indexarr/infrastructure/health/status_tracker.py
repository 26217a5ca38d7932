"""Per-instance health state machine built on the backoff calculator.

States: ``HEALTHY -> DEGRADED (failures, not yet disabled) -> DISABLED
(disabled_until in the future) -> HEALTHY`` once ``disabled_until``
elapses.  The elapsed state is a probation: the failure count is kept, so
the next failure backs off further, while one success resets everything.

Eligibility is computed lazily from an injected clock; there is no
background timer.
"""

from __future__ import annotations

import threading
import time
from dataclasses import replace

import structlog

from indexarr.domain.entities import HealthState, SourceStatus
from indexarr.domain.ports import Clock

from .backoff import DEFAULT_BACKOFF, BackoffConfig, next_backoff

log = structlog.get_logger(__name__)


class StatusTracker:
    """Track per-instance failure records keyed by instance id.

    All mutation goes through :meth:`record_success`,
    :meth:`record_failure` and :meth:`reset`, serialized by a lock.
    Records are immutable snapshots replaced on every update.

    Args:
        backoff: Backoff policy.
        clock: Wall-clock source in seconds (``time.time`` by default).
        response_time_alpha: Smoothing factor for the rolling average
            response time (exponentially weighted).
    """

    def __init__(
        self,
        *,
        backoff: BackoffConfig = DEFAULT_BACKOFF,
        clock: Clock = time.time,
        response_time_alpha: float = 0.3,
    ) -> None:
        if not 0 < response_time_alpha <= 1:
            raise ValueError("response_time_alpha must be in (0, 1]")
        self._backoff = backoff
        self._clock = clock
        self._alpha = response_time_alpha
        self._statuses: dict[str, SourceStatus] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_eligible(self, instance_id: str, now: float | None = None) -> bool:
        """Return ``True`` unless the instance is inside a disable window."""
        status = self._statuses.get(instance_id)
        if status is None:
            return True
        return status.is_eligible_at(self._clock() if now is None else now)

    def record_success(
        self, instance_id: str, response_time: float | None = None
    ) -> SourceStatus:
        """Reset the failure count and clear ``disabled_until``."""
        with self._lock:
            now = self._clock()
            current = self._statuses.get(instance_id) or SourceStatus(instance_id)
            average = current.average_response_time
            if response_time is not None:
                average = (
                    response_time
                    if average is None
                    else self._alpha * response_time + (1 - self._alpha) * average
                )
            updated = replace(
                current,
                consecutive_failures=0,
                disabled_until=None,
                average_response_time=average,
                last_success_at=now,
                total_successes=current.total_successes + 1,
            )
            self._statuses[instance_id] = updated

        if current.consecutive_failures:
            log.info(
                "status_recovered",
                instance=instance_id,
                previous_failures=current.consecutive_failures,
            )
        return updated

    def record_failure(self, instance_id: str, reason: str) -> SourceStatus:
        """Increment the failure count and recompute ``disabled_until``."""
        with self._lock:
            now = self._clock()
            current = self._statuses.get(instance_id) or SourceStatus(instance_id)
            count = current.consecutive_failures + 1
            delay = next_backoff(count, self._backoff)
            updated = replace(
                current,
                consecutive_failures=count,
                last_failure_at=now,
                last_failure_reason=reason,
                disabled_until=now + delay if delay > 0 else None,
                total_failures=current.total_failures + 1,
            )
            self._statuses[instance_id] = updated

        if updated.disabled_until is not None:
            log.warning(
                "status_disabled",
                instance=instance_id,
                failures=count,
                backoff_seconds=delay,
                reason=reason,
            )
        else:
            log.info(
                "status_degraded", instance=instance_id, failures=count, reason=reason
            )
        return updated

    def get(self, instance_id: str) -> SourceStatus:
        return self._statuses.get(instance_id) or SourceStatus(instance_id)

    def state(self, instance_id: str, now: float | None = None) -> HealthState:
        return self.get(instance_id).state_at(self._clock() if now is None else now)

    def reset(self, instance_id: str) -> None:
        """Administrator action: forget everything about *instance_id*."""
        with self._lock:
            self._statuses.pop(instance_id, None)
        log.info("status_reset", instance=instance_id)

    def snapshot(self) -> dict[str, dict[str, object]]:
        """Return a diagnostic snapshot of all tracked instances."""
        now = self._clock()
        statuses = dict(self._statuses)
        return {
            instance_id: {
                "state": status.state_at(now).value,
                "failures": status.consecutive_failures,
                "disabled_until": status.disabled_until,
                "last_failure_reason": status.last_failure_reason,
                "average_response_time": status.average_response_time,
            }
            for instance_id, status in sorted(statuses.items())
        }
