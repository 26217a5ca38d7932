"""Per-instance token-bucket admission control for outgoing searches.

Independent of the status tracker: a denied acquisition never counts as
a failure.  Callers get an immediate answer (:class:`Admission`) and decide
themselves whether to wait ``retry_after`` seconds or give up.
"""

from __future__ import annotations

import threading
import time

import structlog

from indexarr.domain.entities import Admission, RateLimitRule
from indexarr.domain.ports import Clock

log = structlog.get_logger(__name__)


class TokenBucket:
    """Token bucket holding at most ``rule.requests`` tokens.

    Tokens refill continuously at ``requests / window_seconds`` per second,
    so ``RateLimitRule(1, 2.0)`` admits one request per two seconds.
    A rule with ``requests == 0`` means unlimited.

    Not thread-safe on its own; :class:`InstanceRateLimiter` serializes
    access.
    """

    def __init__(self, rule: RateLimitRule, clock: Clock = time.monotonic) -> None:
        self._rule = rule
        self._clock = clock
        self._tokens = float(rule.requests)
        self._last_refill = clock()
        self._blocked_until = 0.0

    @property
    def rule(self) -> RateLimitRule:
        return self._rule

    @property
    def rate(self) -> float:
        """Tokens replenished per second."""
        return self._rule.requests / self._rule.window_seconds

    def try_acquire(self) -> Admission:
        now = self._clock()
        if now < self._blocked_until:
            return Admission(granted=False, retry_after=self._blocked_until - now)
        if self._rule.requests == 0:
            return Admission(granted=True)

        self._refill(now)
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return Admission(granted=True)
        return Admission(granted=False, retry_after=(1.0 - self._tokens) / self.rate)

    def block_for(self, seconds: float) -> None:
        """Deny everything for *seconds* (upstream asked us to back off)."""
        now = self._clock()
        self._blocked_until = max(self._blocked_until, now + seconds)
        self._tokens = 0.0
        self._last_refill = now

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(
            float(self._rule.requests), self._tokens + elapsed * self.rate
        )
        self._last_refill = now


class InstanceRateLimiter:
    """Manages one token bucket per instance id.

    Args:
        default_rule: Rule for ids that were never configured. ``None``
            means unconfigured ids are unlimited.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        default_rule: RateLimitRule | None = None,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self._default_rule = default_rule
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def configure(self, instance_id: str, rule: RateLimitRule | None) -> None:
        """Set the rule for *instance_id*; keeps the bucket if unchanged."""
        with self._lock:
            if rule is None:
                self._buckets.pop(instance_id, None)
                return
            current = self._buckets.get(instance_id)
            if current is not None and current.rule == rule:
                return
            self._buckets[instance_id] = TokenBucket(rule, self._clock)
        log.debug(
            "rate_limit_configured",
            instance=instance_id,
            requests=rule.requests,
            window_seconds=rule.window_seconds,
        )

    def try_acquire(self, instance_id: str) -> Admission:
        """Take one token for *instance_id* if available."""
        with self._lock:
            bucket = self._get_bucket(instance_id)
            if bucket is None:
                return Admission(granted=True)
            admission = bucket.try_acquire()

        if not admission.granted:
            log.debug(
                "rate_limit_denied",
                instance=instance_id,
                retry_after=round(admission.retry_after or 0.0, 3),
            )
        return admission

    def block_for(self, instance_id: str, seconds: float) -> None:
        """Record a 429-style throttle response for *instance_id*."""
        with self._lock:
            bucket = self._get_bucket(instance_id)
            if bucket is None:
                # unlimited bucket: only the block applies, then it lifts
                bucket = TokenBucket(RateLimitRule(0, 1.0), self._clock)
                self._buckets[instance_id] = bucket
            bucket.block_for(seconds)
        log.info("rate_limit_throttled", instance=instance_id, seconds=seconds)

    def _get_bucket(self, instance_id: str) -> TokenBucket | None:
        bucket = self._buckets.get(instance_id)
        if bucket is None and self._default_rule is not None:
            bucket = TokenBucket(self._default_rule, self._clock)
            self._buckets[instance_id] = bucket
        return bucket
