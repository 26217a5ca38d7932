"""Result types returned by the rate limiter and the search orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .search import Release

OutcomeStatus = Literal["ok", "skipped", "failed"]


@dataclass(frozen=True)
class Admission:
    """Answer of a rate-limiter acquisition attempt.

    ``retry_after`` (seconds) is set when the request was not granted.
    """

    granted: bool
    retry_after: float | None = None


@dataclass(frozen=True)
class PerInstanceOutcome:
    """Diagnostics for one instance in one search round.

    ``skipped`` means the instance was not attempted (disabled, backoff,
    rate limited...). ``failed`` means it was attempted and did not succeed.
    """

    instance_id: str
    status: OutcomeStatus
    reason: str | None = None
    message: str | None = None
    result_count: int = 0
    elapsed: float | None = None

    def __str__(self) -> str:
        if self.reason:
            return f"{self.status}({self.reason})"
        return self.status


@dataclass(frozen=True)
class SearchRoundResult:
    results: tuple[Release, ...]
    diagnostics: tuple[PerInstanceOutcome, ...]

    def _with_status(self, status: OutcomeStatus) -> tuple[PerInstanceOutcome, ...]:
        return tuple(d for d in self.diagnostics if d.status == status)

    @property
    def ok(self) -> tuple[PerInstanceOutcome, ...]:
        return self._with_status("ok")

    @property
    def skipped(self) -> tuple[PerInstanceOutcome, ...]:
        return self._with_status("skipped")

    @property
    def failed(self) -> tuple[PerInstanceOutcome, ...]:
        return self._with_status("failed")

    @property
    def all_failed(self) -> bool:
        """True when instances were attempted and none succeeded."""
        return bool(self.failed) and not self.ok

    def outcome_for(self, instance_id: str) -> PerInstanceOutcome | None:
        for d in self.diagnostics:
            if d.instance_id == instance_id:
                return d
        return None


@dataclass(frozen=True)
class InstanceTestResult:
    ok: bool
    error: str | None = None
    result_count: int = 0
