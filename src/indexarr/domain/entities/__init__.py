from .categories import CanonicalCategory
from .outcome import (
    Admission,
    InstanceTestResult,
    OutcomeStatus,
    PerInstanceOutcome,
    SearchRoundResult,
)
from .search import RateLimitRule, Release, SearchCriteria, SourceInstance
from .status import HealthState, SourceStatus

__all__ = [
    "Admission",
    "CanonicalCategory",
    "HealthState",
    "InstanceTestResult",
    "OutcomeStatus",
    "PerInstanceOutcome",
    "RateLimitRule",
    "Release",
    "SearchCriteria",
    "SearchRoundResult",
    "SourceInstance",
    "SourceStatus",
]
