"""Error taxonomy for searches against configured source instances.

Instance-local errors (everything deriving from :class:`SourceSearchError`)
are caught by the search orchestrator, recorded against the instance and
never propagated to the caller.
"""

from __future__ import annotations


class IndexarrError(Exception):
    """Base class for all indexarr errors."""


class InvalidSearchCriteriaError(IndexarrError, ValueError):
    """Raised when a SearchCriteria value is malformed."""


class SourceSearchError(IndexarrError):
    """Base class for failures local to a single source instance."""

    reason = "error"


class AuthenticationError(SourceSearchError):
    """Login failed, or the source rejected the session (401/403)."""

    reason = "auth_error"


class RateLimitDeniedError(SourceSearchError):
    """Admission denied beyond the wait budget. Surfaces as *skipped*."""

    reason = "rate_limited"

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamHttpError(SourceSearchError):
    """Non-2xx response or transport failure talking to the source.

    ``retry_after`` carries the upstream ``Retry-After`` hint (seconds) of a
    429 response.
    """

    reason = "http_error"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.retry_after = retry_after


class ParseError(SourceSearchError):
    """The response body could not be interpreted."""

    reason = "parse_error"


class SearchTimeoutError(SourceSearchError, TimeoutError):
    """Per-instance deadline exceeded."""

    reason = "timeout"
