from .backoff import DEFAULT_BACKOFF, BackoffConfig, next_backoff
from .status_tracker import StatusTracker

__all__ = ["DEFAULT_BACKOFF", "BackoffConfig", "StatusTracker", "next_backoff"]
