"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "indexarr",
    "environment": "dev",
    "definitions": {
        "dir": "./definitions",
    },
    "http": {
        "timeout_seconds": 30.0,
        "follow_redirects": True,
        "user_agent": "Indexarr/0.1.0",
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "search": {
        "max_concurrency": 5,
        "instance_timeout_seconds": 30.0,
        "rate_limit_wait_fraction": 0.25,
        "dedupe_title_similarity": None,
    },
    "backoff": {
        "failure_threshold": 5,
        "initial_seconds": 300.0,
        "multiplier": 2.0,
        "max_seconds": 21_600.0,
    },
    "rate_limit": {
        "default_requests": 0,
        "default_window_seconds": 1.0,
    },
    "session": {
        "ttl_seconds": 3600.0,
    },
}
