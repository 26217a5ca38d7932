from __future__ import annotations

from .load import load_config
from .schema import (
    AppConfig,
    BackoffSettings,
    EnvOverrides,
    RateLimitSettings,
    SearchSettings,
)

__all__ = [
    "AppConfig",
    "BackoffSettings",
    "EnvOverrides",
    "RateLimitSettings",
    "SearchSettings",
    "load_config",
]
