"""Common infrastructure utilities."""

from __future__ import annotations

from .converters import to_float, to_int
from .episodes import EpisodeInfo, matches_season_episode, parse_episode_info
from .parsers import extract_info_hash, parse_date, parse_size_to_bytes
from .rate_limiter import InstanceRateLimiter, TokenBucket

__all__ = [
    "EpisodeInfo",
    "InstanceRateLimiter",
    "TokenBucket",
    "extract_info_hash",
    "matches_season_episode",
    "parse_date",
    "parse_episode_info",
    "parse_size_to_bytes",
    "to_float",
    "to_int",
]
