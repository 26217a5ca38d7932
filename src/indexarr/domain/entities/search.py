"""Value objects for one logical search and its results."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from indexarr.domain.definitions import SEARCH_MODES
from indexarr.domain.errors import InvalidSearchCriteriaError


@dataclass(frozen=True)
class SearchCriteria:
    """One logical query, constructed per call and discarded afterwards."""

    mode: str = "search"
    query: str = ""
    season: int | None = None
    episode: int | None = None
    year: int | None = None
    imdb_id: str | None = None
    categories: tuple[int, ...] = ()
    limit: int | None = None
    offset: int = 0

    def __post_init__(self) -> None:
        if self.mode not in SEARCH_MODES:
            raise InvalidSearchCriteriaError(f"Unknown search mode: {self.mode!r}")
        if self.mode != "tv-search" and (
            self.season is not None or self.episode is not None
        ):
            raise InvalidSearchCriteriaError("season/episode require tv-search mode")
        if self.episode is not None and self.season is None:
            raise InvalidSearchCriteriaError("episode requires season")
        for name in ("season", "episode"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise InvalidSearchCriteriaError(f"{name} must be >= 0")
        if self.limit is not None and self.limit <= 0:
            raise InvalidSearchCriteriaError("limit must be > 0")
        if self.offset < 0:
            raise InvalidSearchCriteriaError("offset must be >= 0")

    @property
    def is_tv(self) -> bool:
        return self.mode == "tv-search"

    @property
    def is_movie(self) -> bool:
        return self.mode == "movie-search"


@dataclass(frozen=True)
class RateLimitRule:
    """Request budget per window for one instance."""

    requests: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.requests < 0:
            raise ValueError("requests must be >= 0")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")


@dataclass(frozen=True)
class SourceInstance:
    """
    A user-configured deployment of a definition.

    Supplied by the configuration store; treated as an input value object.
    """

    id: str
    definition_id: str
    name: str = ""
    base_url: str | None = None
    settings: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    priority: int = 25
    min_seeders: int | None = None
    seed_time: int | None = None
    rate_limit: RateLimitRule | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class Release:
    """Canonical extracted record.

    At least one of ``download_url``, ``magnet_url`` or ``info_hash`` is set.
    ``source_ids`` is plural: merged duplicates carry every contributing
    instance.
    """

    title: str
    protocol: str
    download_url: str | None = None
    magnet_url: str | None = None
    info_hash: str | None = None
    size: int | None = None
    seeders: int | None = None
    leechers: int | None = None
    grabs: int | None = None
    published_at: datetime | None = None
    details_url: str | None = None
    imdb_id: str | None = None
    source_ids: tuple[str, ...] = ()
    categories: frozenset[int] = frozenset()
    download_volume_factor: float = 1.0
    upload_volume_factor: float = 1.0
    minimum_ratio: float | None = None
    minimum_seed_time: int | None = None

    def __post_init__(self) -> None:
        if not self.title:
            raise ValueError("Release requires a title")
        if not (self.download_url or self.magnet_url or self.info_hash):
            raise ValueError("Release requires a download URL, magnet or info-hash")
        if self.info_hash and self.info_hash != self.info_hash.lower():
            object.__setattr__(self, "info_hash", self.info_hash.lower())

    def with_source(self, *source_ids: str) -> Release:
        merged = tuple(dict.fromkeys((*self.source_ids, *source_ids)))
        return replace(self, source_ids=merged)
