"""Merging of releases reported by several instances.

Pure transformation logic, no I/O.  Two releases are the same logical
release when they share an info-hash, or (both without info-hash) when
their normalized titles and sizes match.  An optional fuzzy policy relaxes
the title comparison using rapidfuzz.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable

from rapidfuzz import fuzz
from unidecode import unidecode

from indexarr.domain.entities import Release

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

_FILLABLE_FIELDS: tuple[str, ...] = (
    "download_url",
    "magnet_url",
    "info_hash",
    "size",
    "seeders",
    "leechers",
    "grabs",
    "published_at",
    "details_url",
    "imdb_id",
    "minimum_ratio",
    "minimum_seed_time",
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_title(title: str) -> str:
    """Transliterate to ASCII, lower-case, keep alphanumerics only."""
    return _NON_ALNUM_RE.sub("", unidecode(title).lower())


def _fuzzy_form(title: str) -> str:
    # Token based comparison needs word boundaries kept.
    return " ".join(_NON_ALNUM_RE.sub(" ", unidecode(title).lower()).split())


def release_key(release: Release) -> tuple[str, ...]:
    if release.info_hash:
        return ("hash", release.info_hash.lower())
    return ("title", normalize_title(release.title), str(release.size))


def _published(release: Release) -> datetime:
    value = release.published_at
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _rank(release: Release) -> tuple[int, int, datetime]:
    return (
        release.seeders if release.seeders is not None else -1,
        release.size if release.size is not None else -1,
        _published(release),
    )


def merge_releases(a: Release, b: Release) -> Release:
    """Merge two copies of one logical release.

    The copy with more seeders (then larger size, then newer date) is the
    representative; missing fields are filled from the other copy and
    ``source_ids`` / ``categories`` are unioned.
    """
    primary, secondary = (a, b) if _rank(a) >= _rank(b) else (b, a)

    filled = {
        name: getattr(secondary, name)
        for name in _FILLABLE_FIELDS
        if getattr(primary, name) is None and getattr(secondary, name) is not None
    }
    return replace(
        primary,
        **filled,
        source_ids=tuple(dict.fromkeys((*a.source_ids, *b.source_ids))),
        categories=primary.categories | secondary.categories,
    )


class ReleaseMerger:
    """Collapse duplicates in a list of releases, keeping first-seen order.

    Args:
        title_similarity: Optional rapidfuzz ``token_sort_ratio`` threshold
            (0-100).  When set, releases without info-hash whose sizes agree
            (or are unknown) and whose titles score at least this value are
            merged as well.
    """

    def __init__(self, title_similarity: float | None = None) -> None:
        self._similarity = title_similarity

    def merge(self, releases: Iterable[Release]) -> list[Release]:
        merged: list[Release] = []
        index: dict[tuple[str, ...], int] = {}

        for release in releases:
            key = release_key(release)
            pos = index.get(key)
            if pos is None and self._similarity is not None and not release.info_hash:
                pos = self._find_similar(merged, release)
            if pos is None:
                index[key] = len(merged)
                merged.append(release)
                continue
            merged[pos] = merge_releases(merged[pos], release)
            index[key] = pos

        return merged

    def _find_similar(self, merged: list[Release], release: Release) -> int | None:
        title = _fuzzy_form(release.title)
        for pos, candidate in enumerate(merged):
            if candidate.info_hash:
                continue
            if (
                candidate.size is not None
                and release.size is not None
                and candidate.size != release.size
            ):
                continue
            score = fuzz.token_sort_ratio(title, _fuzzy_form(candidate.title))
            if score >= (self._similarity or 0):
                return pos
        return None
