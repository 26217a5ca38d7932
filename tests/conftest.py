"""Shared test fixtures for the indexarr test suite."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Callable

import pytest

from indexarr.domain.definitions import SourceDefinition
from indexarr.domain.entities import Release, SourceInstance
from indexarr.infrastructure.definitions import load_definition_data

SAMPLE_DEFINITIONS_DIR = Path(__file__).resolve().parents[1] / "definitions"

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock, usable wherever a ``Clock`` is injected."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

_DEFINITION_DATA: dict[str, Any] = {
    "id": "testsite",
    "name": "Test Site",
    "description": "HTML tracker used by the unit tests",
    "type": "public",
    "protocol": "torrent",
    "links": ["https://tracker.example/"],
    "caps": {
        "categorymappings": [
            {"id": "1", "cat": "Movies", "desc": "Movies"},
            {"id": "2", "cat": "Movies/UHD", "desc": "Movies UHD"},
            {"id": "5", "cat": "TV", "desc": "TV"},
        ],
        "modes": {
            "search": ["q"],
            "movie-search": ["q", "imdbid"],
            "tv-search": ["q", "season", "ep"],
        },
    },
    "search": {
        "paths": [{"path": "search"}],
        "inputs": {"q": "{{ .Keywords }}", "cat": '{{ join .Categories "," }}'},
        "rows": {"selector": "table.results tr.row"},
        "fields": {
            "category": {"selector": "td.cat"},
            "title": {"selector": "a.title"},
            "details": {"selector": "a.title", "attribute": "href"},
            "download": {"selector": "a.dl", "attribute": "href"},
            "size": {"selector": "td.size"},
            "seeders": {"selector": "td.seeders"},
            "leechers": {"selector": "td.leechers"},
        },
    },
}

SEARCH_PAGE = """
<html><body>
<table class="results">
  <tr class="row">
    <td class="cat">2</td>
    <td><a class="title" href="/t/1">Big.Movie.2024.2160p.WEB</a></td>
    <td><a class="dl" href="/dl/1.torrent">get</a></td>
    <td class="size">4.5 GB</td>
    <td class="seeders">120</td>
    <td class="leechers">7</td>
  </tr>
  <tr class="row">
    <td class="cat">5</td>
    <td><a class="title" href="/t/2">Some.Show.S01E02.720p</a></td>
    <td><a class="dl" href="/dl/2.torrent">get</a></td>
    <td class="size">700 MB</td>
    <td class="seeders">15</td>
    <td class="leechers">1</td>
  </tr>
  <tr class="row">
    <td class="cat">1</td>
    <td><span>row without a title link</span></td>
    <td><a class="dl" href="/dl/3.torrent">get</a></td>
    <td class="size">1 GB</td>
    <td class="seeders">3</td>
    <td class="leechers">0</td>
  </tr>
</table>
</body></html>
"""


@pytest.fixture()
def definition_data() -> dict[str, Any]:
    """Raw YAML-shaped mapping of a valid public HTML definition."""
    return copy.deepcopy(_DEFINITION_DATA)


@pytest.fixture()
def definition(definition_data: dict[str, Any]) -> SourceDefinition:
    return load_definition_data(definition_data)


@pytest.fixture()
def search_page() -> str:
    """HTML search result page matching the ``testsite`` definition."""
    return SEARCH_PAGE


@pytest.fixture()
def sample_definitions_dir() -> Path:
    """The sample definitions shipped with the project."""
    return SAMPLE_DEFINITIONS_DIR


# ---------------------------------------------------------------------------
# Instances / releases
# ---------------------------------------------------------------------------


@pytest.fixture()
def instance() -> SourceInstance:
    return SourceInstance(id="test-1", definition_id="testsite")


@pytest.fixture()
def make_release() -> Callable[..., Release]:
    """Factory for releases with sensible defaults."""

    def _make(title: str = "Big.Movie.2024.1080p", **kwargs: Any) -> Release:
        kwargs.setdefault("protocol", "torrent")
        if not any(k in kwargs for k in ("download_url", "magnet_url", "info_hash")):
            kwargs["download_url"] = f"https://tracker.example/dl/{title}"
        return Release(title=title, **kwargs)

    return _make
