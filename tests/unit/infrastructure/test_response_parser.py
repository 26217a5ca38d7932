"""Tests for ResponseParser against HTML and JSON bodies."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from indexarr.domain.definitions import SourceDefinition
from indexarr.domain.errors import AuthenticationError, ParseError, UpstreamHttpError
from indexarr.infrastructure.definitions import (
    load_definition_data,
    load_definition_file,
)
from indexarr.infrastructure.engine import FilterEngine, ResponseParser, TemplateEngine

VARIABLES: dict[str, Any] = {"Config": {"sitelink": "https://tracker.example/"}}


@pytest.fixture()
def parser() -> ResponseParser:
    templates = TemplateEngine()
    return ResponseParser(templates, FilterEngine(templates))


def _parse(
    parser: ResponseParser,
    definition: SourceDefinition,
    body: str,
    variables: dict[str, Any] | None = None,
):
    assert definition.search is not None
    path = definition.search.paths[0]
    return parser.parse(definition, body, path, variables or VARIABLES, "test-1")


class TestHtml:
    def test_rows_become_releases(
        self,
        parser: ResponseParser,
        definition: SourceDefinition,
        search_page: str,
    ) -> None:
        releases = _parse(parser, definition, search_page)

        # the third row has no title link and is discarded
        assert [r.title for r in releases] == [
            "Big.Movie.2024.2160p.WEB",
            "Some.Show.S01E02.720p",
        ]
        movie, show = releases
        assert movie.categories == frozenset({2000, 2045})
        assert show.categories == frozenset({5000})
        assert movie.download_url == "https://tracker.example/dl/1.torrent"
        assert movie.details_url == "https://tracker.example/t/1"
        assert movie.size == int(4.5 * 1024**3)
        assert show.size == 700 * 1024**2
        assert (movie.seeders, movie.leechers) == (120, 7)
        assert movie.protocol == "torrent"
        assert movie.source_ids == ("test-1",)

    def test_rows_after_skips_leading_rows(
        self,
        parser: ResponseParser,
        definition_data: dict[str, Any],
        search_page: str,
    ) -> None:
        definition_data["search"]["rows"]["after"] = 1
        releases = _parse(parser, load_definition_data(definition_data), search_page)
        assert [r.title for r in releases] == ["Some.Show.S01E02.720p"]

    def test_optional_field_with_default(
        self,
        parser: ResponseParser,
        definition_data: dict[str, Any],
        search_page: str,
    ) -> None:
        definition_data["search"]["fields"]["grabs"] = {
            "selector": "td.grabs",
            "optional": True,
            "default": "3",
        }
        releases = _parse(parser, load_definition_data(definition_data), search_page)
        assert {r.grabs for r in releases} == {3}

    def test_text_field_uses_earlier_results(
        self,
        parser: ResponseParser,
        definition_data: dict[str, Any],
        search_page: str,
    ) -> None:
        fields = definition_data["search"]["fields"]
        fields["downloadvolumefactor"] = {
            "text": "{{ if .Result.seeders }}0{{ else }}1{{ end }}"
        }
        releases = _parse(parser, load_definition_data(definition_data), search_page)
        assert {r.download_volume_factor for r in releases} == {0.0}

    def test_magnet_in_download_field(
        self,
        parser: ResponseParser,
        definition_data: dict[str, Any],
        search_page: str,
    ) -> None:
        magnet = "magnet:?xt=urn:btih:ABCDEF0123456789ABCDEF0123456789ABCDEF01"
        body = search_page.replace("/dl/1.torrent", magnet)
        releases = _parse(parser, load_definition_data(definition_data), body)
        movie = releases[0]
        assert movie.download_url is None
        assert movie.magnet_url == magnet
        assert movie.info_hash == "abcdef0123456789abcdef0123456789abcdef01"

    def test_no_rows_is_empty(
        self, parser: ResponseParser, definition: SourceDefinition
    ) -> None:
        assert _parse(parser, definition, "<html><body>nothing</body></html>") == []


class TestErrorMarkers:
    @pytest.fixture()
    def guarded(self, definition_data: dict[str, Any]) -> SourceDefinition:
        definition_data["search"]["error"] = [{"selector": "div.error"}]
        return load_definition_data(definition_data)

    def test_login_marker_raises_authentication_error(
        self, parser: ResponseParser, guarded: SourceDefinition
    ) -> None:
        body = '<div class="error">Please log in to continue</div>'
        with pytest.raises(AuthenticationError, match="log in"):
            _parse(parser, guarded, body)

    def test_other_marker_raises_upstream_error(
        self, parser: ResponseParser, guarded: SourceDefinition
    ) -> None:
        body = '<div class="error">Too many searches, slow down</div>'
        with pytest.raises(UpstreamHttpError) as exc_info:
            _parse(parser, guarded, body)
        assert exc_info.value.status is None

    def test_fixed_message(
        self, parser: ResponseParser, definition_data: dict[str, Any]
    ) -> None:
        definition_data["search"]["error"] = [
            {"selector": "form#login", "message": "session expired"}
        ]
        definition = load_definition_data(definition_data)
        with pytest.raises(AuthenticationError, match="session expired"):
            _parse(parser, definition, '<form id="login"></form>')

    def test_no_marker_parses_normally(
        self, parser: ResponseParser, guarded: SourceDefinition, search_page: str
    ) -> None:
        assert len(_parse(parser, guarded, search_page)) == 2


class TestJson:
    BODY = {
        "status": "ok",
        "data": {
            "movie_count": 1,
            "movies": [
                {
                    "title_long": "Dune (2021)",
                    "imdb_code": "tt1160419",
                    "torrents": [
                        {
                            "url": "https://movies-api.example.org/dl/AAA",
                            "hash": "AAAA0123456789ABCDEF0123456789ABCDEF0123",
                            "quality": "1080p",
                            "type": "web",
                            "seeds": 50,
                            "peers": 5,
                            "size_bytes": 2147483648,
                            "date_uploaded_unix": 1700000000,
                        },
                        {
                            "url": "https://movies-api.example.org/dl/BBB",
                            "hash": "BBBB0123456789ABCDEF0123456789ABCDEF0123",
                            "quality": "2160p",
                            "seeds": 12,
                            "peers": 1,
                            "size_bytes": 8589934592,
                            "date_uploaded_unix": 1700000000,
                        },
                    ],
                }
            ],
        },
    }

    @pytest.fixture()
    def json_definition(self, sample_definitions_dir: Path) -> SourceDefinition:
        return load_definition_file(sample_definitions_dir / "examplejson.yml")

    def test_nested_rows_flattened(
        self, parser: ResponseParser, json_definition: SourceDefinition
    ) -> None:
        variables = {"Config": {"sitelink": "https://movies-api.example.org/"}}
        releases = _parse(parser, json_definition, json.dumps(self.BODY), variables)

        assert [r.title for r in releases] == [
            "Dune (2021) [1080p] [web]",
            "Dune (2021) [2160p] [web]",
        ]
        hd, uhd = releases
        assert hd.categories == frozenset({2000, 2040})
        assert uhd.categories == frozenset({2000, 2045})
        assert hd.info_hash == "aaaa0123456789abcdef0123456789abcdef0123"
        assert hd.imdb_id == "tt1160419"
        assert hd.size == 2 * 1024**3
        assert (hd.seeders, hd.leechers) == (50, 5)
        assert hd.published_at == datetime(
            2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc
        )
        assert hd.download_volume_factor == 0.0
        assert hd.upload_volume_factor == 1.0

    def test_empty_result(
        self, parser: ResponseParser, json_definition: SourceDefinition
    ) -> None:
        body = json.dumps({"status": "ok", "data": {"movie_count": 0}})
        assert _parse(parser, json_definition, body) == []

    def test_invalid_json_raises_parse_error(
        self, parser: ResponseParser, json_definition: SourceDefinition
    ) -> None:
        with pytest.raises(ParseError):
            _parse(parser, json_definition, "<html>not json</html>")
