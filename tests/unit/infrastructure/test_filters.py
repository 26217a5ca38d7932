"""Tests for the filter engine."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from indexarr.domain.definitions import FilterStep
from indexarr.infrastructure.engine import FilterEngine, TemplateEngine
from indexarr.infrastructure.engine.filters import (
    go_layout_to_strptime,
    parse_go_date,
    parse_relative_time,
)

NOW = datetime(2025, 6, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def filters() -> FilterEngine:
    return FilterEngine(TemplateEngine(), now=lambda: NOW)


def _apply(
    engine: FilterEngine, data: str, name: str, args: object = None, **variables: object
) -> str:
    return engine.apply(data, [FilterStep(name, args)], variables)


class TestStringFilters:
    def test_querystring(self, filters: FilterEngine) -> None:
        result = _apply(filters, "/browse.php?cat=12&page=2", "querystring", "cat")
        assert result == "12"

    def test_regexp_returns_first_group(self, filters: FilterEngine) -> None:
        result = _apply(filters, "filter_cat[7]=1", "regexp", r"filter_cat\[(\d+)\]")
        assert result == "7"

    def test_regexp_no_match_is_empty(self, filters: FilterEngine) -> None:
        assert _apply(filters, "abc", "regexp", r"\d+") == ""

    def test_re_replace(self, filters: FilterEngine) -> None:
        assert _apply(filters, "Iron-Man 2", "re_replace", ["[^a-zA-Z0-9]+", " "]) == (
            "Iron Man 2"
        )

    def test_split_with_negative_index(self, filters: FilterEngine) -> None:
        assert _apply(filters, "a/b/c", "split", ["/", -1]) == "c"

    def test_replace_and_trim(self, filters: FilterEngine) -> None:
        steps = [FilterStep("replace", [",", ""]), FilterStep("trim")]
        assert filters.apply("  1,234  ", steps) == "1234"

    def test_append_expands_templates(self, filters: FilterEngine) -> None:
        result = _apply(
            filters, "abc", "append", "&key={{ .Config.key }}", Config={"key": "k1"}
        )
        assert result == "abc&key=k1"

    def test_case_and_url_coding(self, filters: FilterEngine) -> None:
        assert _apply(filters, "MiXeD", "tolower") == "mixed"
        assert _apply(filters, "a b&c", "urlencode") == "a%20b%26c"
        assert _apply(filters, "a%20b", "urldecode") == "a b"
        assert _apply(filters, "&amp;", "htmldecode") == "&"

    def test_diacritics(self, filters: FilterEngine) -> None:
        assert _apply(filters, "Amélie", "diacritics", "replace") == "Amelie"

    def test_validate_keeps_known_tokens(self, filters: FilterEngine) -> None:
        assert _apply(filters, "1080p, x264 HDR", "validate", "1080p,hdr") == (
            "1080p, hdr"
        )

    def test_mapreplace_pairs(self, filters: FilterEngine) -> None:
        result = _apply(filters, "Free Leech", "mapreplace", {"(?i)free leech": "0"})
        assert result == "0"

    def test_default_only_when_blank(self, filters: FilterEngine) -> None:
        assert _apply(filters, "", "default", "n/a") == "n/a"
        assert _apply(filters, "x", "default", "n/a") == "x"

    def test_absoluteurl_uses_sitelink(self, filters: FilterEngine) -> None:
        result = _apply(
            filters,
            "dl/1.torrent",
            "absoluteurl",
            Config={"sitelink": "https://t.example/"},
        )
        assert result == "https://t.example/dl/1.torrent"

    def test_jsonjoinarray(self, filters: FilterEngine) -> None:
        data = '{"genres": ["Action", "Drama"]}'
        assert _apply(filters, data, "jsonjoinarray", ["$.genres", ", "]) == (
            "Action, Drama"
        )

    def test_parsesize(self, filters: FilterEngine) -> None:
        assert _apply(filters, "1 GB", "parsesize") == str(1024**3)


class TestChains:
    def test_filters_apply_in_order(self, filters: FilterEngine) -> None:
        steps = [
            FilterStep("replace", ["Size: ", ""]),
            FilterStep("toupper"),
            FilterStep("append", " total"),
        ]
        assert filters.apply("Size: 1 gb", steps) == "1 GB total"

    def test_unknown_filter_is_skipped(self, filters: FilterEngine) -> None:
        steps = [FilterStep("does_not_exist"), FilterStep("toupper")]
        assert filters.apply("abc", steps) == "ABC"

    def test_failing_filter_passes_data_through(self, filters: FilterEngine) -> None:
        # invalid regular expression
        assert _apply(filters, "abc", "regexp", "(") == "abc"

    def test_registry_lookup(self) -> None:
        assert FilterEngine.has_filter("DateParse")
        assert "timeago" in FilterEngine.available()


class TestDates:
    def test_go_layout_translation(self) -> None:
        assert go_layout_to_strptime("2006-01-02 15:04:05") == "%Y-%m-%d %H:%M:%S"
        assert go_layout_to_strptime("Jan 02 2006, 15:04") == "%b %d %Y, %H:%M"

    def test_parse_go_date(self) -> None:
        assert parse_go_date("2024-03-05 10:30", "2006-01-02 15:04", NOW) == datetime(
            2024, 3, 5, 10, 30, tzinfo=timezone.utc
        )

    def test_parse_go_date_without_year_uses_current(self) -> None:
        parsed = parse_go_date("Mar 05 10:30", "Jan 02 15:04", NOW)
        assert parsed is not None and parsed.year == 2025

    def test_unix_layout(self) -> None:
        assert parse_go_date("0", "unix", NOW) == datetime(
            1970, 1, 1, tzinfo=timezone.utc
        )

    @pytest.mark.parametrize(
        ("text", "seconds"),
        [
            ("2 hours ago", 7200),
            ("1 day 3 hrs", 86400 + 3 * 3600),
            ("an hour ago", 3600),
            ("5 mins", 300),
            ("yesterday", 86400),
            ("just now", 0),
        ],
    )
    def test_relative_time(self, text: str, seconds: int) -> None:
        parsed = parse_relative_time(text, NOW)
        assert parsed is not None
        assert (NOW - parsed).total_seconds() == seconds

    def test_dateparse_filter_renders_rfc1123(self, filters: FilterEngine) -> None:
        result = _apply(filters, "2024-03-05 10:30", "dateparse", "2006-01-02 15:04")
        assert result == "Tue, 05 Mar 2024 10:30:00 GMT"

    def test_timeago_filter(self, filters: FilterEngine) -> None:
        assert _apply(filters, "3 days ago", "timeago") == (
            "Sat, 07 Jun 2025 12:00:00 GMT"
        )

    def test_unparseable_date_is_left_alone(self, filters: FilterEngine) -> None:
        assert _apply(filters, "soon", "dateparse", "2006-01-02") == "soon"

    def test_fuzzytime_today_with_clock(self, filters: FilterEngine) -> None:
        assert _apply(filters, "Today 08:15", "fuzzytime") == (
            "Tue, 10 Jun 2025 08:15:00 GMT"
        )
