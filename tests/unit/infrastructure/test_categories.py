"""Tests for the canonical category tree and source category mapping."""

from __future__ import annotations

import pytest

from indexarr.domain.definitions import Capabilities, CategoryMapping
from indexarr.infrastructure.categories import (
    SOURCE_SCHEMES,
    CategoryMapper,
    detect_quality_categories,
    find_category,
    get_category,
    get_subcategories,
    map_scheme_category,
    map_source_category,
    normalize_categories,
    resolve_category_id,
)


class TestTree:
    def test_get_category(self) -> None:
        uhd = get_category(2045)
        assert uhd is not None
        assert (uhd.name, uhd.parent_id) == ("Movies/UHD", 2000)
        assert get_category(123) is None

    def test_find_by_name_is_case_insensitive(self) -> None:
        found = find_category("movies/uhd")
        assert found is not None and found.id == 2045

    def test_find_accepts_space_separated_form(self) -> None:
        found = find_category("TV HD")
        assert found is not None and found.id == 5040

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(2040, 2040), ("2040", 2040), ("Movies/HD", 2040), ("Nope/Nothing", None)],
    )
    def test_resolve_category_id(self, value: int | str, expected: int | None) -> None:
        assert resolve_category_id(value) == expected

    def test_subcategories(self) -> None:
        ids = {c.id for c in get_subcategories(5000)}
        assert {5030, 5040, 5045, 5070} <= ids
        assert 2040 not in ids


class TestNormalize:
    def test_child_pulls_in_parent(self) -> None:
        assert normalize_categories([2045]) == (2000, 2045)

    def test_idempotent(self) -> None:
        once = normalize_categories([5040, 2045, 2000])
        assert normalize_categories(once) == once

    def test_sorted_and_deduplicated(self) -> None:
        assert normalize_categories([5040, 2045, 5040]) == (2000, 2045, 5000, 5040)

    def test_unknown_ids_kept_as_roots(self) -> None:
        assert normalize_categories([100_001]) == (100_001,)


class TestMapSourceCategory:
    MAPPINGS = (
        CategoryMapping(source_id="7", canonical_id=2045, description="UHD Movies"),
        CategoryMapping(source_id="8", canonical_id=5040, description="TV HD"),
        CategoryMapping(source_id="9", canonical_id=5040, description="HD Series"),
    )

    def test_by_source_id(self) -> None:
        assert [c.id for c in map_source_category("7", self.MAPPINGS)] == [2045]

    def test_by_description(self) -> None:
        assert [c.id for c in map_source_category("hd series", self.MAPPINGS)] == [
            5040
        ]

    def test_canonical_id_fallback(self) -> None:
        assert [c.id for c in map_source_category("2030", self.MAPPINGS)] == [2030]

    def test_canonical_name_fallback(self) -> None:
        assert [c.id for c in map_source_category("Audio/MP3", self.MAPPINGS)] == [
            3010
        ]

    def test_unmappable_is_empty(self) -> None:
        assert map_source_category("whatever", self.MAPPINGS) == ()
        assert map_source_category("  ", self.MAPPINGS) == ()


class TestSchemes:
    def test_yts_quality(self) -> None:
        assert map_scheme_category(SOURCE_SCHEMES["yts"], "2160p") == (2000, 2045)
        assert map_scheme_category(SOURCE_SCHEMES["yts"], "720p") == (2000, 2040)

    def test_first_matching_rule_wins(self) -> None:
        assert map_scheme_category(SOURCE_SCHEMES["1337x"], "Movies UHD") == (
            2000,
            2045,
        )

    def test_no_match_keeps_base(self) -> None:
        assert map_scheme_category(SOURCE_SCHEMES["eztv"], "unknown") == (5000,)


class TestCategoryMapper:
    @pytest.fixture()
    def mapper(self) -> CategoryMapper:
        return CategoryMapper(
            Capabilities(
                category_mappings=(
                    CategoryMapping("1", 2000, "Movies"),
                    CategoryMapping("2", 2045, "Movies UHD"),
                    CategoryMapping("3", 2040, "Movies HD", default=True),
                    CategoryMapping("5", 5000, "TV"),
                )
            )
        )

    def test_to_canonical_normalizes(self, mapper: CategoryMapper) -> None:
        assert mapper.to_canonical(["2"]) == (2000, 2045)

    def test_to_canonical_drops_unmappable(self, mapper: CategoryMapper) -> None:
        assert mapper.to_canonical(["2", "zzz"]) == (2000, 2045)

    def test_to_source_exact(self, mapper: CategoryMapper) -> None:
        assert mapper.to_source([2045]) == ["2"]

    def test_to_source_parent_selects_children(self, mapper: CategoryMapper) -> None:
        assert mapper.to_source([2000]) == ["1", "2", "3"]

    def test_default_source_ids(self, mapper: CategoryMapper) -> None:
        assert mapper.default_source_ids() == ["3"]

    def test_canonical_ids(self, mapper: CategoryMapper) -> None:
        assert mapper.canonical_ids() == (2000, 2040, 2045, 5000)

    def test_scheme_from_capabilities(self) -> None:
        mapper = CategoryMapper(Capabilities(category_scheme="yts"))
        assert mapper.to_canonical(["1080p"]) == (2000, 2040)


class TestQualityDetection:
    def test_movie_uhd(self) -> None:
        assert detect_quality_categories("Film.2024.2160p.WEB") == (2000, 2045)

    def test_tv_hd(self) -> None:
        assert detect_quality_categories("Show.S01E01.1080p", base="tv") == (
            5000,
            5040,
        )

    def test_no_marker(self) -> None:
        assert detect_quality_categories("Some Title") == (2000,)
