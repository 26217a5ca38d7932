"""Tests for the instance list file format."""

from __future__ import annotations

from pathlib import Path

import pytest

from indexarr.domain.entities import RateLimitRule
from indexarr.infrastructure.config.instances import load_instances, parse_instances


def _limit(requests: int, window: float) -> dict[str, float]:
    return {"requests": requests, "window_seconds": window}


class TestParseInstances:
    def test_full_entry(self) -> None:
        (instance,) = parse_instances(
            [
                {
                    "id": "pub-1",
                    "definition_id": "examplepublic",
                    "name": "Public",
                    "priority": 10,
                    "min_seeders": 2,
                    "rate_limit": {"requests": 1, "window_seconds": 2},
                    "settings": {"sort": "seeders"},
                }
            ]
        )
        assert instance.id == "pub-1"
        assert instance.display_name == "Public"
        assert instance.priority == 10
        assert instance.min_seeders == 2
        assert instance.rate_limit == RateLimitRule(requests=1, window_seconds=2.0)
        assert instance.settings == {"sort": "seeders"}
        assert instance.enabled

    def test_defaults(self) -> None:
        (instance,) = parse_instances([{"id": "a", "definition_id": "x"}])
        assert instance.priority == 25
        assert instance.rate_limit is None
        assert instance.display_name == "a"

    def test_empty_document(self) -> None:
        assert parse_instances(None) == []

    def test_root_must_be_list(self) -> None:
        with pytest.raises(ValueError, match="list"):
            parse_instances({"id": "a"})

    def test_duplicate_ids(self) -> None:
        with pytest.raises(ValueError, match="duplicate id 'a'"):
            parse_instances(
                [
                    {"id": "a", "definition_id": "x"},
                    {"id": "a", "definition_id": "y"},
                ]
            )

    @pytest.mark.parametrize(
        "entry",
        [
            {"definition_id": "x"},
            {"id": " ", "definition_id": "x"},
            {"id": "a", "definition_id": "x", "unknown": 1},
            {"id": "a", "definition_id": "x", "rate_limit": _limit(-1, 1)},
            {"id": "a", "definition_id": "x", "rate_limit": _limit(1, 0)},
        ],
    )
    def test_invalid_entries(self, entry: dict[str, object]) -> None:
        with pytest.raises(ValueError, match="instance #0"):
            parse_instances([entry])


def test_load_instances_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "instances.yaml"
    path.write_text(
        "- id: pub-1\n"
        "  definition_id: examplepublic\n"
        "- id: json-1\n"
        "  definition_id: examplejson\n"
        "  enabled: false\n",
        encoding="utf-8",
    )
    instances = load_instances(path)
    assert [i.id for i in instances] == ["pub-1", "json-1"]
    assert not instances[1].enabled
