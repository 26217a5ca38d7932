"""Tests for the ``indexarr`` command line (no network access)."""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from indexarr.interfaces.cli import cli


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in list(os.environ):
        if key.startswith("INDEXARR_"):
            monkeypatch.delenv(key)
    # logging setup installs process-wide handlers
    monkeypatch.setattr(cli, "configure_logging", lambda *a, **kw: {})
    yield


@pytest.fixture()
def base_args(sample_definitions_dir: Path) -> list[str]:
    return ["--definitions-dir", str(sample_definitions_dir)]


@pytest.fixture()
def instances_file(tmp_path: Path) -> Path:
    path = tmp_path / "instances.yaml"
    path.write_text(
        "- id: pub-1\n"
        "  definition_id: examplepublic\n"
        "  enabled: false\n"
        "- id: ghost\n"
        "  definition_id: nosuchsite\n",
        encoding="utf-8",
    )
    return path


class TestDefinitionsCommand:
    def test_lists_sample_definitions(
        self, base_args: list[str], capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.start([*base_args, "definitions"]) == 0
        listed = json.loads(capsys.readouterr().out)
        assert {d["id"] for d in listed} == {
            "examplejson",
            "exampleprivate",
            "examplepublic",
        }
        assert all(d["valid"] for d in listed)

    def test_protocol_filter(
        self, base_args: list[str], capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.start([*base_args, "definitions", "--protocol", "usenet"]) == 0
        assert json.loads(capsys.readouterr().out) == []


class TestSearchCommand:
    def test_round_without_attempts(
        self,
        base_args: list[str],
        instances_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = cli.start(
            [*base_args, "search", "big movie", "--instances", str(instances_file)]
        )

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["results"] == []
        assert [(d["instance_id"], d["reason"]) for d in data["diagnostics"]] == [
            ("pub-1", "disabled"),
            ("ghost", "unknown_definition"),
        ]

    def test_missing_instances_file(
        self,
        base_args: list[str],
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        missing = tmp_path / "missing.yaml"
        code = cli.start([*base_args, "search", "x", "--instances", str(missing)])
        assert code == 2
        assert "indexarr: error" in capsys.readouterr().err


class TestTestCommand:
    def test_unknown_instance(
        self,
        base_args: list[str],
        instances_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = cli.start(
            [*base_args, "test", "nope", "--instances", str(instances_file)]
        )
        assert code == 2
        assert json.loads(capsys.readouterr().out)["error"] == "unknown instance"

    def test_unknown_definition(
        self,
        base_args: list[str],
        instances_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = cli.start(
            [*base_args, "test", "ghost", "--instances", str(instances_file)]
        )
        assert code == 1
        data = json.loads(capsys.readouterr().out)
        assert data == {
            "instance_id": "ghost",
            "ok": False,
            "error": "Unknown definition 'nosuchsite'",
            "result_count": 0,
        }


def test_command_is_required(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        cli.start([])
