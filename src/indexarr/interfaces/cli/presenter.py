"""JSON presenter for CLI output.

Turns domain objects into plain dicts; the CLI dumps them with ``json``.
"""

from __future__ import annotations

from typing import Any

from indexarr.domain.definitions import RegisteredDefinition
from indexarr.domain.entities import (
    InstanceTestResult,
    PerInstanceOutcome,
    Release,
    SearchRoundResult,
)


def release_to_dict(release: Release) -> dict[str, Any]:
    return {
        "title": release.title,
        "protocol": release.protocol,
        "download_url": release.download_url,
        "magnet_url": release.magnet_url,
        "info_hash": release.info_hash,
        "size": release.size,
        "seeders": release.seeders,
        "leechers": release.leechers,
        "grabs": release.grabs,
        "published_at": release.published_at.isoformat()
        if release.published_at
        else None,
        "details_url": release.details_url,
        "imdb_id": release.imdb_id,
        "source_ids": list(release.source_ids),
        "categories": sorted(release.categories),
        "download_volume_factor": release.download_volume_factor,
        "upload_volume_factor": release.upload_volume_factor,
    }


def outcome_to_dict(outcome: PerInstanceOutcome) -> dict[str, Any]:
    data: dict[str, Any] = {
        "instance_id": outcome.instance_id,
        "status": outcome.status,
        "reason": outcome.reason,
        "result_count": outcome.result_count,
    }
    if outcome.message:
        data["message"] = outcome.message
    if outcome.elapsed is not None:
        data["elapsed_ms"] = round(outcome.elapsed * 1000)
    return data


def round_to_dict(result: SearchRoundResult) -> dict[str, Any]:
    return {
        "results": [release_to_dict(r) for r in result.results],
        "diagnostics": [outcome_to_dict(d) for d in result.diagnostics],
        "all_failed": result.all_failed,
    }


def definition_to_dict(record: RegisteredDefinition) -> dict[str, Any]:
    d = record.definition
    return {
        "id": d.id,
        "name": d.name,
        "description": d.description,
        "protocol": d.protocol,
        "access_tier": d.access_tier,
        "language": d.language,
        "links": list(d.links),
        "modes": {mode: list(params) for mode, params in d.capabilities.modes.items()},
        "provenance": record.provenance,
        "valid": record.is_valid,
        "validation_errors": list(record.validation_errors),
        "settings": [s.name for s in d.settings],
    }


def instance_test_to_dict(
    instance_id: str, result: InstanceTestResult
) -> dict[str, Any]:
    return {
        "instance_id": instance_id,
        "ok": result.ok,
        "error": result.error,
        "result_count": result.result_count,
    }
