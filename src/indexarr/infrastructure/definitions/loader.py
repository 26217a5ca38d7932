from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from indexarr.domain.definitions import (
    DefinitionLoadError,
    DefinitionValidationError,
    SourceDefinition,
)
from indexarr.infrastructure.definitions.adapters import to_domain_definition
from indexarr.infrastructure.definitions.validation_schema import (
    SourceDefinitionPydantic,
)

log = structlog.get_logger(__name__)

DEFINITION_SUFFIXES = frozenset({".yml", ".yaml"})


def _format_errors(e: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
        for err in e.errors()
    ]


def load_definition_data(data: Any, *, source: str = "<memory>") -> SourceDefinition:
    """Validate an already parsed mapping and convert it to the domain model."""
    if data is None:
        raise DefinitionValidationError("YAML document is empty")
    if not isinstance(data, dict):
        raise DefinitionValidationError("YAML root must be a mapping/object")

    try:
        pydantic_model = SourceDefinitionPydantic.model_validate(data)
    except ValidationError as e:
        errors = _format_errors(e)
        log.error(
            "definition_validation_failed",
            source=source,
            error_type="ValidationError",
            error_details=errors,
        )
        raise DefinitionValidationError(
            f"{source}: {len(errors)} validation error(s)", errors=errors
        ) from e

    return to_domain_definition(pydantic_model)


def load_definition_text(text: str, *, source: str = "<memory>") -> SourceDefinition:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        log.error(
            "definition_validation_failed",
            source=source,
            error_type=type(e).__name__,
            error_message=str(e),
        )
        raise DefinitionValidationError(f"{source}: invalid YAML: {e}") from e
    return load_definition_data(data, source=source)


def load_definition_file(path: Path) -> SourceDefinition:
    """Load and validate one YAML definition file, returning the domain model."""
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.error(
            "definition_load_failed",
            definition_file=str(path),
            error_type=type(e).__name__,
            error_message=str(e),
        )
        raise DefinitionLoadError(str(e)) from e
    return load_definition_text(raw, source=str(path))


def iter_definition_files(sources: Iterable[Path]) -> Iterator[Path]:
    """Expand directories (non-recursive, sorted by name) into YAML files."""
    for source in sources:
        if source.is_dir():
            for path in sorted(source.iterdir(), key=lambda p: p.name):
                if path.is_file() and path.suffix.lower() in DEFINITION_SUFFIXES:
                    yield path
        elif source.is_file():
            yield source
        else:
            log.warning("definition_source_not_found", source=str(source))
