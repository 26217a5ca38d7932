"""Definition registry: one record per definition id, indexed for queries."""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Callable

import structlog
import yaml

from indexarr.domain.definitions import (
    DefinitionFilter,
    DefinitionNotFoundError,
    DefinitionValidationError,
    DuplicateDefinitionError,
    Provenance,
    RegisteredDefinition,
    SourceDefinition,
)
from indexarr.domain.ports import Clock

from .loader import iter_definition_files, load_definition_data
from .validation import validate_definition

log = structlog.get_logger(__name__)

DefinitionSource = Path | str | Mapping[str, Any]


def _placeholder(data: Mapping[str, Any]) -> SourceDefinition | None:
    """Minimal definition for a structurally invalid document, if it has an id."""
    raw_id = data.get("id")
    if not isinstance(raw_id, str) or not raw_id.strip():
        return None
    definition_id = raw_id.strip()
    return SourceDefinition(
        id=definition_id,
        name=str(data.get("name") or definition_id),
        protocol=str(data.get("protocol") or "").lower(),
        access_tier=str(data.get("type") or "public").lower(),
        description=str(data.get("description") or ""),
    )


class DefinitionRegistry:
    """
    Thread-safe in-memory registry of source definitions.

    Writes take a coarse lock; a record is replaced as a whole, so readers
    see either the old or the new version.  Definitions with validation
    errors are kept (for diagnostics) but hidden from :meth:`query` unless
    ``include_invalid`` is set.
    """

    def __init__(self, *, clock: Clock = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, RegisteredDefinition] = {}
        self._by_protocol: dict[str, set[str]] = {}
        self._by_provenance: dict[str, set[str]] = {}

    # ----- Registration -----

    def register(
        self,
        definition: SourceDefinition,
        provenance: Provenance,
        *,
        replace: bool = False,
        enabled_by_default: bool = True,
        factory: Callable[..., Any] | None = None,
        internal: bool = False,
        validation_errors: Iterable[str] | None = None,
    ) -> bool:
        """Register *definition*.

        Returns ``False`` (and changes nothing) when the id already exists
        and ``replace`` is not set.  Semantic validation runs here; its
        findings are attached to the record.
        """
        errors = list(validation_errors or ())
        errors.extend(e for e in validate_definition(definition) if e not in errors)

        record = RegisteredDefinition(
            definition=definition,
            provenance=provenance,
            registered_at=self._clock(),
            enabled_by_default=enabled_by_default,
            factory=factory,
            validation_errors=tuple(errors),
            internal=internal,
        )

        with self._lock:
            existing = self._records.get(definition.id)
            if existing is not None:
                if not replace:
                    log.warning(
                        "definition_duplicate",
                        definition=definition.id,
                        existing_provenance=existing.provenance,
                        provenance=provenance,
                    )
                    return False
                self._unindex(existing)
            self._records[definition.id] = record
            self._index(record)

        if errors:
            log.warning(
                "definition_invalid",
                definition=definition.id,
                provenance=provenance,
                errors=errors,
            )
        else:
            log.debug(
                "definition_registered",
                definition=definition.id,
                provenance=provenance,
                replaced=existing is not None,
            )
        return True

    def load(
        self,
        sources: Iterable[DefinitionSource],
        *,
        provenance: Provenance = "yaml",
        replace: bool = False,
    ) -> list[RegisteredDefinition]:
        """Load files, directories or parsed mappings and register them.

        Failures never abort the load: unreadable sources are logged, and
        structurally invalid documents are registered with their errors when
        an id can be recovered.
        """
        loaded: list[RegisteredDefinition] = []
        seen: dict[str, str] = {}
        for source_name, data in self._iter_documents(sources):
            definition: SourceDefinition | None
            errors: list[str] = []
            try:
                definition = load_definition_data(data, source=source_name)
            except DefinitionValidationError as e:
                definition = _placeholder(data) if isinstance(data, Mapping) else None
                errors = e.errors
                if definition is None:
                    log.error(
                        "definition_load_failed",
                        source=source_name,
                        error_type=type(e).__name__,
                        error_message=str(e),
                    )
                    continue

            if definition.id in seen:
                # Two documents of one load claim the same id: first one wins.
                dup = DuplicateDefinitionError(
                    f"{definition.id!r} already loaded from {seen[definition.id]}"
                )
                log.error(
                    "definition_load_failed",
                    source=source_name,
                    error_type=type(dup).__name__,
                    error_message=str(dup),
                )
                continue
            seen[definition.id] = source_name

            if self.register(
                definition, provenance, replace=replace, validation_errors=errors
            ):
                record = self.get(definition.id)
                if record is not None:
                    loaded.append(record)

        log.info(
            "definitions_loaded",
            count=len(loaded),
            invalid=sum(1 for r in loaded if not r.is_valid),
        )
        return loaded

    def unregister(self, definition_id: str) -> bool:
        with self._lock:
            record = self._records.pop(definition_id, None)
            if record is None:
                return False
            self._unindex(record)
        log.debug("definition_unregistered", definition=definition_id)
        return True

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._by_protocol.clear()
            self._by_provenance.clear()

    # ----- Lookup -----

    def get(self, definition_id: str) -> RegisteredDefinition | None:
        return self._records.get(definition_id)

    def get_definition(self, definition_id: str) -> SourceDefinition | None:
        record = self._records.get(definition_id)
        return record.definition if record else None

    def require(self, definition_id: str) -> RegisteredDefinition:
        record = self._records.get(definition_id)
        if record is None:
            raise DefinitionNotFoundError(f"Definition '{definition_id}' not found")
        return record

    def has(self, definition_id: str) -> bool:
        return definition_id in self._records

    def ids(self) -> list[str]:
        return sorted(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, definition_id: object) -> bool:
        return definition_id in self._records

    def get_by_protocol(self, protocol: str) -> list[RegisteredDefinition]:
        with self._lock:
            ids = sorted(self._by_protocol.get(protocol, ()))
            return [self._records[i] for i in ids]

    def get_by_provenance(self, provenance: Provenance) -> list[RegisteredDefinition]:
        with self._lock:
            ids = sorted(self._by_provenance.get(provenance, ()))
            return [self._records[i] for i in ids]

    def counts(self) -> dict[str, dict[str, int]]:
        """Record counts by protocol and by provenance."""
        with self._lock:
            return {
                "protocol": {
                    k: len(v) for k, v in sorted(self._by_protocol.items()) if v
                },
                "provenance": {
                    k: len(v) for k, v in sorted(self._by_provenance.items()) if v
                },
            }

    def query(
        self, definition_filter: DefinitionFilter | None = None
    ) -> list[RegisteredDefinition]:
        """Records matching *definition_filter*, sorted by name then id."""
        f = definition_filter or DefinitionFilter()

        with self._lock:
            if f.protocol is not None:
                candidates = [
                    self._records[i] for i in self._by_protocol.get(f.protocol, ())
                ]
            elif f.provenance is not None:
                candidates = [
                    self._records[i] for i in self._by_provenance.get(f.provenance, ())
                ]
            else:
                candidates = list(self._records.values())

        needle = f.search.lower() if f.search else None
        out: list[RegisteredDefinition] = []
        for record in candidates:
            d = record.definition
            if f.provenance is not None and record.provenance != f.provenance:
                continue
            if f.access_tier is not None and d.access_tier != f.access_tier:
                continue
            if f.auth_method is not None and d.auth.method != f.auth_method:
                continue
            if f.enabled_only and not record.enabled_by_default:
                continue
            if record.internal and not f.include_internal:
                continue
            if not record.is_valid and not f.include_invalid:
                continue
            if f.ids and d.id not in f.ids:
                continue
            if needle and not any(
                needle in text.lower() for text in (d.id, d.name, d.description)
            ):
                continue
            out.append(record)

        return sorted(out, key=lambda r: (r.definition.name.lower(), r.id))

    # ----- internals -----

    def _index(self, record: RegisteredDefinition) -> None:
        self._by_protocol.setdefault(record.definition.protocol, set()).add(record.id)
        self._by_provenance.setdefault(record.provenance, set()).add(record.id)

    def _unindex(self, record: RegisteredDefinition) -> None:
        self._by_protocol.get(record.definition.protocol, set()).discard(record.id)
        self._by_provenance.get(record.provenance, set()).discard(record.id)

    def _iter_documents(
        self, sources: Iterable[DefinitionSource]
    ) -> Iterable[tuple[str, Any]]:
        paths: list[Path] = []
        for source in sources:
            if isinstance(source, Mapping):
                yield "<mapping>", source
            else:
                paths.append(Path(source))

        for path in iter_definition_files(paths):
            try:
                raw = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                log.error(
                    "definition_load_failed",
                    definition_file=str(path),
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                continue
            try:
                data = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                log.error(
                    "definition_load_failed",
                    definition_file=str(path),
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                continue
            yield str(path), data


__all__ = ["DefinitionRegistry", "DefinitionSource"]
