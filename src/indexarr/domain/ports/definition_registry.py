"""Port for definition lookup and listing."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from indexarr.domain.definitions import (
    DefinitionFilter,
    RegisteredDefinition,
    SourceDefinition,
)


@runtime_checkable
class DefinitionRegistryPort(Protocol):
    """Read side of the definition registry, as used by the orchestrator and UIs."""

    def get(self, definition_id: str) -> RegisteredDefinition | None: ...
    def get_definition(self, definition_id: str) -> SourceDefinition | None: ...
    def query(
        self, definition_filter: DefinitionFilter | None = None
    ) -> list[RegisteredDefinition]: ...
