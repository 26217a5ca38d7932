"""Port for executing a definition against a live source."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from indexarr.domain.definitions import SourceDefinition
from indexarr.domain.entities import Release, SearchCriteria, SourceInstance


@runtime_checkable
class SourceSearchEnginePort(Protocol):
    """Async interface: log in if needed, search, scrape, return releases."""

    async def search(
        self,
        definition: SourceDefinition,
        criteria: SearchCriteria,
        instance: SourceInstance,
    ) -> list[Release]: ...

    async def test(
        self, definition: SourceDefinition, instance: SourceInstance
    ) -> list[Release]: ...
