"""Registry records and query filters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal

from .definition import SourceDefinition

Provenance = Literal["native", "yaml", "builtin", "user"]
PROVENANCES: frozenset[str] = frozenset({"native", "yaml", "builtin", "user"})


@dataclass(frozen=True)
class RegisteredDefinition:
    """A SourceDefinition plus registration metadata.

    Never mutated in place; re-registration replaces the whole record.
    """

    definition: SourceDefinition
    provenance: Provenance
    registered_at: float
    enabled_by_default: bool = True
    factory: Callable[..., Any] | None = None
    validation_errors: tuple[str, ...] = ()
    internal: bool = False

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors


@dataclass(frozen=True)
class DefinitionFilter:
    """Criteria for :meth:`DefinitionRegistry.query`. ``None`` means any."""

    protocol: str | None = None
    access_tier: str | None = None
    auth_method: str | None = None
    provenance: Provenance | None = None
    search: str | None = None
    enabled_only: bool = False
    include_internal: bool = False
    include_invalid: bool = False
    ids: frozenset[str] = field(default_factory=frozenset)
