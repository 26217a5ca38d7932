"""Definition system exceptions."""

from __future__ import annotations

from indexarr.domain.errors import IndexarrError


class DefinitionError(IndexarrError):
    """Base class for all definition-related errors."""


class DefinitionValidationError(DefinitionError):
    """Raised when a source definition fails structural or semantic validation."""

    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class DefinitionLoadError(DefinitionError):
    """Raised when a definition source cannot be read."""


class DefinitionNotFoundError(DefinitionError):
    """Raised when a definition id is not known to the registry."""


class DuplicateDefinitionError(DefinitionError):
    """Raised when two definitions in one load resolve to the same id."""
