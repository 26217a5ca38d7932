from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CanonicalCategory:
    """A node in the fixed canonical category tree."""

    id: int
    name: str
    parent_id: int | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None
