"""Source-specific category tables mapped onto the canonical tree.

Mapping tables are pure data: either the ``categorymappings`` a definition
declares, or one of the built-in keyword schemes in :data:`SOURCE_SCHEMES`
for sites that label results with free-text quality/category names.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from indexarr.domain.definitions import Capabilities, CategoryMapping
from indexarr.domain.entities import CanonicalCategory

from . import tree


@dataclass(frozen=True)
class SchemeRule:
    """Matches when the lower-cased value contains every ``all_of`` marker
    and at least one ``any_of`` marker (if any are given)."""

    categories: tuple[int, ...]
    all_of: tuple[str, ...] = ()
    any_of: tuple[str, ...] = ()

    def matches(self, value: str) -> bool:
        if not all(m in value for m in self.all_of):
            return False
        return not self.any_of or any(m in value for m in self.any_of)


@dataclass(frozen=True)
class SourceScheme:
    name: str
    rules: tuple[SchemeRule, ...]
    base: tuple[int, ...] = ()


SOURCE_SCHEMES: dict[str, SourceScheme] = {
    "yts": SourceScheme(
        name="yts",
        base=(tree.MOVIES,),
        rules=(
            SchemeRule((tree.MOVIES_UHD,), any_of=("2160p", "4k")),
            SchemeRule((tree.MOVIES_HD,), any_of=("1080p", "720p")),
            SchemeRule((tree.MOVIES_3D,), any_of=("3d",)),
        ),
    ),
    "eztv": SourceScheme(
        name="eztv",
        base=(tree.TV,),
        rules=(
            SchemeRule((tree.TV_UHD,), any_of=("2160p", "4k")),
            SchemeRule((tree.TV_HD,), any_of=("1080p", "720p")),
            SchemeRule((tree.TV_SD,), any_of=("480p", "sdtv")),
        ),
    ),
    "1337x": SourceScheme(
        name="1337x",
        rules=(
            SchemeRule((tree.MOVIES, tree.MOVIES_UHD), ("movie",), ("uhd", "4k")),
            SchemeRule(
                (tree.MOVIES, tree.MOVIES_HD), ("movie",), ("bluray", "hd", "1080")
            ),
            SchemeRule((tree.MOVIES, tree.MOVIES_WEBDL), ("movie",), ("web",)),
            SchemeRule((tree.MOVIES,), ("movie",)),
            SchemeRule((tree.TV, tree.TV_UHD), ("tv",), ("uhd", "4k")),
            SchemeRule((tree.TV, tree.TV_HD), ("tv",), ("hd", "1080")),
            SchemeRule((tree.TV,), ("tv",)),
            SchemeRule((tree.TV_ANIME,), ("anime",)),
            SchemeRule((tree.XXX,), any_of=("xxx", "porn")),
            SchemeRule((tree.PC_GAMES,), ("game",)),
            SchemeRule((tree.AUDIO,), ("music",)),
            SchemeRule((tree.PC,), any_of=("software", "app")),
        ),
    ),
}


def map_scheme_category(scheme: SourceScheme, value: str) -> tuple[int, ...]:
    """First matching rule wins; the scheme's base categories are always included."""
    lowered = value.lower()
    out = list(scheme.base)
    for rule in scheme.rules:
        if rule.matches(lowered):
            out.extend(c for c in rule.categories if c not in out)
            break
    return tuple(out)


def _as_canonical(category_id: int, label: str | None = None) -> CanonicalCategory:
    known = tree.get_category(category_id)
    if known is not None:
        return known
    return CanonicalCategory(id=category_id, name=label or str(category_id))


def map_source_category(
    value: str | int,
    mappings: Sequence[CategoryMapping] = (),
    scheme: SourceScheme | None = None,
) -> tuple[CanonicalCategory, ...]:
    """Map one source-specific category value onto canonical categories.

    Resolution order: source id, source description, keyword scheme,
    canonical id, canonical name.  Unmappable values yield ``()``.
    """
    raw = str(value).strip()
    if not raw:
        return ()

    by_id = [m for m in mappings if m.source_id == raw]
    if by_id:
        return tuple(_as_canonical(m.canonical_id, m.description) for m in by_id)

    lowered = raw.lower()
    by_desc = [
        m for m in mappings if m.description and m.description.lower() == lowered
    ]
    if by_desc:
        return tuple(_as_canonical(m.canonical_id, m.description) for m in by_desc)

    if scheme is not None:
        ids = map_scheme_category(scheme, raw)
        if ids:
            return tuple(_as_canonical(i) for i in ids)

    if raw.isdigit() and tree.get_category(int(raw)) is not None:
        return (_as_canonical(int(raw)),)

    found = tree.find_category(raw)
    return (found,) if found is not None else ()


class CategoryMapper:
    """Bidirectional mapping for one definition's category table."""

    def __init__(self, capabilities: Capabilities) -> None:
        self._mappings = capabilities.category_mappings
        self._scheme = (
            SOURCE_SCHEMES.get(capabilities.category_scheme)
            if capabilities.category_scheme
            else None
        )

    @property
    def mappings(self) -> tuple[CategoryMapping, ...]:
        return self._mappings

    def map_source_category(self, value: str | int) -> tuple[CanonicalCategory, ...]:
        return map_source_category(value, self._mappings, self._scheme)

    def to_canonical(self, values: Iterable[str | int]) -> tuple[int, ...]:
        """Map several source values and normalize the result."""
        ids: list[int] = []
        for value in values:
            ids.extend(c.id for c in self.map_source_category(value))
        return tree.normalize_categories(ids)

    def to_source(self, canonical_ids: Iterable[int]) -> list[str]:
        """Source category ids to request for the given canonical ids.

        A requested parent (``2000``) also selects every source category
        mapped to one of its children.
        """
        out: list[str] = []
        for requested in canonical_ids:
            for m in self._mappings:
                if m.canonical_id == requested or (
                    tree.get_parent_id(m.canonical_id) == requested
                ):
                    if m.source_id not in out:
                        out.append(m.source_id)
        return out

    def default_source_ids(self) -> list[str]:
        return [m.source_id for m in self._mappings if m.default]

    def canonical_ids(self) -> tuple[int, ...]:
        """Every canonical category this source can produce (normalized)."""
        return tree.normalize_categories(m.canonical_id for m in self._mappings)
