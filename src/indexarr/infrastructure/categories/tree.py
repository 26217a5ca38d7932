"""Canonical (Newznab) category tree and classification helpers.

Every non-root node's parent exists in the tree, so
:func:`normalize_categories` output is always closed under parent.
"""

from __future__ import annotations

from collections.abc import Iterable

from indexarr.domain.entities import CanonicalCategory

CONSOLE = 1000
MOVIES = 2000
MOVIES_FOREIGN = 2010
MOVIES_OTHER = 2020
MOVIES_SD = 2030
MOVIES_HD = 2040
MOVIES_UHD = 2045
MOVIES_BLURAY = 2050
MOVIES_3D = 2060
MOVIES_WEBDL = 2070
AUDIO = 3000
PC = 4000
PC_GAMES = 4050
TV = 5000
TV_WEBDL = 5010
TV_FOREIGN = 5020
TV_SD = 5030
TV_HD = 5040
TV_UHD = 5045
TV_OTHER = 5050
TV_SPORT = 5060
TV_ANIME = 5070
TV_DOCUMENTARY = 5080
XXX = 6000
BOOKS = 7000
OTHER = 8000


def _c(id_: int, name: str, parent: int | None = None) -> CanonicalCategory:
    return CanonicalCategory(id=id_, name=name, parent_id=parent)


CANONICAL_CATEGORIES: tuple[CanonicalCategory, ...] = (
    _c(1000, "Console"),
    _c(1010, "Console/NDS", 1000),
    _c(1020, "Console/PSP", 1000),
    _c(1030, "Console/Wii", 1000),
    _c(1040, "Console/Xbox", 1000),
    _c(1050, "Console/Xbox 360", 1000),
    _c(1060, "Console/Wiiware", 1000),
    _c(1070, "Console/Xbox 360 DLC", 1000),
    _c(1080, "Console/PS3", 1000),
    _c(1090, "Console/Other", 1000),
    _c(1110, "Console/3DS", 1000),
    _c(1120, "Console/PS Vita", 1000),
    _c(1130, "Console/WiiU", 1000),
    _c(1140, "Console/Xbox One", 1000),
    _c(1150, "Console/PS4", 1000),
    _c(2000, "Movies"),
    _c(2010, "Movies/Foreign", 2000),
    _c(2020, "Movies/Other", 2000),
    _c(2030, "Movies/SD", 2000),
    _c(2040, "Movies/HD", 2000),
    _c(2045, "Movies/UHD", 2000),
    _c(2050, "Movies/BluRay", 2000),
    _c(2060, "Movies/3D", 2000),
    _c(2070, "Movies/WEB-DL", 2000),
    _c(3000, "Audio"),
    _c(3010, "Audio/MP3", 3000),
    _c(3020, "Audio/Video", 3000),
    _c(3030, "Audio/Audiobook", 3000),
    _c(3040, "Audio/Lossless", 3000),
    _c(3050, "Audio/Other", 3000),
    _c(3060, "Audio/Foreign", 3000),
    _c(4000, "PC"),
    _c(4010, "PC/0day", 4000),
    _c(4020, "PC/ISO", 4000),
    _c(4030, "PC/Mac", 4000),
    _c(4040, "PC/Mobile-Other", 4000),
    _c(4050, "PC/Games", 4000),
    _c(4060, "PC/Mobile-iOS", 4000),
    _c(4070, "PC/Mobile-Android", 4000),
    _c(5000, "TV"),
    _c(5010, "TV/WEB-DL", 5000),
    _c(5020, "TV/Foreign", 5000),
    _c(5030, "TV/SD", 5000),
    _c(5040, "TV/HD", 5000),
    _c(5045, "TV/UHD", 5000),
    _c(5050, "TV/Other", 5000),
    _c(5060, "TV/Sport", 5000),
    _c(5070, "TV/Anime", 5000),
    _c(5080, "TV/Documentary", 5000),
    _c(6000, "XXX"),
    _c(6010, "XXX/DVD", 6000),
    _c(6020, "XXX/WMV", 6000),
    _c(6030, "XXX/XviD", 6000),
    _c(6040, "XXX/x264", 6000),
    _c(6050, "XXX/Pack", 6000),
    _c(6060, "XXX/ImgSet", 6000),
    _c(6070, "XXX/Other", 6000),
    _c(6080, "XXX/SD", 6000),
    _c(6090, "XXX/WEB-DL", 6000),
    _c(7000, "Books"),
    _c(7010, "Books/Mags", 7000),
    _c(7020, "Books/EBook", 7000),
    _c(7030, "Books/Comics", 7000),
    _c(7040, "Books/Technical", 7000),
    _c(7050, "Books/Other", 7000),
    _c(7060, "Books/Foreign", 7000),
    _c(8000, "Other"),
    _c(8010, "Other/Misc", 8000),
    _c(8020, "Other/Hashed", 8000),
)

_BY_ID: dict[int, CanonicalCategory] = {c.id: c for c in CANONICAL_CATEGORIES}
_BY_NAME: dict[str, CanonicalCategory] = {
    c.name.lower(): c for c in CANONICAL_CATEGORIES
}


def get_category(category_id: int) -> CanonicalCategory | None:
    return _BY_ID.get(category_id)


def find_category(name: str) -> CanonicalCategory | None:
    """Look up a category by name (``"Movies/UHD"``, case-insensitive).

    Also accepts the space separated form some definitions use
    (``"Movies UHD"``).
    """
    key = name.strip().lower()
    if key in _BY_NAME:
        return _BY_NAME[key]
    return _BY_NAME.get(key.replace(" ", "/", 1))


def resolve_category_id(value: int | str) -> int | None:
    """``2040``, ``"2040"`` or ``"Movies/HD"`` -> ``2040``; ``None`` if unknown."""
    if isinstance(value, int):
        return value
    raw = value.strip()
    if raw.isdigit():
        return int(raw)
    found = find_category(raw)
    return found.id if found else None


def get_parent_id(category_id: int) -> int | None:
    category = _BY_ID.get(category_id)
    return category.parent_id if category else None


def get_root_category(category_id: int) -> int:
    category = _BY_ID.get(category_id)
    if category is None or category.parent_id is None:
        return category_id
    return category.parent_id


def get_subcategories(parent_id: int) -> list[CanonicalCategory]:
    return [c for c in CANONICAL_CATEGORIES if c.parent_id == parent_id]


def normalize_categories(category_ids: Iterable[int]) -> tuple[int, ...]:
    """Expand every id with its parent; sorted, de-duplicated, idempotent.

    Ids outside the canonical tree (e.g. custom 100000+ source ids) are
    kept as they are and treated as roots.
    """
    normalized: set[int] = set()
    for category_id in category_ids:
        normalized.add(category_id)
        parent = get_parent_id(category_id)
        if parent is not None:
            normalized.add(parent)
    return tuple(sorted(normalized))


def is_movie_category(category_id: int) -> bool:
    return get_root_category(category_id) == MOVIES


def is_tv_category(category_id: int) -> bool:
    return get_root_category(category_id) == TV


def has_movie_category(category_ids: Iterable[int]) -> bool:
    return any(is_movie_category(c) for c in category_ids)


def has_tv_category(category_ids: Iterable[int]) -> bool:
    return any(is_tv_category(c) for c in category_ids)


def filter_movie_categories(category_ids: Iterable[int]) -> list[int]:
    return [c for c in category_ids if is_movie_category(c)]


def filter_tv_categories(category_ids: Iterable[int]) -> list[int]:
    return [c for c in category_ids if is_tv_category(c)]


# (title markers, movie subcategory, tv subcategory), checked in order.
_QUALITY_MARKERS: tuple[tuple[tuple[str, ...], int | None, int | None], ...] = (
    (("2160p", "4k", "uhd"), MOVIES_UHD, TV_UHD),
    (("1080p", "1080i", "720p"), MOVIES_HD, TV_HD),
    (("bluray", "blu-ray", "bdrip"), MOVIES_BLURAY, TV_HD),
    (("web-dl", "webdl", "webrip"), MOVIES_WEBDL, TV_WEBDL),
    (("480p", "dvdrip", "sdtv", "pdtv", "hdtv"), MOVIES_SD, TV_SD),
    (("3d",), MOVIES_3D, None),
)


def detect_quality_categories(title: str, base: str = "movie") -> tuple[int, ...]:
    """Guess a quality subcategory from a release title."""
    lowered = title.lower()
    is_movie = base == "movie"
    categories = [MOVIES if is_movie else TV]
    for markers, movie_cat, tv_cat in _QUALITY_MARKERS:
        if any(m in lowered for m in markers):
            sub = movie_cat if is_movie else tv_cat
            if sub is not None:
                categories.append(sub)
                break
    return tuple(categories)
