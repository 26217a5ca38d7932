from .mapper import (
    SOURCE_SCHEMES,
    CategoryMapper,
    SchemeRule,
    SourceScheme,
    map_scheme_category,
    map_source_category,
)
from .tree import (
    CANONICAL_CATEGORIES,
    detect_quality_categories,
    filter_movie_categories,
    filter_tv_categories,
    find_category,
    get_category,
    get_parent_id,
    get_root_category,
    get_subcategories,
    has_movie_category,
    has_tv_category,
    is_movie_category,
    is_tv_category,
    normalize_categories,
    resolve_category_id,
)

__all__ = [
    "CANONICAL_CATEGORIES",
    "SOURCE_SCHEMES",
    "CategoryMapper",
    "SchemeRule",
    "SourceScheme",
    "detect_quality_categories",
    "filter_movie_categories",
    "filter_tv_categories",
    "find_category",
    "get_category",
    "get_parent_id",
    "get_root_category",
    "get_subcategories",
    "has_movie_category",
    "has_tv_category",
    "is_movie_category",
    "is_tv_category",
    "map_scheme_category",
    "map_source_category",
    "normalize_categories",
    "resolve_category_id",
]
