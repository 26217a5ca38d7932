"""Turn a definition's search rule plus criteria into concrete HTTP requests."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal
from urllib.parse import quote, urlencode, urljoin

from indexarr.domain.definitions import SearchPath, SearchRule, SourceDefinition
from indexarr.domain.entities import SearchCriteria, SourceInstance
from indexarr.infrastructure.categories import CategoryMapper

from .filters import FilterEngine
from .template import TemplateEngine

RAW_INPUT = "$raw"


@dataclass(frozen=True)
class SearchRequest:
    """One HTTP request derived from a :class:`SearchPath`."""

    url: str
    method: Literal["GET", "POST"]
    path: SearchPath
    headers: dict[str, str] = field(default_factory=dict)
    form: tuple[tuple[str, str], ...] = ()


def resolve_base_url(definition: SourceDefinition, instance: SourceInstance) -> str:
    """Instance override first, then the definition's first link."""
    base = (instance.base_url or definition.base_url or "").strip()
    if base and not base.endswith("/"):
        base += "/"
    return base


def resolve_url(base_url: str, path: str) -> str:
    if path.startswith(("http://", "https://")):
        return path
    return urljoin(base_url, path)


def build_keywords(criteria: SearchCriteria) -> str:
    """Query text plus the year (movies) or ``SxxEyy``/``Sxx`` (TV)."""
    parts: list[str] = []
    if criteria.query:
        parts.append(criteria.query.strip())
    if criteria.is_movie and criteria.year:
        parts.append(str(criteria.year))
    elif criteria.is_tv and criteria.season is not None:
        if criteria.episode is not None:
            parts.append(f"S{criteria.season:02d}E{criteria.episode:02d}")
        else:
            parts.append(f"S{criteria.season:02d}")
    return " ".join(p for p in parts if p)


def _split_raw(raw: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for part in raw.split("&"):
        key, _, value = part.partition("=")
        if key:
            pairs.append((key, value))
    return pairs


def path_matches_categories(path: SearchPath, source_categories: list[str]) -> bool:
    """Check a path's include list, or its ``!``-prefixed exclude list."""
    if not path.categories or not source_categories:
        return True
    if path.categories[0] == "!":
        excluded = set(path.categories[1:])
        return not excluded.intersection(source_categories)
    if all(c.startswith("!") for c in path.categories):
        excluded = {c[1:] for c in path.categories}
        return not excluded.intersection(source_categories)
    return bool(set(path.categories).intersection(source_categories))


class RequestBuilder:
    """Build template variables and :class:`SearchRequest` objects.

    Variables exposed to templates:

    * ``.Config``: definition setting defaults, overlaid by instance
      settings, plus ``sitelink`` (the resolved base URL)
    * ``.Query``: ``Q``, ``Keywords``, ``Season``, ``Ep``, ``Year``,
      ``IMDBID``, ``IMDBIDShort``, ``Type``, ``Limit``, ``Offset``
    * ``.Keywords``: keywords after ``keywordsfilters``
    * ``.Categories``: source category ids for this request
    * ``.Today``: ``Year``, ``Month``, ``Day``
    """

    def __init__(
        self,
        templates: TemplateEngine,
        filters: FilterEngine,
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._templates = templates
        self._filters = filters
        self._now = now or (lambda: datetime.now(timezone.utc))

    # ----- Variables -----

    def base_variables(
        self, definition: SourceDefinition, instance: SourceInstance
    ) -> dict[str, Any]:
        config: dict[str, Any] = {
            s.name: s.default for s in definition.settings if s.default is not None
        }
        config.update(instance.settings)
        config["sitelink"] = resolve_base_url(definition, instance)
        today = self._now()
        return {
            "Config": config,
            "Today": {"Year": today.year, "Month": today.month, "Day": today.day},
        }

    def search_variables(
        self,
        definition: SourceDefinition,
        criteria: SearchCriteria,
        instance: SourceInstance,
    ) -> dict[str, Any]:
        search = definition.search
        variables = self.base_variables(definition, instance)
        keywords = build_keywords(criteria)
        imdb = criteria.imdb_id or ""

        variables["Query"] = {
            "Q": criteria.query,
            "Keywords": keywords,
            "Season": criteria.season,
            "Ep": criteria.episode,
            "Year": criteria.year,
            "IMDBID": imdb,
            "IMDBIDShort": imdb.removeprefix("tt"),
            "Type": criteria.mode,
            "Limit": criteria.limit,
            "Offset": criteria.offset,
        }
        if search is not None and search.keywords_filters:
            keywords = self._filters.apply(
                keywords, search.keywords_filters, variables
            )
        variables["Keywords"] = keywords

        mapper = CategoryMapper(definition.capabilities)
        variables["Categories"] = (
            mapper.to_source(criteria.categories) or mapper.default_source_ids()
        )
        return variables

    # ----- Requests -----

    def build(
        self,
        definition: SourceDefinition,
        criteria: SearchCriteria,
        instance: SourceInstance,
        variables: dict[str, Any] | None = None,
    ) -> list[SearchRequest]:
        """Requests for ``criteria.mode``, with duplicate URLs collapsed."""
        search = definition.search
        if search is None:
            return []
        if variables is None:
            variables = self.search_variables(definition, criteria, instance)

        requests: list[SearchRequest] = []
        seen: set[tuple[str, tuple[tuple[str, str], ...]]] = set()
        categories: list[str] = list(variables.get("Categories") or [])

        for path in search.paths_for(criteria.mode):
            if not path_matches_categories(path, categories):
                continue
            request = self._build_one(search, path, variables, categories)
            key = (request.url, request.form)
            if key in seen:
                continue
            seen.add(key)
            requests.append(request)
        return requests

    def _build_one(
        self,
        search: SearchRule,
        path: SearchPath,
        variables: dict[str, Any],
        categories: list[str],
    ) -> SearchRequest:
        path_vars = variables
        if path.categories and not path.categories[0].startswith("!"):
            narrowed = [c for c in categories if c in path.categories]
            if narrowed:
                path_vars = {**variables, "Categories": narrowed}

        target = self._templates.expand(
            path.path, path_vars, escape=lambda v: quote(v, safe="")
        )
        url = resolve_url(path_vars["Config"]["sitelink"], target)

        raw_inputs: dict[str, str] = {}
        if path.inherit_inputs:
            raw_inputs.update(search.inputs)
        raw_inputs.update(path.inputs)

        pairs: list[tuple[str, str]] = []
        for name, template in raw_inputs.items():
            value = self._templates.expand(str(template), path_vars)
            if name == RAW_INPUT:
                pairs.extend(_split_raw(value))
            elif value or search.allow_empty_inputs:
                pairs.append((name, value))

        headers = {
            name: self._templates.expand(str(value), path_vars)
            for name, value in search.headers.items()
        }

        if path.method == "post":
            return SearchRequest(url, "POST", path, headers, tuple(pairs))
        if pairs:
            url += ("&" if "?" in url else "?") + urlencode(pairs)
        return SearchRequest(url, "GET", path, headers)
