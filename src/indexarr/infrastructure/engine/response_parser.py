"""Response parsing: rows -> field values -> :class:`Release` objects."""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urljoin

import structlog

from indexarr.domain.definitions import (
    ErrorRule,
    FieldRule,
    SearchPath,
    SourceDefinition,
)
from indexarr.domain.entities import Release
from indexarr.domain.errors import AuthenticationError, UpstreamHttpError
from indexarr.infrastructure.categories import CategoryMapper
from indexarr.infrastructure.common import (
    extract_info_hash,
    parse_date,
    parse_size_to_bytes,
    to_float,
    to_int,
)

from .filters import FilterEngine
from .selectors import (
    Document,
    Row,
    SelectorEngine,
    element_text,
    json_path,
    parse_document,
)
from .template import TemplateEngine, truthy

log = structlog.get_logger(__name__)

# Fields that never discard a row when missing.
ALWAYS_OPTIONAL: frozenset[str] = frozenset(
    {
        "imdb",
        "imdbid",
        "tmdbid",
        "tvdbid",
        "description",
        "poster",
        "genre",
        "details",
        "comments",
        "downloadvolumefactor",
        "uploadvolumefactor",
        "minimumratio",
        "minimumseedtime",
    }
)

_AUTH_MESSAGE_RE = re.compile(
    r"log\s*in|sign\s*in|not\s+logged|password|session\s+expired"
    r"|unauthori[sz]ed|passkey|api\s*key",
    re.IGNORECASE,
)


def _first(values: dict[str, str | None], *names: str) -> str | None:
    for name in names:
        value = values.get(name)
        if value:
            return value
    return None


def make_absolute(url: str | None, base_url: str) -> str | None:
    if not url:
        return None
    if url.startswith(("http://", "https://", "magnet:")) or not base_url:
        return url
    return urljoin(base_url, url)


def _imdb(value: str | None) -> str | None:
    if not value:
        return None
    digits = re.sub(r"\D", "", value)
    return f"tt{digits.zfill(7)}" if digits else None


class ResponseParser:
    """Extract releases from one response body.

    Each row builds ``.Result`` variables in field order, so a later
    field's ``text`` template can reference earlier fields.  A required
    field that yields nothing discards the row.
    """

    def __init__(
        self,
        templates: TemplateEngine,
        filters: FilterEngine,
        selectors: SelectorEngine | None = None,
    ) -> None:
        self._templates = templates
        self._filters = filters
        self._selectors = selectors or SelectorEngine()

    def parse(
        self,
        definition: SourceDefinition,
        body: str,
        path: SearchPath | None,
        variables: dict[str, Any],
        instance_id: str,
    ) -> list[Release]:
        """Parse *body*.

        Raises:
            ParseError: Body could not be decoded.
            AuthenticationError: A login marker matched.
            UpstreamHttpError: Another error marker matched.
        """
        search = definition.search
        if search is None:
            return []

        document = parse_document(body, path.response_type if path else None)
        self.check_errors(document, search.error_rules)

        row_selector = self._templates.expand(search.rows.selector, variables)
        rows = self._selectors.select_rows(document, search.rows, row_selector)

        total = self._selectors.select_count(document, search.rows)
        if total is not None:
            log.debug(
                "response_count", instance=instance_id, total=total, rows=len(rows)
            )

        base_url = variables.get("Config", {}).get("sitelink", "")
        mapper = CategoryMapper(definition.capabilities)
        releases: list[Release] = []
        sticky_date: str | None = None

        for index, row in enumerate(rows):
            date_rule = search.rows.date_headers
            if date_rule is not None and not row.is_json:
                header = self._field_value(row, date_rule, variables)
                if header:
                    sticky_date = header
                    continue

            values = self._extract_fields(
                row, search.fields, variables, instance_id, index
            )
            if values is None:
                continue
            if sticky_date and not _first(values, "date", "publishdate"):
                values["date"] = sticky_date

            release = self._build_release(
                definition, values, mapper, base_url, instance_id, index
            )
            if release is not None:
                releases.append(release)

        return releases

    # ----- Error markers -----

    def check_errors(self, document: Document, rules: tuple[ErrorRule, ...]) -> None:
        for rule in rules:
            message = self._error_message(document, rule)
            if message is None:
                continue
            if _AUTH_MESSAGE_RE.search(message):
                raise AuthenticationError(message)
            raise UpstreamHttpError(message, status=None)

    def _error_message(self, document: Document, rule: ErrorRule) -> str | None:
        if document.type == "json":
            found = json_path(document.root, rule.selector)
            if not truthy(found):
                return None
            detail = (
                json_path(document.root, rule.message_selector)
                if rule.message_selector
                else None
            )
            return rule.message or str(detail or found)

        element = self._selectors.matches(document, rule.selector)
        if element is None:
            return None
        if rule.message:
            return rule.message
        if rule.message_selector:
            detail = self._selectors.matches(document, rule.message_selector)
            if detail is not None:
                return element_text(detail)
        return element_text(element) or f"error marker matched: {rule.selector}"

    # ----- Fields -----

    def _field_value(
        self, row: Row, rule: FieldRule, variables: dict[str, Any]
    ) -> str | None:
        if rule.is_template:
            value: str | None = self._templates.expand(rule.text or "", variables)
        else:
            value = self._selectors.select_value(row, rule)
        if value is not None and rule.filters:
            value = self._filters.apply(value, rule.filters, variables)
        return value

    def _extract_fields(
        self,
        row: Row,
        fields: dict[str, FieldRule],
        variables: dict[str, Any],
        instance_id: str,
        index: int,
    ) -> dict[str, str | None] | None:
        result: dict[str, Any] = self._selectors.row_scalars(row) if row.is_json else {}
        values: dict[str, str | None] = {}
        row_vars = {**variables, "Result": result}

        for name, rule in fields.items():
            key = name.lower()
            value = self._field_value(row, rule, row_vars)
            if not value and rule.default is not None:
                value = self._templates.expand(rule.default, row_vars)

            if not value and not rule.is_template:
                if not (rule.optional or key in ALWAYS_OPTIONAL):
                    log.debug(
                        "row_discarded",
                        instance=instance_id,
                        row=index,
                        field=name,
                        reason="required field missing",
                    )
                    return None
                value = None

            values[key] = value
            result[name] = value or ""
        return values

    # ----- Release assembly -----

    def _build_release(
        self,
        definition: SourceDefinition,
        values: dict[str, str | None],
        mapper: CategoryMapper,
        base_url: str,
        instance_id: str,
        index: int,
    ) -> Release | None:
        title = (values.get("title") or "").strip()
        magnet = _first(values, "magnet", "magneturl", "magneturi")
        download = _first(values, "download", "downloadurl", "link")
        if download and download.startswith("magnet:"):
            magnet = magnet or download
            download = None
        info_hash = _first(values, "infohash", "hash") or extract_info_hash(magnet)

        if not title or not (download or magnet or info_hash):
            log.debug(
                "row_discarded",
                instance=instance_id,
                row=index,
                reason="missing title or download reference",
            )
            return None

        seeders = to_int(values.get("seeders"))
        leechers = to_int(values.get("leechers"))
        if leechers is None and values.get("peers"):
            peers = to_int(values.get("peers")) or 0
            leechers = max(0, peers - (seeders or 0))

        size_raw = values.get("size")
        size = parse_size_to_bytes(size_raw) if size_raw else 0

        category_raw = _first(values, "category", "cat", "categoryid", "categorydesc")
        if category_raw:
            parts = [p.strip() for p in category_raw.split(",") if p.strip()]
            categories = mapper.to_canonical(parts)
        else:
            categories = mapper.to_canonical(mapper.default_source_ids())

        seed_time = to_int(values.get("minimumseedtime"))

        try:
            return Release(
                title=title,
                protocol=definition.protocol,
                download_url=make_absolute(download, base_url),
                magnet_url=magnet,
                info_hash=info_hash,
                size=size or None,
                seeders=seeders,
                leechers=leechers,
                grabs=to_int(values.get("grabs")),
                published_at=parse_date(_first(values, "date", "publishdate")),
                details_url=make_absolute(
                    _first(values, "details", "comments"), base_url
                ),
                imdb_id=_imdb(_first(values, "imdb", "imdbid")),
                source_ids=(instance_id,),
                categories=frozenset(categories),
                download_volume_factor=_factor(values.get("downloadvolumefactor")),
                upload_volume_factor=_factor(values.get("uploadvolumefactor")),
                minimum_ratio=to_float(values.get("minimumratio")),
                minimum_seed_time=seed_time,
            )
        except ValueError as e:
            log.debug("row_discarded", instance=instance_id, row=index, reason=str(e))
            return None


def _factor(raw: str | None) -> float:
    value = to_float(raw)
    return 1.0 if value is None else value
