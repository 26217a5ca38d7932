"""Selector engine: locate rows and field values in HTML, XML or JSON bodies.

HTML and XML are parsed with BeautifulSoup (``lxml`` / ``lxml-xml``) and
addressed with CSS selectors.  JSON bodies are addressed with dotted paths
(``data.movies``, ``torrents.0.hash``); ``:root`` is the document itself.

With ``selector=""`` (or ``:root``) a field reads the row element itself.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup, Tag

from indexarr.domain.definitions import FieldRule, ResponseType, RowSelector
from indexarr.domain.errors import ParseError

from .template import render_value

_WS_RE = re.compile(r"\s+")
_ROOT = ":root"


@dataclass(frozen=True)
class Document:
    """A parsed response body."""

    type: ResponseType
    root: Any


@dataclass(frozen=True)
class Row:
    """One result block; ``parent`` is set for flattened nested JSON rows."""

    node: Any
    parent: Any = None

    @property
    def is_json(self) -> bool:
        return not isinstance(self.node, Tag)


def detect_response_type(body: str) -> ResponseType:
    head = body.lstrip()[:256].lower()
    if head.startswith(("{", "[")):
        return "json"
    if head.startswith("<?xml") or head.startswith("<rss") or "<torznab" in head:
        return "xml"
    return "html"


def parse_document(body: str, response_type: ResponseType | None = None) -> Document:
    """Parse *body*; the type is sniffed when not given.

    Raises:
        ParseError: If a JSON body cannot be decoded.
    """
    kind = response_type or detect_response_type(body)
    if kind == "json":
        try:
            return Document("json", json.loads(body))
        except json.JSONDecodeError as e:
            raise ParseError(f"invalid JSON body: {e}") from e
    features = "lxml-xml" if kind == "xml" else "lxml"
    return Document(kind, BeautifulSoup(body, features))


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def json_path(data: Any, path: str | None) -> Any:
    """Resolve a dotted path; list indices are plain integers."""
    if path is None or path in ("", _ROOT):
        return data
    value = data
    for part in path.removeprefix(_ROOT).strip(".").split("."):
        if not part:
            continue
        if isinstance(value, dict):
            value = value.get(part)
        elif isinstance(value, list) and re.fullmatch(r"-?\d+", part):
            idx = int(part)
            value = value[idx] if -len(value) <= idx < len(value) else None
        else:
            return None
        if value is None:
            return None
    return value


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


# ---------------------------------------------------------------------------
# HTML / XML
# ---------------------------------------------------------------------------


def _strip(node: Tag, selector: str | None) -> None:
    if not selector:
        return
    for child in node.select(selector):
        child.decompose()


def element_text(node: Tag) -> str:
    return _WS_RE.sub(" ", node.get_text()).strip()


def _html_value(node: Tag, rule: FieldRule) -> str | None:
    if rule.selector in ("", _ROOT):
        target: Tag | None = node
    else:
        target = node.select_one(rule.selector or "")
    if target is None:
        return None

    _strip(target, rule.remove)
    if rule.attribute:
        value = target.get(rule.attribute)
        if value is None:
            return None
        return " ".join(value) if isinstance(value, list) else str(value)
    return element_text(target)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class SelectorEngine:
    """Stateless row/field selection over a parsed :class:`Document`."""

    def select_rows(
        self, document: Document, rows: RowSelector, selector: str
    ) -> list[Row]:
        """Return the row blocks, after skipping ``rows.after`` leading rows.

        *selector* is the row selector with templates already expanded.
        """
        if document.type == "json":
            found = [Row(item) for item in _as_list(json_path(document.root, selector))]
            found = found[rows.after :]
            if rows.multiple:
                found = [
                    Row(child, parent=row.node)
                    for row in found
                    if isinstance(row.node, dict)
                    for child in _as_list(json_path(row.node, rows.multiple))
                ]
            return found

        elements = document.root.select(selector) if selector else []
        result: list[Row] = []
        for element in elements[rows.after :]:
            _strip(element, rows.remove)
            result.append(Row(element))
        return result

    def select_value(self, row: Row, rule: FieldRule) -> str | None:
        """Raw (unfiltered) value of *rule* in *row*; ``None`` when absent."""
        if rule.selector is None:
            return None
        if not row.is_json:
            return _html_value(row.node, rule)

        value = json_path(row.node, rule.selector)
        if value is None and row.parent is not None:
            value = json_path(row.parent, rule.selector)
        if value is None or isinstance(value, dict):
            return None
        if rule.attribute and isinstance(value, list):
            value = [json_path(v, rule.attribute) for v in value]
        return render_value(value)

    def select_count(self, document: Document, rows: RowSelector) -> int | None:
        """Total result count advertised by a JSON body, if configured."""
        if document.type != "json" or not rows.count:
            return None
        value = json_path(document.root, rows.count)
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def row_scalars(row: Row) -> dict[str, str]:
        """Scalar members of a JSON row (parent first) for ``.Result`` lookups."""
        merged: dict[str, str] = {}
        for node in (row.parent, row.node):
            if isinstance(node, dict):
                merged.update(
                    {
                        k: render_value(v)
                        for k, v in node.items()
                        if v is not None and not isinstance(v, (dict, list))
                    }
                )
        return merged

    def matches(self, document: Document, selector: str) -> Tag | None:
        """First element matching *selector* (error markers, login tests)."""
        if document.type == "json" or not selector:
            return None
        return document.root.select_one(selector)
