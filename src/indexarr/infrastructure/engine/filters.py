"""Filter engine: named, composable string transforms.

Filters are applied in the order a definition lists them.  Every filter
takes the current string plus its ``args`` and returns a string; typed
conversion (int, size, date) happens later when the release is assembled.

An unknown filter is logged and skipped.  A filter that raises is logged
and the data passes through unchanged, so one bad rule never discards a
row on its own.
"""

from __future__ import annotations

import html
import json
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Any
from urllib.parse import parse_qs, quote, unquote, urljoin, urlparse

import structlog
from dateutil import parser as dateutil_parser
from unidecode import unidecode

from indexarr.domain.definitions import FilterStep
from indexarr.infrastructure.common.parsers import parse_size_to_bytes

from .template import TemplateEngine, go_replacement, lookup

log = structlog.get_logger(__name__)

FilterFunction = Callable[[str, Any, "FilterContext"], str]

_FILTERS: dict[str, FilterFunction] = {}


def _filter(*names: str) -> Callable[[FilterFunction], FilterFunction]:
    def register(fn: FilterFunction) -> FilterFunction:
        for name in names:
            _FILTERS[name] = fn
        return fn

    return register


class FilterContext:
    """What a filter may see besides its input: templates and the clock."""

    def __init__(
        self,
        templates: TemplateEngine,
        variables: Mapping[str, Any],
        now: Callable[[], datetime],
    ) -> None:
        self.templates = templates
        self.variables = variables
        self.now = now

    def expand(self, value: Any) -> str:
        text = "" if value is None else str(value)
        return self.templates.expand(text, self.variables)


def _args_list(args: Any) -> list[str]:
    if args is None:
        return []
    if isinstance(args, (list, tuple)):
        return [str(a) for a in args]
    return [str(args)]


def to_rfc1123(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


# ---------------------------------------------------------------------------
# Date handling
# ---------------------------------------------------------------------------

_GO_TOKENS: tuple[tuple[str, str], ...] = (
    ("2006", "%Y"),
    ("January", "%B"),
    ("Jan", "%b"),
    ("Monday", "%A"),
    ("Mon", "%a"),
    ("MST", "%Z"),
    ("Z07:00", "%z"),
    ("-07:00", "%z"),
    ("-0700", "%z"),
    ("_2", "%d"),
    ("01", "%m"),
    ("02", "%d"),
    ("03", "%I"),
    ("04", "%M"),
    ("05", "%S"),
    ("06", "%y"),
    ("15", "%H"),
    ("PM", "%p"),
    ("pm", "%p"),
    (".000000", ".%f"),
    (".000", ".%f"),
    ("1", "%m"),
    ("2", "%d"),
    ("3", "%I"),
    ("4", "%M"),
    ("5", "%S"),
)
_GO_TOKEN_RE = re.compile("|".join(re.escape(t) for t, _ in _GO_TOKENS))
_GO_TOKEN_MAP = dict(_GO_TOKENS)


def go_layout_to_strptime(layout: str) -> str:
    """Translate a Go reference-time layout (``Jan 2, 2006 15:04``) to strptime."""
    out: list[str] = []
    pos = 0
    for m in _GO_TOKEN_RE.finditer(layout):
        out.append(layout[pos : m.start()].replace("%", "%%"))
        out.append(_GO_TOKEN_MAP[m.group(0)])
        pos = m.end()
    out.append(layout[pos:].replace("%", "%%"))
    return "".join(out)


def parse_go_date(value: str, layout: str, now: datetime) -> datetime | None:
    value = value.strip()
    if not value or not layout:
        return None

    if layout.lower() in ("unix", "unixms"):
        try:
            ts = float(value)
        except ValueError:
            return None
        if layout.lower() == "unixms":
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    fmt = go_layout_to_strptime(layout)
    try:
        parsed = datetime.strptime(re.sub(r"\s+", " ", value), fmt)
    except ValueError:
        return None
    if "%Y" not in fmt and "%y" not in fmt:
        parsed = parsed.replace(year=now.year)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


_UNIT_SECONDS: dict[str, float] = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 7 * 86400,
    "mo": 30 * 86400,
    "y": 365 * 86400,
}
_RELATIVE_RE = re.compile(
    r"(\d+(?:\.\d+)?|an?|one)\s*"
    r"(seconds?|secs?|minutes?|mins?|hours?|hrs?|days?|weeks?|wks?|months?|years?|yrs?"
    r"|mo|[smhdwy])\b",
    re.IGNORECASE,
)


def _unit_key(unit: str) -> str:
    unit = unit.lower()
    if unit.startswith("mo"):
        return "mo"
    if unit.startswith("mi") or unit == "m":
        return "m"
    return unit[0]


def parse_relative_time(value: str, now: datetime) -> datetime | None:
    """Parse "2 hours ago", "1 day 3 hrs", "yesterday", "just now"..."""
    lowered = value.strip().lower()
    if not lowered:
        return None
    if lowered in ("now", "just now", "today"):
        return now
    if lowered == "yesterday":
        return now - timedelta(days=1)

    total = 0.0
    matched = False
    for m in _RELATIVE_RE.finditer(lowered):
        amount_raw, unit = m.group(1), m.group(2)
        amount = 1.0 if amount_raw in ("a", "an", "one") else float(amount_raw)
        total += amount * _UNIT_SECONDS[_unit_key(unit)]
        matched = True
    if not matched:
        return None
    return now - timedelta(seconds=total)


_DAY_TIME_RE = re.compile(r"^(today|yesterday)[,\s]+(\d{1,2}):(\d{2})", re.IGNORECASE)


def parse_fuzzy_time(value: str, now: datetime) -> datetime | None:
    """Best-effort: relative phrases, ``Today 12:30``, then dateutil."""
    text = value.strip()
    if not text:
        return None

    m = _DAY_TIME_RE.match(text)
    if m:
        base = now if m.group(1).lower() == "today" else now - timedelta(days=1)
        return base.replace(
            hour=int(m.group(2)), minute=int(m.group(3)), second=0, microsecond=0
        )

    relative = parse_relative_time(text, now)
    if relative is not None:
        return relative

    try:
        parsed = dateutil_parser.parse(
            text, fuzzy=True, default=now.replace(tzinfo=None)
        )
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


@_filter("querystring")
def _querystring(data: str, args: Any, ctx: FilterContext) -> str:
    values = parse_qs(urlparse(data).query).get(str(args), [])
    return values[0] if values else ""


@_filter("regexp")
def _regexp(data: str, args: Any, ctx: FilterContext) -> str:
    m = re.search(str(args), data)
    if not m:
        return ""
    return m.group(1) if m.groups() and m.group(1) is not None else m.group(0)


@_filter("re_replace")
def _re_replace(data: str, args: Any, ctx: FilterContext) -> str:
    parts = _args_list(args)
    if len(parts) < 2:
        return data
    return re.sub(parts[0], go_replacement(ctx.expand(parts[1])), data)


@_filter("split")
def _split(data: str, args: Any, ctx: FilterContext) -> str:
    parts = _args_list(args)
    if len(parts) < 2:
        return data
    pieces = data.split(parts[0])
    pos = int(parts[1])
    if pos < 0:
        pos += len(pieces)
    return pieces[pos] if 0 <= pos < len(pieces) else ""


@_filter("replace")
def _replace(data: str, args: Any, ctx: FilterContext) -> str:
    parts = _args_list(args)
    if len(parts) < 2:
        return data
    return data.replace(parts[0], ctx.expand(parts[1]))


@_filter("trim")
def _trim(data: str, args: Any, ctx: FilterContext) -> str:
    return data.strip(str(args)) if args else data.strip()


@_filter("trimprefix")
def _trimprefix(data: str, args: Any, ctx: FilterContext) -> str:
    return data.removeprefix(str(args or ""))


@_filter("trimsuffix")
def _trimsuffix(data: str, args: Any, ctx: FilterContext) -> str:
    return data.removesuffix(str(args or ""))


@_filter("prepend")
def _prepend(data: str, args: Any, ctx: FilterContext) -> str:
    return ctx.expand(args) + data


@_filter("append")
def _append(data: str, args: Any, ctx: FilterContext) -> str:
    return data + ctx.expand(args)


@_filter("tolower")
def _tolower(data: str, args: Any, ctx: FilterContext) -> str:
    return data.lower()


@_filter("toupper")
def _toupper(data: str, args: Any, ctx: FilterContext) -> str:
    return data.upper()


@_filter("urldecode")
def _urldecode(data: str, args: Any, ctx: FilterContext) -> str:
    return unquote(data)


@_filter("urlencode")
def _urlencode(data: str, args: Any, ctx: FilterContext) -> str:
    return quote(data, safe="")


@_filter("htmldecode")
def _htmldecode(data: str, args: Any, ctx: FilterContext) -> str:
    return html.unescape(data)


@_filter("htmlencode")
def _htmlencode(data: str, args: Any, ctx: FilterContext) -> str:
    return html.escape(data)


@_filter("dateparse", "timeparse")
def _dateparse(data: str, args: Any, ctx: FilterContext) -> str:
    parsed = parse_go_date(data, str(args or ""), ctx.now())
    return to_rfc1123(parsed) if parsed else data


@_filter("timeago", "reltime")
def _timeago(data: str, args: Any, ctx: FilterContext) -> str:
    parsed = parse_relative_time(data, ctx.now())
    return to_rfc1123(parsed) if parsed else data


@_filter("fuzzytime")
def _fuzzytime(data: str, args: Any, ctx: FilterContext) -> str:
    parsed = parse_fuzzy_time(data, ctx.now())
    return to_rfc1123(parsed) if parsed else data


@_filter("validfilename")
def _validfilename(data: str, args: Any, ctx: FilterContext) -> str:
    return re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", data)


@_filter("diacritics")
def _diacritics(data: str, args: Any, ctx: FilterContext) -> str:
    if str(args or "replace") != "replace":
        return data
    return unidecode(data)


@_filter("jsonjoinarray")
def _jsonjoinarray(data: str, args: Any, ctx: FilterContext) -> str:
    parts = _args_list(args)
    if len(parts) < 2:
        return data
    path, separator = parts[0], parts[1]
    value = lookup(json.loads(data), path.lstrip("$"))
    if not isinstance(value, list):
        return ""
    return separator.join(str(v) for v in value)


@_filter("parseint")
def _parseint(data: str, args: Any, ctx: FilterContext) -> str:
    digits = re.sub(r"[^\d-]", "", data)
    try:
        return str(int(digits))
    except ValueError:
        return "0"


@_filter("parsefloat")
def _parsefloat(data: str, args: Any, ctx: FilterContext) -> str:
    cleaned = re.sub(r"[^\d.-]", "", data)
    try:
        return str(float(cleaned))
    except ValueError:
        return "0"


@_filter("parsesize", "sizeparse")
def _parsesize(data: str, args: Any, ctx: FilterContext) -> str:
    return str(parse_size_to_bytes(data))


_VALIDATE_SPLIT_RE = re.compile(r"[,\s/)(.\[\]\"|:;]+")


@_filter("validate")
def _validate(data: str, args: Any, ctx: FilterContext) -> str:
    if not args:
        return data
    valid = [t for t in _VALIDATE_SPLIT_RE.split(str(args).lower()) if t]
    tokens = [t for t in _VALIDATE_SPLIT_RE.split(data.lower()) if t]
    return ", ".join(t for t in tokens if t in valid)


@_filter("absoluteurl")
def _absoluteurl(data: str, args: Any, ctx: FilterContext) -> str:
    if not data or data.startswith(("http://", "https://", "magnet:")):
        return data
    base = lookup(ctx.variables, ".Config.sitelink")
    return urljoin(str(base), data) if base else data


@_filter("baseurl")
def _baseurl(data: str, args: Any, ctx: FilterContext) -> str:
    parsed = urlparse(data)
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return data


def _pairs(args: Any) -> Iterable[tuple[str, str]]:
    if isinstance(args, Mapping):
        return ((str(k), str(v)) for k, v in args.items())
    parts = _args_list(args)
    return zip(parts[0::2], parts[1::2])


@_filter("mapreplace")
def _mapreplace(data: str, args: Any, ctx: FilterContext) -> str:
    for pattern, replacement in _pairs(args):
        data = re.sub(pattern, go_replacement(replacement), data)
    return data


@_filter("mapreplaceraw")
def _mapreplaceraw(data: str, args: Any, ctx: FilterContext) -> str:
    for find, replacement in _pairs(args):
        data = data.replace(find, replacement)
    return data


@_filter("default")
def _default(data: str, args: Any, ctx: FilterContext) -> str:
    return data if data.strip() else ctx.expand(args)


@_filter("strdump")
def _strdump(data: str, args: Any, ctx: FilterContext) -> str:
    log.debug("filter_strdump", tag=args, data=data)
    return data


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class FilterEngine:
    """Apply filter chains with access to the template context."""

    def __init__(
        self,
        templates: TemplateEngine | None = None,
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._templates = templates or TemplateEngine()
        self._now = now or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def has_filter(name: str) -> bool:
        return name.lower() in _FILTERS

    @staticmethod
    def available() -> list[str]:
        return sorted(_FILTERS)

    def apply(
        self,
        data: str,
        steps: Iterable[FilterStep],
        variables: Mapping[str, Any] | None = None,
    ) -> str:
        ctx = FilterContext(self._templates, variables or {}, self._now)
        for step in steps:
            data = self._apply_one(data, step, ctx)
        return data

    def _apply_one(self, data: str, step: FilterStep, ctx: FilterContext) -> str:
        fn = _FILTERS.get(step.name.lower())
        if fn is None:
            log.warning("filter_unknown", filter=step.name)
            return data
        try:
            return fn(data, step.args, ctx)
        except Exception:  # noqa: BLE001
            log.warning(
                "filter_failed", filter=step.name, args=step.args, exc_info=True
            )
            return data
