"""Pure domain models for source definitions (framework-free).

A definition is parsed once from YAML, validated into these typed rule
variants and is read-only afterwards.  The engine never looks at untyped
YAML data at request time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

SourceProtocol = Literal["torrent", "usenet", "streaming"]
AccessTier = Literal["public", "semi-private", "private"]
AuthMethod = Literal["none", "cookie", "apikey", "form", "passkey", "basic"]
SearchMode = Literal["search", "movie-search", "tv-search"]
ResponseType = Literal["html", "xml", "json"]
LoginMethod = Literal["post", "form", "get", "cookie"]
SettingType = Literal["text", "password", "checkbox", "select", "number", "info"]

PROTOCOLS: frozenset[str] = frozenset({"torrent", "usenet", "streaming"})
ACCESS_TIERS: frozenset[str] = frozenset({"public", "semi-private", "private"})
AUTH_METHODS: frozenset[str] = frozenset(
    {"none", "cookie", "apikey", "form", "passkey", "basic"}
)
SEARCH_MODES: tuple[SearchMode, ...] = ("search", "movie-search", "tv-search")


@dataclass(frozen=True)
class SettingField:
    """One user-configurable input declared by a definition."""

    name: str
    label: str
    type: SettingType = "text"
    required: bool = False
    default: Any = None
    placeholder: str | None = None
    help_text: str | None = None
    options: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CategoryMapping:
    """Source category id/description mapped onto a canonical category."""

    source_id: str
    canonical_id: int
    description: str | None = None
    default: bool = False


@dataclass(frozen=True)
class Capabilities:
    modes: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: {"search": ("q",)}
    )
    category_mappings: tuple[CategoryMapping, ...] = ()
    category_scheme: str | None = None
    supports_pagination: bool = False
    supports_info_hash: bool = False
    limit_default: int = 100
    limit_max: int = 100

    def supports_mode(self, mode: str) -> bool:
        return mode in self.modes

    def supports_param(self, mode: str, param: str) -> bool:
        return param in self.modes.get(mode, ())


@dataclass(frozen=True)
class AuthRule:
    """How requests authenticate against the source.

    ``params`` is method specific, e.g. for ``apikey``:
    ``{"setting": "apikey", "param": "apikey"}`` or ``{"header": "X-Api-Key"}``.
    """

    method: AuthMethod = "none"
    params: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FilterStep:
    """A single named transform in a filter chain."""

    name: str
    args: Any = None


@dataclass(frozen=True)
class ErrorRule:
    """Selector that, when it matches, marks a response as failed."""

    selector: str
    message: str | None = None
    message_selector: str | None = None


@dataclass(frozen=True)
class LoginTest:
    path: str | None = None
    selector: str | None = None


@dataclass(frozen=True)
class LoginRule:
    """Login procedure, run before searching when the access tier requires it."""

    method: LoginMethod = "post"
    path: str = ""
    inputs: dict[str, str] = field(default_factory=dict)
    form_selector: str | None = None
    submit_path: str | None = None
    error_rules: tuple[ErrorRule, ...] = ()
    test: LoginTest | None = None


@dataclass(frozen=True)
class SearchPath:
    """One request template of a search procedure."""

    path: str
    method: Literal["get", "post"] = "get"
    inputs: dict[str, str] = field(default_factory=dict)
    inherit_inputs: bool = True
    categories: tuple[str, ...] = ()
    modes: tuple[str, ...] = ()
    response_type: ResponseType | None = None

    def applies_to(self, mode: str) -> bool:
        return not self.modes or mode in self.modes


@dataclass(frozen=True)
class RowSelector:
    """Enumerates repeated result blocks in a response."""

    selector: str
    after: int = 0
    remove: str | None = None
    multiple: str | None = None
    date_headers: "FieldRule | None" = None
    count: str | None = None


@dataclass(frozen=True)
class FieldRule:
    """Extraction rule for one output field, relative to a row.

    Either ``selector`` (optionally with ``attribute``) or ``text`` (a
    template evaluated against the row's already extracted fields) is set.
    """

    selector: str | None = None
    attribute: str | None = None
    text: str | None = None
    filters: tuple[FilterStep, ...] = ()
    optional: bool = False
    default: str | None = None
    remove: str | None = None

    @property
    def is_template(self) -> bool:
        return self.selector is None and self.text is not None


@dataclass(frozen=True)
class SearchRule:
    paths: tuple[SearchPath, ...]
    rows: RowSelector
    fields: dict[str, FieldRule]
    inputs: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    keywords_filters: tuple[FilterStep, ...] = ()
    allow_empty_inputs: bool = False
    error_rules: tuple[ErrorRule, ...] = ()

    def paths_for(self, mode: str) -> tuple[SearchPath, ...]:
        return tuple(p for p in self.paths if p.applies_to(mode))


@dataclass(frozen=True)
class SourceDefinition:
    """
    Declarative description of one indexing site's integration contract.

    Holds no per-user state; instances supply settings values and base URLs.
    Unknown top-level YAML keys are kept in ``extra``.
    """

    id: str
    name: str
    protocol: str
    access_tier: str = "public"
    links: tuple[str, ...] = ()
    search: SearchRule | None = None
    description: str = ""
    language: str = "en-US"
    encoding: str = "UTF-8"
    legacy_links: tuple[str, ...] = ()
    request_delay: float | None = None
    capabilities: Capabilities = field(default_factory=Capabilities)
    settings: tuple[SettingField, ...] = ()
    auth: AuthRule = field(default_factory=AuthRule)
    login: LoginRule | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def base_url(self) -> str:
        return self.links[0] if self.links else ""

    @property
    def requires_login(self) -> bool:
        return self.login is not None and self.access_tier != "public"

    def setting(self, name: str) -> SettingField | None:
        for s in self.settings:
            if s.name == name:
                return s
        return None
