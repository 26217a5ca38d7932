"""Pydantic validation models for YAML source definitions.

The file format follows community (Cardigann-style) indexer definitions.
Structural problems (wrong types, malformed rules) fail validation here;
semantic problems (unknown protocol, bad access tier) are checked later
by :mod:`indexarr.infrastructure.definitions.validation` so the definition
can still be registered for diagnostics.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from indexarr.infrastructure.categories import resolve_category_id

DEFINITION_ID_RE = r"^[a-z0-9][a-z0-9._-]*$"


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# === Shared ===


class FilterModel(_Model):
    name: str
    args: Any = None


class ErrorMessageModel(_Model):
    selector: Optional[str] = None
    text: Optional[str] = None


class ErrorModel(_Model):
    selector: str
    message: Optional[Union[ErrorMessageModel, str]] = None

    @property
    def message_text(self) -> Optional[str]:
        if isinstance(self.message, str):
            return self.message
        return self.message.text if self.message else None

    @property
    def message_selector(self) -> Optional[str]:
        if isinstance(self.message, ErrorMessageModel):
            return self.message.selector
        return None


# === Settings / Caps ===


class SettingModel(_Model):
    name: str
    type: str = "text"
    label: Optional[str] = None
    default: Any = None
    required: bool = False
    placeholder: Optional[str] = None
    help_text: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("help_text", "helptext")
    )
    options: Dict[str, str] = Field(default_factory=dict)

    @field_validator("options", mode="before")
    @classmethod
    def _stringify_options(cls, v: Any) -> Dict[str, str]:
        if not v:
            return {}
        return {str(k): str(val) for k, val in dict(v).items()}


class CategoryMappingModel(_Model):
    id: str
    cat: Union[int, str]
    desc: Optional[str] = None
    default: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("cat")
    @classmethod
    def _validate_cat(cls, v: Union[int, str]) -> Union[int, str]:
        if resolve_category_id(v) is None:
            raise ValueError(f"unknown category {v!r}")
        return v


class CapsModel(_Model):
    categorymappings: List[CategoryMappingModel] = Field(default_factory=list)
    categories: Dict[str, str] = Field(default_factory=dict)
    categoryscheme: Optional[str] = None
    modes: Dict[str, List[str]] = Field(
        default_factory=lambda: {"search": ["q"]}
    )
    allowpagination: bool = False
    allowinfohash: bool = False
    limitsdefault: int = 100
    limitsmax: int = 100

    @field_validator("categories", mode="before")
    @classmethod
    def _stringify_categories(cls, v: Any) -> Dict[str, str]:
        if not v:
            return {}
        return {str(k): str(val) for k, val in dict(v).items()}

    @field_validator("categories")
    @classmethod
    def _validate_categories(cls, v: Dict[str, str]) -> Dict[str, str]:
        unknown = [name for name in v.values() if resolve_category_id(name) is None]
        if unknown:
            raise ValueError(f"unknown categories: {', '.join(unknown)}")
        return v

    @field_validator("modes", mode="before")
    @classmethod
    def _normalize_modes(cls, v: Any) -> Dict[str, List[str]]:
        if not v:
            return {"search": ["q"]}
        out: Dict[str, List[str]] = {}
        for mode, params in dict(v).items():
            if isinstance(params, str):
                params = [p.strip() for p in params.split(",") if p.strip()]
            out[str(mode)] = [str(p) for p in params or []]
        return out

    @model_validator(mode="after")
    def _validate_limits(self) -> "CapsModel":
        if self.limitsdefault < 1 or self.limitsmax < 1:
            raise ValueError("caps limits must be >= 1")
        return self


class AuthModel(_Model):
    method: str = "none"
    params: Dict[str, str] = Field(default_factory=dict)


# === Login ===


class LoginTestModel(_Model):
    path: Optional[str] = None
    selector: Optional[str] = None


class LoginModel(_Model):
    method: str = "post"
    path: str = ""
    inputs: Dict[str, Any] = Field(default_factory=dict)
    form: Optional[str] = None
    submitpath: Optional[str] = None
    error: List[ErrorModel] = Field(default_factory=list)
    test: Optional[LoginTestModel] = None

    @field_validator("method")
    @classmethod
    def _validate_method(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {"post", "form", "get", "cookie"}:
            raise ValueError(
                f"login.method must be post, form, get or cookie (got {v!r})"
            )
        return v

    @model_validator(mode="after")
    def _validate_login(self) -> "LoginModel":
        if self.method != "cookie" and not self.path:
            raise ValueError(f"login method '{self.method}' requires 'path'")
        return self


# === Search ===


class ResponseModel(_Model):
    type: Optional[str] = None

    @field_validator("type")
    @classmethod
    def _validate_type(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.lower()
        if v not in {"html", "xml", "json"}:
            raise ValueError(f"response.type must be html, xml or json (got {v!r})")
        return v


class SearchPathModel(_Model):
    path: str
    method: str = "get"
    inputs: Dict[str, Any] = Field(default_factory=dict)
    inheritinputs: bool = True
    categories: List[str] = Field(default_factory=list)
    modes: List[str] = Field(default_factory=list)
    response: Optional[ResponseModel] = None

    @field_validator("method")
    @classmethod
    def _validate_method(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {"get", "post"}:
            raise ValueError(f"search path method must be get or post (got {v!r})")
        return v

    @field_validator("categories", mode="before")
    @classmethod
    def _stringify_categories(cls, v: Any) -> List[str]:
        return [str(c) for c in v or []]


class FieldModel(_Model):
    selector: Optional[str] = None
    attribute: Optional[str] = None
    text: Optional[Any] = None
    filters: List[FilterModel] = Field(default_factory=list)
    optional: bool = False
    default: Optional[Any] = None
    remove: Optional[str] = None

    @model_validator(mode="after")
    def _validate_field(self) -> "FieldModel":
        if self.selector is None and self.text is None:
            raise ValueError("field requires 'selector' or 'text'")
        return self


class RowsModel(_Model):
    selector: str
    after: int = 0
    remove: Optional[str] = None
    multiple: Optional[str] = None
    dateheaders: Optional[FieldModel] = None
    count: Optional[Union[FieldModel, str]] = None

    @field_validator("multiple", mode="before")
    @classmethod
    def _validate_multiple(cls, v: Any) -> Optional[str]:
        # ``multiple: true`` (no nested path) is a no-op.
        if v is None or isinstance(v, bool):
            return None
        return str(v)

    @field_validator("after")
    @classmethod
    def _validate_after(cls, v: int) -> int:
        if v < 0:
            raise ValueError("rows.after must be >= 0")
        return v


class SearchModel(_Model):
    path: Optional[str] = None
    paths: List[SearchPathModel] = Field(default_factory=list)
    inputs: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, Any] = Field(default_factory=dict)
    keywordsfilters: List[FilterModel] = Field(default_factory=list)
    allowemptyinputs: bool = Field(
        default=False,
        validation_alias=AliasChoices("allowemptyinputs", "allowEmptyInputs"),
    )
    error: List[ErrorModel] = Field(default_factory=list)
    rows: RowsModel
    fields: Dict[str, FieldModel]

    @field_validator("fields", mode="before")
    @classmethod
    def _expand_shorthand(cls, v: Any) -> Any:
        # ``title: "a.title"`` is shorthand for ``title: {selector: "a.title"}``
        if not isinstance(v, dict):
            return v
        return {
            k: {"selector": val} if isinstance(val, str) else val
            for k, val in v.items()
        }

    @model_validator(mode="after")
    def _validate_search(self) -> "SearchModel":
        if not self.paths and not self.path:
            raise ValueError("search requires 'paths' or 'path'")
        if not self.fields:
            raise ValueError("search requires at least one field")
        return self


# === Main Definition ===


class SourceDefinitionPydantic(_Model):
    """
    Pydantic validation model for YAML definitions.

    After validation, this is converted to
    ``indexarr.domain.definitions.SourceDefinition``.  Unknown top-level
    keys are preserved in ``model_extra``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = ""
    name: str = ""
    description: str = ""
    language: str = "en-US"
    type: str = Field(
        default="public", validation_alias=AliasChoices("type", "access_tier")
    )
    protocol: str = ""
    encoding: str = "UTF-8"
    links: List[str] = Field(default_factory=list)
    legacylinks: List[str] = Field(default_factory=list)
    requestdelay: Optional[float] = None
    settings: List[SettingModel] = Field(default_factory=list)
    auth: AuthModel = Field(default_factory=AuthModel)
    caps: CapsModel = Field(default_factory=CapsModel)
    login: Optional[LoginModel] = None
    search: SearchModel

    @field_validator("id", "name", "protocol", "type", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("links", "legacylinks", mode="before")
    @classmethod
    def _as_list(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(u) for u in v]

    @field_validator("requestdelay")
    @classmethod
    def _validate_delay(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("requestdelay must be >= 0")
        return v
