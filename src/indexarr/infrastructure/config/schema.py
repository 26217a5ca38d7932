"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class SearchSettings(BaseModel):
    """Fan-out behaviour of one search round (YAML section: search.*)."""

    max_concurrency: int = Field(
        default=5,
        description="Max instance searches in flight at the same time.",
    )
    instance_timeout_seconds: float = Field(
        default=30.0,
        description="Per-instance deadline covering login, requests and parsing.",
    )
    rate_limit_wait_fraction: float = Field(
        default=0.25,
        description=(
            "Share of the instance timeout an instance may wait for a "
            "rate-limit token before it is skipped for the round."
        ),
    )
    dedupe_title_similarity: Optional[float] = Field(
        default=None,
        description=(
            "Optional fuzzy title threshold (0-100, rapidfuzz token_sort_ratio) "
            "for merging releases without info-hash. Unset = exact titles only."
        ),
    )

    @field_validator("max_concurrency")
    @classmethod
    def _validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("search.max_concurrency must be >= 1")
        return v

    @field_validator("instance_timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("search.instance_timeout_seconds must be > 0")
        return v

    @field_validator("rate_limit_wait_fraction")
    @classmethod
    def _validate_fraction(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("search.rate_limit_wait_fraction must be in [0, 1]")
        return v

    @field_validator("dedupe_title_similarity")
    @classmethod
    def _validate_similarity(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 0 < v <= 100:
            raise ValueError("search.dedupe_title_similarity must be in (0, 100]")
        return v


class BackoffSettings(BaseModel):
    """Exponential backoff policy for failing instances (YAML section: backoff.*)."""

    failure_threshold: int = Field(
        default=5,
        description="Consecutive failures tolerated before an instance is disabled.",
    )
    initial_seconds: float = Field(
        default=300.0,
        description="Disable window at exactly failure_threshold failures.",
    )
    multiplier: float = Field(
        default=2.0,
        description="Growth factor per additional failure.",
    )
    max_seconds: float = Field(
        default=21_600.0,
        description="Upper bound for any disable window (6h).",
    )

    @model_validator(mode="after")
    def _validate_curve(self) -> "BackoffSettings":
        if self.failure_threshold < 1:
            raise ValueError("backoff.failure_threshold must be >= 1")
        if self.initial_seconds < 0 or self.max_seconds < 0:
            raise ValueError("backoff durations must be >= 0")
        if self.multiplier < 1:
            raise ValueError("backoff.multiplier must be >= 1")
        return self


class RateLimitSettings(BaseModel):
    """Default request budget for instances without their own rule."""

    default_requests: int = Field(
        default=0,
        description="Requests per window; 0 = unlimited.",
    )
    default_window_seconds: float = Field(
        default=1.0,
        description="Window length in seconds.",
    )

    @field_validator("default_requests")
    @classmethod
    def _validate_requests(cls, v: int) -> int:
        if v < 0:
            raise ValueError("rate_limit.default_requests must be >= 0")
        return v

    @field_validator("default_window_seconds")
    @classmethod
    def _validate_window(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("rate_limit.default_window_seconds must be > 0")
        return v


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned
      (definitions/http/logging/search/backoff/rate_limit/session).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="indexarr", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # Definitions (YAML section: definitions.dir)
    definitions_dir: Path = Field(
        default=Path("./definitions"),
        validation_alias=AliasChoices(
            "definitions_dir",
            AliasPath("definitions", "dir"),
        ),
        description="Directory containing YAML source definitions.",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Timeout for a single outgoing HTTP request.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Follow HTTP redirects.",
    )
    http_user_agent: str = Field(
        default="Indexarr/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # Login sessions (YAML section: session.*)
    session_ttl_seconds: float = Field(
        default=3600.0,
        validation_alias=AliasChoices(
            "session_ttl_seconds",
            AliasPath("session", "ttl_seconds"),
        ),
        description="How long a login session is reused before logging in again.",
    )

    search: SearchSettings = Field(default_factory=SearchSettings)
    backoff: BackoffSettings = Field(default_factory=BackoffSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)

    @field_validator("definitions_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @field_validator("session_ttl_seconds")
    @classmethod
    def _validate_session_ttl(cls, v: float) -> float:
        if v < 0:
            raise ValueError("session_ttl_seconds must be >= 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "definitions": {"dir": str(self.definitions_dir)},
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "session": {"ttl_seconds": self.session_ttl_seconds},
            "search": self.search.model_dump(),
            "backoff": self.backoff.model_dump(),
            "rate_limit": self.rate_limit.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read INDEXARR_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - INDEXARR_DEFINITIONS_DIR
    - INDEXARR_HTTP_TIMEOUT_SECONDS
    - INDEXARR_SEARCH_MAX_CONCURRENCY
    - INDEXARR_BACKOFF_MAX_SECONDS
    - INDEXARR_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="INDEXARR_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    definitions_dir: Optional[Path] = None

    http_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    session_ttl_seconds: Optional[float] = None

    search_max_concurrency: Optional[int] = None
    search_instance_timeout_seconds: Optional[float] = None
    search_rate_limit_wait_fraction: Optional[float] = None
    search_dedupe_title_similarity: Optional[float] = None

    backoff_failure_threshold: Optional[int] = None
    backoff_initial_seconds: Optional[float] = None
    backoff_multiplier: Optional[float] = None
    backoff_max_seconds: Optional[float] = None

    rate_limit_default_requests: Optional[int] = None
    rate_limit_default_window_seconds: Optional[float] = None

    @field_validator("definitions_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
