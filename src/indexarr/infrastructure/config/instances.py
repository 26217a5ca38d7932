"""Instance list loading (YAML) for the operator CLI.

Instances normally come from an external configuration store; this file
format is a stand-in so the engine can be driven from the command line.

Example::

    - id: tpb-main
      definition_id: examplepublic
      priority: 10
      rate_limit: {requests: 1, window_seconds: 2}
      settings: {sort: seeders}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from indexarr.domain.entities import RateLimitRule, SourceInstance


class RateLimitModel(BaseModel):
    requests: int
    window_seconds: float

    @field_validator("requests")
    @classmethod
    def _validate_requests(cls, v: int) -> int:
        if v < 0:
            raise ValueError("rate_limit.requests must be >= 0")
        return v

    @field_validator("window_seconds")
    @classmethod
    def _validate_window(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("rate_limit.window_seconds must be > 0")
        return v


class InstanceModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    definition_id: str
    name: str = ""
    base_url: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    priority: int = 25
    min_seeders: Optional[int] = None
    seed_time: Optional[int] = None
    rate_limit: Optional[RateLimitModel] = None

    @field_validator("id", "definition_id")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    def to_domain(self) -> SourceInstance:
        return SourceInstance(
            id=self.id,
            definition_id=self.definition_id,
            name=self.name,
            base_url=self.base_url,
            settings=dict(self.settings),
            enabled=self.enabled,
            priority=self.priority,
            min_seeders=self.min_seeders,
            seed_time=self.seed_time,
            rate_limit=RateLimitRule(
                requests=self.rate_limit.requests,
                window_seconds=self.rate_limit.window_seconds,
            )
            if self.rate_limit
            else None,
        )


def parse_instances(data: Any) -> List[SourceInstance]:
    """Validate a parsed YAML document (a list of instance mappings)."""
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("Instances YAML must be a list of mappings")

    instances: List[SourceInstance] = []
    seen: set[str] = set()
    for position, item in enumerate(data):
        try:
            instance = InstanceModel.model_validate(item).to_domain()
        except ValidationError as e:
            raise ValueError(f"instance #{position}: {e}") from e
        if instance.id in seen:
            raise ValueError(f"instance #{position}: duplicate id '{instance.id}'")
        seen.add(instance.id)
        instances.append(instance)
    return instances


def load_instances(path: Path) -> List[SourceInstance]:
    raw = path.read_text(encoding="utf-8")
    return parse_instances(yaml.safe_load(raw))
