from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Iterable

import httpx
import structlog

from indexarr.application.use_cases import SearchOrchestrator
from indexarr.domain.entities import RateLimitRule
from indexarr.infrastructure.config import AppConfig
from indexarr.infrastructure.definitions import DefinitionRegistry
from indexarr.infrastructure.engine import DefinitionSearchEngine
from indexarr.infrastructure.health import BackoffConfig, StatusTracker
from indexarr.infrastructure.common import InstanceRateLimiter

log = structlog.get_logger(__name__)


@dataclass
class Services:
    """Wired object graph (DI composition root output)."""

    config: AppConfig
    http_client: httpx.AsyncClient
    registry: DefinitionRegistry
    engine: DefinitionSearchEngine
    tracker: StatusTracker
    limiter: InstanceRateLimiter
    orchestrator: SearchOrchestrator


def backoff_config(config: AppConfig) -> BackoffConfig:
    b = config.backoff
    return BackoffConfig(
        failure_threshold=b.failure_threshold,
        initial_seconds=b.initial_seconds,
        multiplier=b.multiplier,
        max_seconds=b.max_seconds,
    )


def default_rate_limit_rule(config: AppConfig) -> RateLimitRule | None:
    """Configured default budget, or ``None`` (unlimited) when it is 0."""
    rl = config.rate_limit
    if rl.default_requests <= 0:
        return None
    return RateLimitRule(
        requests=rl.default_requests, window_seconds=rl.default_window_seconds
    )


def create_http_client(config: AppConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=config.http_follow_redirects,
    )


def build_services(
    config: AppConfig,
    http_client: httpx.AsyncClient,
    *,
    definition_sources: Iterable[Path | str] | None = None,
) -> Services:
    """Wire all components.

    Order matters:
        1. Definition registry (loaded from ``definitions_dir`` by default)
        2. Search engine (uses the HTTP client)
        3. Status tracker + rate limiter (shared per-instance state)
        4. Search orchestrator (uses all of the above)
    """
    # ========== 1) Definition registry ==========
    registry = DefinitionRegistry()
    sources = (
        list(definition_sources)
        if definition_sources is not None
        else [config.definitions_dir]
    )
    registry.load(sources)
    log.info("definitions_registered", count=len(registry), counts=registry.counts())

    # ========== 2) Search engine ==========
    engine = DefinitionSearchEngine(http_client, session_ttl=config.session_ttl_seconds)

    # ========== 3) Health + rate limits ==========
    tracker = StatusTracker(backoff=backoff_config(config))
    limiter = InstanceRateLimiter(default_rate_limit_rule(config))

    # ========== 4) Orchestrator ==========
    orchestrator = SearchOrchestrator(
        registry=registry,
        engine=engine,
        tracker=tracker,
        limiter=limiter,
        config=config.search,
    )
    log.debug("services_initialized")

    return Services(
        config=config,
        http_client=http_client,
        registry=registry,
        engine=engine,
        tracker=tracker,
        limiter=limiter,
        orchestrator=orchestrator,
    )


@asynccontextmanager
async def open_services(
    config: AppConfig,
    *,
    definition_sources: Iterable[Path | str] | None = None,
) -> AsyncIterator[Services]:
    """Build the services around a fresh HTTP client and close it afterwards."""
    http_client = create_http_client(config)
    log.debug("http_client_initialized")
    try:
        yield build_services(
            config, http_client, definition_sources=definition_sources
        )
    finally:
        await http_client.aclose()
        log.debug("http_client_closed")
