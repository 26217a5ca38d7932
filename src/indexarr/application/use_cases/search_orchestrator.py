"""Multi-source search use case.

criteria + instances -> eligibility -> rate-limit admission -> bounded
parallel engine searches -> health bookkeeping -> merge -> filter.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any, Protocol

import structlog

from indexarr.application.use_cases.release_merge import ReleaseMerger
from indexarr.domain.definitions import SourceDefinition
from indexarr.domain.entities import (
    Admission,
    InstanceTestResult,
    PerInstanceOutcome,
    RateLimitRule,
    Release,
    SearchCriteria,
    SearchRoundResult,
    SourceInstance,
)
from indexarr.domain.errors import (
    RateLimitDeniedError,
    SourceSearchError,
    UpstreamHttpError,
)
from indexarr.domain.ports import Clock, DefinitionRegistryPort, SourceSearchEnginePort
from indexarr.infrastructure.categories import (
    detect_quality_categories,
    normalize_categories,
)
from indexarr.infrastructure.common.episodes import matches_season_episode

log = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Protocols: what this use case needs from its collaborators.
# Infrastructure components satisfy these via structural subtyping.
# ---------------------------------------------------------------------------


class _SearchConfig(Protocol):
    """Configuration values consumed by SearchOrchestrator."""

    max_concurrency: int
    instance_timeout_seconds: float
    rate_limit_wait_fraction: float
    dedupe_title_similarity: float | None


class _StatusTracker(Protocol):
    def is_eligible(self, instance_id: str, now: float | None = None) -> bool: ...
    def record_success(
        self, instance_id: str, response_time: float | None = None
    ) -> object: ...
    def record_failure(self, instance_id: str, reason: str) -> object: ...


class _RateLimiter(Protocol):
    def configure(self, instance_id: str, rule: RateLimitRule | None) -> None: ...
    def try_acquire(self, instance_id: str) -> Admission: ...
    def block_for(self, instance_id: str, seconds: float) -> None: ...


# Retry-After fallback when a 429 carries no usable hint.
DEFAULT_THROTTLE_SECONDS = 60.0


@dataclass(frozen=True)
class _Attempt:
    """Result of one dispatched instance search."""

    outcome: PerInstanceOutcome
    releases: tuple[Release, ...] = ()


def _skipped(
    instance_id: str, reason: str, message: str | None = None
) -> PerInstanceOutcome:
    return PerInstanceOutcome(
        instance_id=instance_id, status="skipped", reason=reason, message=message
    )


def _failed(
    instance_id: str, reason: str, message: str | None, elapsed: float | None
) -> PerInstanceOutcome:
    return PerInstanceOutcome(
        instance_id=instance_id,
        status="failed",
        reason=reason,
        message=message,
        elapsed=elapsed,
    )


def _rate_limit_rule(
    definition: SourceDefinition, instance: SourceInstance
) -> RateLimitRule | None:
    """Instance override first, then one request per ``requestdelay``."""
    if instance.rate_limit is not None:
        return instance.rate_limit
    if definition.request_delay:
        return RateLimitRule(requests=1, window_seconds=definition.request_delay)
    return None


def _tiered_criteria(
    definition: SourceDefinition, criteria: SearchCriteria
) -> tuple[SearchCriteria | None, str]:
    """Prefer an ID-only search, fall back to the text query.

    Returns ``(None, "text")`` when the source cannot search by the ID and
    there is no query to fall back on.
    """
    if criteria.imdb_id is None:
        return criteria, "text"
    if definition.capabilities.supports_param(criteria.mode, "imdbid"):
        return replace(criteria, query=""), "id"
    if criteria.query:
        return replace(criteria, imdb_id=None), "text"
    return None, "text"


def _matches_categories(release: Release, wanted: frozenset[int]) -> bool:
    return not wanted or bool(release.categories & wanted)


class SearchOrchestrator:
    """Fans one logical search out over many source instances.

    Instance-local failures never propagate: they are recorded against the
    instance's health and reported in the diagnostics.  Only cancellation
    of the caller's own task and invalid criteria raise.

    Args:
        registry: Definition lookup.
        engine: Executes a definition against a live source.
        tracker: Per-instance health (backoff) state.
        limiter: Per-instance request budget.
        config: Concurrency, timeout and merge settings.
        clock: Monotonic clock, also the time base of ``deadline``.
        sleep: Coroutine used while waiting for a rate-limit token.
    """

    def __init__(
        self,
        registry: DefinitionRegistryPort,
        engine: SourceSearchEnginePort,
        tracker: _StatusTracker,
        limiter: _RateLimiter,
        config: _SearchConfig,
        *,
        clock: Clock = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._engine = engine
        self._tracker = tracker
        self._limiter = limiter
        self._max_concurrency = config.max_concurrency
        self._timeout = config.instance_timeout_seconds
        self._wait_budget = (
            config.rate_limit_wait_fraction * config.instance_timeout_seconds
        )
        self._merger = ReleaseMerger(config.dedupe_title_similarity)
        self._clock = clock
        self._sleep = sleep

    # ----- Public API -----

    async def search(
        self,
        criteria: SearchCriteria,
        instances: Sequence[SourceInstance],
        *,
        cancel: asyncio.Event | None = None,
        deadline: float | None = None,
    ) -> SearchRoundResult:
        """Run one search round and wait for every dispatched instance.

        Args:
            criteria: The query.
            instances: Configured instances to consider.
            cancel: Setting this event ends the round early.
            deadline: Absolute time (on the orchestrator clock) that ends
                the round early.

        Returns:
            Merged releases plus one diagnostics entry per instance, in
            input order.  Partial results survive cancellation.
        """
        started = self._clock()
        outcomes: dict[str, PerInstanceOutcome] = {}
        dispatch: list[tuple[SourceInstance, SourceDefinition]] = []

        seen: set[str] = set()
        for instance in sorted(instances, key=lambda i: i.priority):
            if instance.id in seen:
                log.warning("instance_duplicate", instance=instance.id)
                continue
            seen.add(instance.id)
            checked = self._check_eligibility(instance, criteria)
            if isinstance(checked, PerInstanceOutcome):
                outcomes[instance.id] = checked
                log.debug(
                    "instance_skipped", instance=instance.id, reason=checked.reason
                )
                continue
            definition = checked
            rule = _rate_limit_rule(definition, instance)
            if rule is not None:
                self._limiter.configure(instance.id, rule)
            dispatch.append((instance, definition))

        log.info(
            "search_round_started",
            mode=criteria.mode,
            query=criteria.query,
            dispatched=len(dispatch),
            skipped=len(outcomes),
        )

        attempts = await self._gather(criteria, dispatch, cancel, deadline)

        collected: list[Release] = []
        for instance, _ in dispatch:
            attempt = attempts[instance.id]
            outcomes[instance.id] = attempt.outcome
            collected.extend(attempt.releases)

        results = self._merger.merge(collected)
        wanted = frozenset(criteria.categories)
        results = [r for r in results if _matches_categories(r, wanted)]
        if criteria.limit is not None:
            results = results[: criteria.limit]

        ordered = tuple(outcomes[i.id] for i in _unique(instances) if i.id in outcomes)
        round_result = SearchRoundResult(results=tuple(results), diagnostics=ordered)

        log.info(
            "search_round_complete",
            mode=criteria.mode,
            query=criteria.query,
            results=len(results),
            raw_results=len(collected),
            ok=len(round_result.ok),
            skipped=len(round_result.skipped),
            failed=len(round_result.failed),
            duration_ms=round((self._clock() - started) * 1000),
        )
        return round_result

    async def test_instance(self, instance: SourceInstance) -> InstanceTestResult:
        """Log in and run a one-result search, ignoring health and rate limits."""
        record = self._registry.get(instance.definition_id)
        if record is None:
            return InstanceTestResult(
                ok=False, error=f"Unknown definition '{instance.definition_id}'"
            )
        if not record.is_valid:
            return InstanceTestResult(
                ok=False,
                error="Invalid definition: " + "; ".join(record.validation_errors),
            )

        try:
            releases = await asyncio.wait_for(
                self._engine.test(record.definition, instance), timeout=self._timeout
            )
        except SourceSearchError as e:
            log.info("instance_test_failed", instance=instance.id, reason=e.reason)
            return InstanceTestResult(ok=False, error=f"{e.reason}: {e}")
        except TimeoutError:
            log.info("instance_test_failed", instance=instance.id, reason="timeout")
            return InstanceTestResult(
                ok=False, error=f"timeout: no response within {self._timeout}s"
            )
        except Exception as e:  # noqa: BLE001
            log.warning("instance_test_failed", instance=instance.id, exc_info=True)
            return InstanceTestResult(ok=False, error=f"error: {e}")

        log.info("instance_test_ok", instance=instance.id, results=len(releases))
        return InstanceTestResult(ok=True, result_count=len(releases))

    # ----- Eligibility -----

    def _check_eligibility(
        self, instance: SourceInstance, criteria: SearchCriteria
    ) -> SourceDefinition | PerInstanceOutcome:
        """The definition to run, or the reason the instance is skipped."""
        if not instance.enabled:
            return _skipped(instance.id, "disabled")
        record = self._registry.get(instance.definition_id)
        if record is None:
            return _skipped(
                instance.id,
                "unknown_definition",
                f"Unknown definition '{instance.definition_id}'",
            )
        if not record.is_valid:
            return _skipped(
                instance.id, "invalid_definition", "; ".join(record.validation_errors)
            )
        definition = record.definition
        if not definition.capabilities.supports_mode(criteria.mode):
            return _skipped(instance.id, "unsupported_mode", criteria.mode)
        if not self._tracker.is_eligible(instance.id):
            return _skipped(instance.id, "backoff")
        return definition

    async def _admit(self, instance_id: str) -> None:
        """Take a rate-limit token, waiting at most the round's wait budget.

        Raises:
            RateLimitDeniedError: No token within the wait budget.
        """
        waited = 0.0
        while True:
            admission = self._limiter.try_acquire(instance_id)
            if admission.granted:
                return
            retry_after = admission.retry_after or 0.0
            if retry_after <= 0 or waited + retry_after > self._wait_budget:
                message = "rate limited"
                if admission.retry_after is not None:
                    message = f"retry after {admission.retry_after:.1f}s"
                raise RateLimitDeniedError(message, retry_after=admission.retry_after)
            await self._sleep(retry_after)
            waited += retry_after

    # ----- Fan-out -----

    async def _gather(
        self,
        criteria: SearchCriteria,
        dispatch: list[tuple[SourceInstance, SourceDefinition]],
        cancel: asyncio.Event | None,
        deadline: float | None,
    ) -> dict[str, _Attempt]:
        semaphore = asyncio.Semaphore(self._max_concurrency)
        tasks: dict[asyncio.Task[_Attempt], SourceInstance] = {
            asyncio.create_task(
                self._search_one(instance, definition, criteria, semaphore),
                name=f"search:{instance.id}",
            ): instance
            for instance, definition in dispatch
        }
        attempts: dict[str, _Attempt] = {}
        if not tasks:
            return attempts

        cancel_waiter = asyncio.create_task(cancel.wait()) if cancel else None
        pending: set[asyncio.Task[_Attempt]] = set(tasks)
        try:
            while pending:
                timeout = None
                if deadline is not None:
                    timeout = max(0.0, deadline - self._clock())
                waitables: set[asyncio.Task[Any]] = set(pending)
                if cancel_waiter is not None:
                    waitables.add(cancel_waiter)
                done, _ = await asyncio.wait(
                    waitables, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done & pending:
                    pending.discard(task)
                    attempts[tasks[task].id] = self._attempt_of(task, tasks[task])
                if not done or (cancel_waiter is not None and cancel_waiter in done):
                    break
        except asyncio.CancelledError:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if pending:
            log.info("search_round_cancelled", in_flight=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in pending:
                attempts[tasks[task].id] = self._attempt_of(task, tasks[task])

        return attempts

    def _attempt_of(
        self, task: asyncio.Task[_Attempt], instance: SourceInstance
    ) -> _Attempt:
        if task.cancelled():
            return _Attempt(_failed(instance.id, "cancelled", "round cancelled", None))
        error = task.exception()
        if error is not None:
            log.error(
                "instance_search_crashed",
                instance=instance.id,
                error_type=type(error).__name__,
                error_message=str(error),
            )
            return _Attempt(_failed(instance.id, "error", str(error), None))
        return task.result()

    async def _search_one(
        self,
        instance: SourceInstance,
        definition: SourceDefinition,
        criteria: SearchCriteria,
        semaphore: asyncio.Semaphore,
    ) -> _Attempt:
        sent, method = _tiered_criteria(definition, criteria)
        if sent is None:
            log.debug("instance_search_no_terms", instance=instance.id)
            return _Attempt(
                PerInstanceOutcome(instance_id=instance.id, status="ok", elapsed=0.0)
            )

        try:
            await self._admit(instance.id)
        except RateLimitDeniedError as e:
            log.info(
                "instance_rate_limited", instance=instance.id, retry_after=e.retry_after
            )
            return _Attempt(_skipped(instance.id, e.reason, str(e)))

        async with semaphore:
            started = self._clock()
            try:
                releases = await asyncio.wait_for(
                    self._engine.search(definition, sent, instance),
                    timeout=self._timeout,
                )
            except SourceSearchError as e:
                if isinstance(e, UpstreamHttpError) and e.status == 429:
                    self._limiter.block_for(
                        instance.id, e.retry_after or DEFAULT_THROTTLE_SECONDS
                    )
                return self._failure(instance, e.reason, str(e), started)
            except TimeoutError:
                return self._failure(
                    instance, "timeout", f"no response within {self._timeout}s", started
                )
            except Exception as e:  # noqa: BLE001
                log.warning(
                    "instance_search_error",
                    instance=instance.id,
                    definition=definition.id,
                    exc_info=True,
                )
                return self._failure(instance, "error", str(e), started)

            elapsed = self._clock() - started

        self._tracker.record_success(instance.id, response_time=elapsed)
        kept = tuple(self._prepare(instance, releases, criteria))
        log.debug(
            "instance_search_ok",
            instance=instance.id,
            search_method=method,
            results=len(kept),
            raw_results=len(releases),
            elapsed_ms=round(elapsed * 1000),
        )
        return _Attempt(
            PerInstanceOutcome(
                instance_id=instance.id,
                status="ok",
                result_count=len(kept),
                elapsed=elapsed,
            ),
            kept,
        )

    def _failure(
        self, instance: SourceInstance, reason: str, message: str, started: float
    ) -> _Attempt:
        elapsed = self._clock() - started
        self._tracker.record_failure(instance.id, reason)
        log.warning(
            "instance_search_failed",
            instance=instance.id,
            reason=reason,
            error_message=message,
        )
        return _Attempt(_failed(instance.id, reason, message, elapsed))

    @staticmethod
    def _prepare(
        instance: SourceInstance, releases: list[Release], criteria: SearchCriteria
    ) -> list[Release]:
        """Attribute, canonicalize and filter one instance's releases.

        Drops releases under the instance's seeder minimum and, for TV
        searches with a season, releases not covering that season/episode.
        Uncategorized movie/TV releases get a category guessed from the
        title.
        """
        out: list[Release] = []
        for release in releases:
            if (
                instance.min_seeders is not None
                and release.seeders is not None
                and release.seeders < instance.min_seeders
            ):
                continue
            if criteria.is_tv and not matches_season_episode(
                release.title, criteria.season, criteria.episode
            ):
                continue
            release = release.with_source(instance.id)
            categories = frozenset(normalize_categories(release.categories))
            if not categories and (criteria.is_movie or criteria.is_tv):
                base = "movie" if criteria.is_movie else "tv"
                categories = frozenset(detect_quality_categories(release.title, base))
            if categories != release.categories:
                release = replace(release, categories=categories)
            out.append(release)
        return out


def _unique(instances: Sequence[SourceInstance]) -> list[SourceInstance]:
    seen: set[str] = set()
    out: list[SourceInstance] = []
    for instance in instances:
        if instance.id not in seen:
            seen.add(instance.id)
            out.append(instance)
    return out
