"""Tests for DefinitionSearchEngine (HTTP mocked with respx)."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import httpx
import pytest
import respx

from indexarr.application.use_cases import SearchOrchestrator
from indexarr.domain.definitions import SourceDefinition
from indexarr.domain.entities import SearchCriteria, SourceInstance
from indexarr.domain.errors import (
    AuthenticationError,
    SearchTimeoutError,
    UpstreamHttpError,
)
from indexarr.infrastructure.common import InstanceRateLimiter
from indexarr.infrastructure.config import SearchSettings
from indexarr.infrastructure.definitions import (
    DefinitionRegistry,
    load_definition_data,
    load_definition_file,
)
from indexarr.infrastructure.engine import DefinitionSearchEngine, parse_cookie_string
from indexarr.infrastructure.health import StatusTracker

_SEARCH_URL = "https://tracker.example/search"
_PRIVATE = "https://private.example.org"

_PRIVATE_RESULTS = """
<table id="torrent_table"><tbody>
  <tr class="torrent">
    <td class="cats_col"><a href="torrents.php?filter_cat[11]=1">HD</a></td>
    <td><a class="torrent_name" href="torrents.php?id=9">Private.Movie.2023.1080p</a>
        <a href="torrents.php?action=download&id=9">DL</a></td>
    <td class="size">2 GB</td>
    <td class="snatches">40</td>
    <td class="seeders">12</td>
    <td class="leechers">0</td>
    <td><span class="time" title="Mar 05 2024, 10:30">2 months ago</span></td>
  </tr>
</tbody></table>
"""
_LOGGED_IN = '<a href="logout.php">Logout</a>'


@pytest.fixture()
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(follow_redirects=True) as client:
        yield client


@pytest.fixture()
def engine(http_client: httpx.AsyncClient, fake_clock) -> DefinitionSearchEngine:
    return DefinitionSearchEngine(http_client, session_ttl=100, clock=fake_clock)


@pytest.fixture()
def private_definition(sample_definitions_dir: Path) -> SourceDefinition:
    return load_definition_file(sample_definitions_dir / "exampleprivate.yml")


@pytest.fixture()
def private_instance() -> SourceInstance:
    return SourceInstance(
        id="priv-1",
        definition_id="exampleprivate",
        settings={"username": "alice", "password": "s3cret"},
    )


def _mock_private_login(results: str = _PRIVATE_RESULTS) -> dict[str, respx.Route]:
    return {
        "login": respx.post(f"{_PRIVATE}/login.php").respond(
            200, headers={"Set-Cookie": "session=abc; Path=/"}, text="welcome"
        ),
        "test": respx.get(f"{_PRIVATE}/index.php").respond(200, text=_LOGGED_IN),
        "search": respx.get(f"{_PRIVATE}/torrents.php").respond(200, text=results),
    }


class TestPublicSearch:
    @respx.mock
    async def test_search_returns_releases(
        self,
        engine: DefinitionSearchEngine,
        definition: SourceDefinition,
        instance: SourceInstance,
        search_page: str,
    ) -> None:
        route = respx.get(_SEARCH_URL).respond(200, text=search_page)

        releases = await engine.search(
            definition, SearchCriteria(query="big movie"), instance
        )

        assert [r.title for r in releases] == [
            "Big.Movie.2024.2160p.WEB",
            "Some.Show.S01E02.720p",
        ]
        assert route.call_count == 1
        assert route.calls.last.request.url.params["q"] == "big movie"

    @respx.mock
    async def test_limit_truncates(
        self,
        engine: DefinitionSearchEngine,
        definition: SourceDefinition,
        instance: SourceInstance,
        search_page: str,
    ) -> None:
        respx.get(_SEARCH_URL).respond(200, text=search_page)
        releases = await engine.search(
            definition, SearchCriteria(query="x", limit=1), instance
        )
        assert len(releases) == 1

    @respx.mock
    async def test_apikey_added_as_query_param(
        self, engine: DefinitionSearchEngine, definition_data: dict[str, Any]
    ) -> None:
        definition_data["auth"] = {"method": "apikey", "params": {"param": "key"}}
        definition = load_definition_data(definition_data)
        instance = SourceInstance("k-1", "testsite", settings={"apikey": "secret"})
        route = respx.get(_SEARCH_URL).respond(200, text="<html></html>")

        await engine.search(definition, SearchCriteria(query="x"), instance)

        assert route.calls.last.request.url.params["key"] == "secret"

    async def test_missing_apikey_is_auth_error(
        self,
        engine: DefinitionSearchEngine,
        definition_data: dict[str, Any],
        instance: SourceInstance,
    ) -> None:
        definition_data["auth"] = {"method": "apikey"}
        definition = load_definition_data(definition_data)
        with pytest.raises(AuthenticationError, match="API key"):
            await engine.search(definition, SearchCriteria(query="x"), instance)


class TestHttpFailures:
    @respx.mock
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_status(
        self,
        engine: DefinitionSearchEngine,
        definition: SourceDefinition,
        instance: SourceInstance,
        status: int,
    ) -> None:
        respx.get(_SEARCH_URL).respond(status)
        with pytest.raises(AuthenticationError):
            await engine.search(definition, SearchCriteria(query="x"), instance)

    @respx.mock
    async def test_429_carries_retry_after(
        self,
        engine: DefinitionSearchEngine,
        definition: SourceDefinition,
        instance: SourceInstance,
    ) -> None:
        respx.get(_SEARCH_URL).respond(429, headers={"Retry-After": "30"})
        with pytest.raises(UpstreamHttpError) as exc_info:
            await engine.search(definition, SearchCriteria(query="x"), instance)
        assert exc_info.value.status == 429
        assert exc_info.value.retry_after == 30.0

    @respx.mock
    async def test_server_error(
        self,
        engine: DefinitionSearchEngine,
        definition: SourceDefinition,
        instance: SourceInstance,
    ) -> None:
        respx.get(_SEARCH_URL).respond(503)
        with pytest.raises(UpstreamHttpError) as exc_info:
            await engine.search(definition, SearchCriteria(query="x"), instance)
        assert exc_info.value.status == 503
        assert exc_info.value.retry_after is None

    @respx.mock
    async def test_transport_error(
        self,
        engine: DefinitionSearchEngine,
        definition: SourceDefinition,
        instance: SourceInstance,
    ) -> None:
        respx.get(_SEARCH_URL).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(UpstreamHttpError) as exc_info:
            await engine.search(definition, SearchCriteria(query="x"), instance)
        assert exc_info.value.status is None


class TestLogin:
    @respx.mock
    async def test_login_then_search_with_session_cookie(
        self,
        engine: DefinitionSearchEngine,
        private_definition: SourceDefinition,
        private_instance: SourceInstance,
    ) -> None:
        routes = _mock_private_login()

        releases = await engine.search(
            private_definition, SearchCriteria(query="private movie"), private_instance
        )

        login_request = routes["login"].calls.last.request
        assert b"username=alice" in login_request.content
        assert b"password=s3cret" in login_request.content
        assert "session=abc" in routes["search"].calls.last.request.headers["Cookie"]
        assert engine.has_session("priv-1")

        movie = releases[0]
        assert movie.title == "Private.Movie.2023.1080p"
        assert movie.categories == frozenset({2000, 2040})
        assert movie.download_url == (
            f"{_PRIVATE}/torrents.php?action=download&id=9"
        )
        assert movie.grabs == 40
        assert movie.minimum_seed_time == 172800

    @respx.mock
    async def test_session_reused_until_expiry(
        self,
        engine: DefinitionSearchEngine,
        private_definition: SourceDefinition,
        private_instance: SourceInstance,
        fake_clock,
    ) -> None:
        routes = _mock_private_login()
        criteria = SearchCriteria(query="x")

        await engine.search(private_definition, criteria, private_instance)
        await engine.search(private_definition, criteria, private_instance)
        assert routes["login"].call_count == 1

        fake_clock.advance(101)
        assert not engine.has_session("priv-1")
        await engine.search(private_definition, criteria, private_instance)
        assert routes["login"].call_count == 2

    @respx.mock
    async def test_login_error_marker(
        self,
        engine: DefinitionSearchEngine,
        private_definition: SourceDefinition,
        private_instance: SourceInstance,
    ) -> None:
        respx.post(f"{_PRIVATE}/login.php").respond(
            200, text='<div class="error">Invalid username or password</div>'
        )
        with pytest.raises(AuthenticationError):
            await engine.search(
                private_definition, SearchCriteria(query="x"), private_instance
            )
        assert not engine.has_session("priv-1")

    @respx.mock
    async def test_login_test_selector_must_match(
        self,
        engine: DefinitionSearchEngine,
        private_definition: SourceDefinition,
        private_instance: SourceInstance,
    ) -> None:
        respx.post(f"{_PRIVATE}/login.php").respond(200, text="ok")
        respx.get(f"{_PRIVATE}/index.php").respond(200, text="<a>Sign up</a>")
        with pytest.raises(AuthenticationError, match="selector"):
            await engine.search(
                private_definition, SearchCriteria(query="x"), private_instance
            )

    @respx.mock
    async def test_forbidden_search_drops_session(
        self,
        engine: DefinitionSearchEngine,
        private_definition: SourceDefinition,
        private_instance: SourceInstance,
    ) -> None:
        routes = _mock_private_login()
        routes["search"].respond(403)

        with pytest.raises(AuthenticationError):
            await engine.search(
                private_definition, SearchCriteria(query="x"), private_instance
            )
        assert not engine.has_session("priv-1")

    @respx.mock
    async def test_redirect_to_login_page_drops_session(
        self,
        engine: DefinitionSearchEngine,
        private_definition: SourceDefinition,
        private_instance: SourceInstance,
    ) -> None:
        routes = _mock_private_login()
        routes["search"].respond(302, headers={"Location": f"{_PRIVATE}/login.php"})
        respx.get(f"{_PRIVATE}/login.php").respond(200, text="<form></form>")

        with pytest.raises(AuthenticationError, match="session expired"):
            await engine.search(
                private_definition, SearchCriteria(query="x"), private_instance
            )
        assert not engine.has_session("priv-1")

    @respx.mock
    async def test_instance_test_forces_fresh_login(
        self,
        engine: DefinitionSearchEngine,
        private_definition: SourceDefinition,
        private_instance: SourceInstance,
    ) -> None:
        routes = _mock_private_login()

        await engine.search(
            private_definition, SearchCriteria(query="x"), private_instance
        )
        releases = await engine.test(private_definition, private_instance)

        assert routes["login"].call_count == 2
        assert len(releases) == 1


class TestParseCookieString:
    def test_pairs(self) -> None:
        assert parse_cookie_string("uid=1; pass=abc ;") == {"uid": "1", "pass": "abc"}

    def test_garbage_ignored(self) -> None:
        assert parse_cookie_string("novalue; =x") == {}


class TestTimeouts:
    @respx.mock
    async def test_read_timeout_is_search_timeout(
        self,
        engine: DefinitionSearchEngine,
        definition: SourceDefinition,
        instance: SourceInstance,
    ) -> None:
        respx.get(_SEARCH_URL).mock(side_effect=httpx.ReadTimeout("too slow"))
        with pytest.raises(SearchTimeoutError) as exc_info:
            await engine.search(definition, SearchCriteria(query="x"), instance)
        assert exc_info.value.reason == "timeout"

    @respx.mock
    async def test_http_timeout_reported_as_timeout_outcome(
        self,
        engine: DefinitionSearchEngine,
        definition: SourceDefinition,
        instance: SourceInstance,
        fake_clock,
    ) -> None:
        respx.get(_SEARCH_URL).mock(side_effect=httpx.ConnectTimeout("no route"))
        registry = DefinitionRegistry(clock=fake_clock)
        registry.register(definition, "native")
        tracker = StatusTracker(clock=fake_clock)
        orchestrator = SearchOrchestrator(
            registry,
            engine,
            tracker,
            InstanceRateLimiter(clock=fake_clock),
            SearchSettings(),
            clock=fake_clock,
        )

        result = await orchestrator.search(SearchCriteria(query="x"), [instance])

        (outcome,) = result.diagnostics
        assert (outcome.status, outcome.reason) == ("failed", "timeout")
        assert tracker.get(instance.id).last_failure_reason == "timeout"
