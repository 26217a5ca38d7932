"""
Definition-driven search engine.

Executes a :class:`SourceDefinition` against a live source:

1. Log in (private/semi-private sources with a login rule), reusing a
   cached session per instance until it expires.
2. Build the requests for the search mode.
3. Send them through the injected ``httpx.AsyncClient``.
4. Parse rows/fields into releases and truncate to the requested limit.

All failures surface as :class:`SourceSearchError` subclasses; the engine
never retries on its own.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode, urljoin, urlparse

import httpx
import structlog
from bs4 import BeautifulSoup

from indexarr.domain.definitions import LoginRule, LoginTest, SourceDefinition
from indexarr.domain.entities import Release, SearchCriteria, SourceInstance
from indexarr.domain.errors import (
    AuthenticationError,
    SearchTimeoutError,
    SourceSearchError,
    UpstreamHttpError,
)
from indexarr.domain.ports import Clock

from .filters import FilterEngine
from .request_builder import RequestBuilder, SearchRequest, resolve_url
from .response_parser import ResponseParser
from .selectors import SelectorEngine, parse_document
from .template import TemplateEngine

log = structlog.get_logger(__name__)

DEFAULT_SESSION_TTL = 3600.0


@dataclass(frozen=True)
class _Session:
    cookies: dict[str, str]
    expires_at: float


def parse_cookie_string(raw: str) -> dict[str, str]:
    """``"uid=1; pass=abc"`` -> ``{"uid": "1", "pass": "abc"}``."""
    cookies: dict[str, str] = {}
    for part in raw.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name:
            cookies[name.strip()] = value.strip()
    return cookies


def _cookie_header(cookies: dict[str, str]) -> str:
    return "; ".join(f"{k}={v}" for k, v in cookies.items())


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


class DefinitionSearchEngine:
    """Implements ``SourceSearchEnginePort`` for declarative definitions.

    Args:
        http_client: Shared async client (owned by the caller).
        session_ttl: Seconds a login session is reused before logging in again.
        clock: Monotonic clock used for session expiry.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        session_ttl: float = DEFAULT_SESSION_TTL,
        clock: Clock = time.monotonic,
        templates: TemplateEngine | None = None,
        filters: FilterEngine | None = None,
    ) -> None:
        self._client = http_client
        self._session_ttl = session_ttl
        self._clock = clock
        self._templates = templates or TemplateEngine()
        self._filters = filters or FilterEngine(self._templates)
        self._selectors = SelectorEngine()
        self._builder = RequestBuilder(self._templates, self._filters)
        self._parser = ResponseParser(self._templates, self._filters, self._selectors)
        self._sessions: dict[str, _Session] = {}
        self._login_locks: dict[str, asyncio.Lock] = {}

    # ----- Public API -----

    async def search(
        self,
        definition: SourceDefinition,
        criteria: SearchCriteria,
        instance: SourceInstance,
    ) -> list[Release]:
        if definition.search is None:
            raise SourceSearchError(f"definition '{definition.id}' has no search rule")

        session_cookies = await self._ensure_session(definition, instance)
        variables = self._builder.search_variables(definition, criteria, instance)
        requests = self._builder.build(definition, criteria, instance, variables)

        releases: list[Release] = []
        for request in requests:
            body = await self._send_search(
                definition, instance, request, session_cookies
            )
            releases.extend(
                self._parser.parse(
                    definition, body, request.path, variables, instance.id
                )
            )

        if criteria.limit is not None:
            releases = releases[: criteria.limit]

        log.debug(
            "definition_search_done",
            definition=definition.id,
            instance=instance.id,
            requests=len(requests),
            results=len(releases),
        )
        return releases

    async def test(
        self, definition: SourceDefinition, instance: SourceInstance
    ) -> list[Release]:
        """Fresh login followed by a one-result search."""
        self.invalidate_session(instance.id)
        return await self.search(definition, SearchCriteria(limit=1), instance)

    def invalidate_session(self, instance_id: str) -> None:
        if self._sessions.pop(instance_id, None) is not None:
            log.debug("session_invalidated", instance=instance_id)

    def has_session(self, instance_id: str) -> bool:
        session = self._sessions.get(instance_id)
        return session is not None and session.expires_at > self._clock()

    # ----- Sessions -----

    async def _ensure_session(
        self, definition: SourceDefinition, instance: SourceInstance
    ) -> dict[str, str]:
        if not definition.requires_login or definition.login is None:
            return {}

        lock = self._login_locks.setdefault(instance.id, asyncio.Lock())
        async with lock:
            session = self._sessions.get(instance.id)
            if session is not None and session.expires_at > self._clock():
                return session.cookies

            cookies = await self._login(definition, definition.login, instance)
            self._sessions[instance.id] = _Session(
                cookies=cookies, expires_at=self._clock() + self._session_ttl
            )
            log.info(
                "login_succeeded",
                definition=definition.id,
                instance=instance.id,
                method=definition.login.method,
            )
            return cookies

    async def _login(
        self,
        definition: SourceDefinition,
        login: LoginRule,
        instance: SourceInstance,
    ) -> dict[str, str]:
        variables = self._builder.base_variables(definition, instance)
        base_url = variables["Config"]["sitelink"]

        if login.method == "cookie":
            raw = str(variables["Config"].get("cookie") or "")
            cookies = parse_cookie_string(raw)
            if not cookies:
                raise AuthenticationError("cookie login configured but no cookie set")
        else:
            inputs = {
                name: self._templates.expand(str(value), variables)
                for name, value in login.inputs.items()
            }
            url = resolve_url(base_url, self._templates.expand(login.path, variables))
            cookies = {}
            if login.method == "get":
                response = await self._request(
                    "GET", f"{url}?{urlencode(inputs)}" if inputs else url
                )
            elif login.method == "form":
                response, cookies = await self._submit_form(
                    login, url, inputs, base_url, variables
                )
            else:
                response = await self._request("POST", url, form=inputs)

            self._raise_for_login_status(response)
            for hop in (*response.history, response):
                cookies.update(dict(hop.cookies))

            if login.error_rules:
                document = parse_document(response.text)
                try:
                    self._parser.check_errors(document, login.error_rules)
                except UpstreamHttpError as e:
                    raise AuthenticationError(str(e)) from e

        if login.test is not None and login.test.path:
            await self._verify_login(login.test, cookies, base_url, variables)
        return cookies

    async def _submit_form(
        self,
        login: LoginRule,
        url: str,
        inputs: dict[str, str],
        base_url: str,
        variables: dict[str, Any],
    ) -> tuple[httpx.Response, dict[str, str]]:
        page = await self._request("GET", url)
        self._raise_for_login_status(page)
        soup = BeautifulSoup(page.text, "lxml")
        form = soup.select_one(login.form_selector or "form")
        if form is None:
            raise AuthenticationError(
                f"login form not found ({login.form_selector or 'form'})"
            )

        fields: dict[str, str] = {}
        for element in form.select("input[name]"):
            fields[str(element["name"])] = str(element.get("value") or "")
        fields.update(inputs)

        if login.submit_path:
            target = resolve_url(
                base_url, self._templates.expand(login.submit_path, variables)
            )
        else:
            target = urljoin(str(page.url), str(form.get("action") or ""))

        cookies = dict(page.cookies)
        response = await self._request("POST", target, form=fields, cookies=cookies)
        return response, cookies

    async def _verify_login(
        self,
        test: LoginTest,
        cookies: dict[str, str],
        base_url: str,
        variables: dict[str, Any],
    ) -> None:
        url = resolve_url(base_url, self._templates.expand(test.path or "", variables))
        response = await self._request("GET", url, cookies=cookies)
        self._raise_for_login_status(response)
        if test.selector:
            document = parse_document(response.text, "html")
            if self._selectors.matches(document, test.selector) is None:
                raise AuthenticationError("login test selector did not match")

    @staticmethod
    def _raise_for_login_status(response: httpx.Response) -> None:
        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"login rejected with HTTP {response.status_code}"
            )
        if not response.is_success:
            raise UpstreamHttpError(
                f"login page returned HTTP {response.status_code}",
                status=response.status_code,
            )

    # ----- Search requests -----

    async def _send_search(
        self,
        definition: SourceDefinition,
        instance: SourceInstance,
        request: SearchRequest,
        session_cookies: dict[str, str],
    ) -> str:
        headers = dict(request.headers)
        cookies = dict(session_cookies)
        url = request.url
        auth: httpx.Auth | None = None

        rule = definition.auth
        settings = {s.name: s.default for s in definition.settings}
        settings.update(instance.settings)
        if rule.method == "apikey":
            setting = rule.params.get("setting", "apikey")
            key = settings.get(setting)
            if not key:
                raise AuthenticationError(f"missing API key setting '{setting}'")
            if "header" in rule.params:
                headers[rule.params["header"]] = str(key)
            else:
                param = rule.params.get("param", "apikey")
                url += ("&" if "?" in url else "?") + urlencode({param: str(key)})
        elif rule.method == "basic":
            user = settings.get(rule.params.get("username", "username"))
            password = settings.get(rule.params.get("password", "password"))
            if not user:
                raise AuthenticationError("missing basic auth username")
            auth = httpx.BasicAuth(str(user), str(password or ""))
        elif rule.method == "cookie":
            raw = settings.get(rule.params.get("setting", "cookie"))
            if not raw:
                raise AuthenticationError("missing cookie setting")
            cookies.update(parse_cookie_string(str(raw)))

        response = await self._request(
            request.method,
            url,
            headers=headers,
            form=dict(request.form) if request.method == "POST" else None,
            cookies=cookies,
            auth=auth,
        )

        if response.status_code in (401, 403):
            self.invalidate_session(instance.id)
            raise AuthenticationError(
                f"HTTP {response.status_code} from {definition.id}"
            )
        if response.status_code == 429:
            raise UpstreamHttpError(
                f"HTTP 429 from {definition.id}",
                status=429,
                retry_after=_retry_after(response),
            )
        if not response.is_success:
            raise UpstreamHttpError(
                f"HTTP {response.status_code} from {definition.id}",
                status=response.status_code,
            )
        if self._redirected_to_login(definition, response):
            self.invalidate_session(instance.id)
            raise AuthenticationError("session expired (redirected to login page)")

        return self._decode(definition, response)

    @staticmethod
    def _redirected_to_login(
        definition: SourceDefinition, response: httpx.Response
    ) -> bool:
        if not definition.requires_login or definition.login is None:
            return False
        if not response.history or not definition.login.path:
            return False
        login_path = urlparse(definition.login.path).path.rstrip("/")
        return bool(login_path) and response.url.path.rstrip("/").endswith(login_path)

    @staticmethod
    def _decode(definition: SourceDefinition, response: httpx.Response) -> str:
        encoding = (definition.encoding or "").lower()
        if encoding and encoding not in ("utf-8", "utf8"):
            try:
                return response.content.decode(encoding, errors="replace")
            except LookupError:
                log.warning(
                    "unknown_encoding", definition=definition.id, encoding=encoding
                )
        return response.text

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        form: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
        auth: httpx.Auth | None = None,
    ) -> httpx.Response:
        headers = dict(headers or {})
        if cookies:
            headers["Cookie"] = _cookie_header(cookies)

        kwargs: dict[str, Any] = {"headers": headers}
        if form is not None:
            kwargs["data"] = form
        if auth is not None:
            kwargs["auth"] = auth

        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            log.debug("http_timeout", url=url, error=str(e))
            raise SearchTimeoutError(f"request timed out: {e}") from e
        except httpx.TransportError as e:
            log.debug("http_transport_error", url=url, error=str(e))
            raise UpstreamHttpError(f"transport error: {e}", status=None) from e
