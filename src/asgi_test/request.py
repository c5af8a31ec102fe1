"""TestRequest: a single-use request builder that is dispatched by awaiting it.

A TestRequest is created by a TestServer (``server.get("/path")``). It starts
in the *building* state, where every builder call mutates it and returns it
for chaining. Awaiting it dispatches the request exactly once and moves it to
the terminal *dispatched* state; any further builder call or second await
raises RequestConsumedError.

Dispatch merges, in order:
    1. query params: those already in the URL, then server defaults, then request ones
    2. headers: server defaults, then request ones (duplicates kept)
    3. content type: request override > body inference > server default
    4. cookies: server jar overlaid with request cookies, sent as one Cookie header

Example:
    >>> response = await (
    ...     server.post("/users")
    ...     .json({"name": "Terrance Pencilworth"})
    ...     .add_header("x-request-id", "abc")
    ...     .expect_success()
    ... )
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generator, Iterable
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict

from asgi_test.cookies import COOKIE_HEADER, SET_COOKIE_HEADER, Cookie, CookieJar
from asgi_test.errors import ConstructionError, RequestConsumedError, ResponseAssertionError
from asgi_test.observability import get_logger, sanitize_for_logging
from asgi_test.response import TestResponse
from asgi_test.state import ServerSharedState
from asgi_test.transport.base import TransportLayer
from asgi_test.utils.headers import validate_header
from asgi_test.utils.query import QueryPairs, expand_query_params, expand_query_value

logger = get_logger(__name__)

CONTENT_TYPE_HEADER = "content-type"
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_TEXT = "text/plain"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"


class ExpectedState(str, Enum):
    """Status expectation checked after a request completes."""

    NONE = "none"
    SUCCESS = "success"
    FAILURE = "failure"


class TestRequestConfig(BaseModel):
    """Server settings snapshotted when a TestRequest is created.

    Attributes:
        save_cookies: Whether response cookies go into the server's jar
        expected_state: Server-level status expectation
        content_type: Server-level default content type
        full_request_url: Resolved URL (base URL + path, or an absolute URL)
        method: HTTP method
        path: Path as given by the caller, used in diagnostics
    """

    __test__ = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    save_cookies: bool = False
    expected_state: ExpectedState = ExpectedState.NONE
    content_type: str | None = None
    full_request_url: str
    method: str
    path: str


@dataclass(frozen=True)
class RequestBody:
    """Encoded request body and the content type inferred from how it was set."""

    content: bytes
    content_type: str | None = None


class TestRequest:
    """Builder for one request against a TestServer; await it to send it.

    Args:
        state: Shared state of the TestServer that created the request
        transport: Transport layer used to deliver the request
        config: Snapshot of the server's settings for this request
    """

    __test__ = False

    def __init__(
        self,
        state: ServerSharedState,
        transport: TransportLayer,
        config: TestRequestConfig,
    ) -> None:
        self._state = state
        self._transport = transport
        self._config = config

        snapshot = state.snapshot()
        self._cookies: CookieJar = snapshot.cookies
        self._server_headers: list[tuple[str, str]] = snapshot.headers
        self._server_query_params: QueryPairs = snapshot.query_params

        self._headers: list[tuple[str, str]] = []
        self._query_params: QueryPairs = []
        self._body: RequestBody | None = None
        self._content_type: str | None = None
        self._save_cookies: bool | None = None
        self._expected_state: ExpectedState | None = None
        self._dispatched = False

    @property
    def config(self) -> TestRequestConfig:
        return self._config

    @property
    def method(self) -> str:
        return self._config.method

    @property
    def path(self) -> str:
        return self._config.path

    @property
    def is_dispatched(self) -> bool:
        return self._dispatched

    def _ensure_building(self) -> None:
        if self._dispatched:
            raise RequestConsumedError(self._config.method, self._config.path)

    # Body

    def bytes(self, data: bytes | bytearray | memoryview) -> TestRequest:
        """Send raw bytes as the body. No content type is inferred."""
        self._ensure_building()
        self._body = RequestBody(content=bytes(data))
        return self

    def text(self, text: str) -> TestRequest:
        """Send UTF-8 text as the body, inferring ``text/plain``."""
        self._ensure_building()
        if not isinstance(text, str):
            raise ConstructionError(
                f"text() expects a str, got {type(text).__name__}",
                details={"method": self.method, "path": self.path},
            )
        self._body = RequestBody(content=text.encode("utf-8"), content_type=CONTENT_TYPE_TEXT)
        return self

    def json(self, value: Any) -> TestRequest:
        """Send a JSON-serialized value as the body, inferring ``application/json``.

        Pydantic models are serialized with model_dump_json().

        Raises:
            ConstructionError: If the value cannot be serialized to JSON.
        """
        self._ensure_building()
        try:
            if isinstance(value, BaseModel):
                encoded = value.model_dump_json()
            else:
                encoded = json.dumps(value, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ConstructionError(
                f"Cannot serialize JSON body for {self.method} {self.path}: {e}",
                details={"method": self.method, "path": self.path, "value_type": type(value).__name__},
            ) from e
        self._body = RequestBody(content=encoded.encode("utf-8"), content_type=CONTENT_TYPE_JSON)
        return self

    def form(self, source: Any) -> TestRequest:
        """Send form-urlencoded pairs as the body.

        Accepts the same sources as add_query_params(): pairs, a mapping,
        a pydantic model or a dataclass instance.

        Raises:
            ConstructionError: If the source cannot be expanded into pairs.
        """
        self._ensure_building()
        pairs = expand_query_params(source)
        self._body = RequestBody(content=urlencode(pairs).encode("ascii"), content_type=CONTENT_TYPE_FORM)
        return self

    def content_type(self, content_type: str) -> TestRequest:
        """Set the content type, overriding inference and the server default."""
        self._ensure_building()
        _, value = validate_header(CONTENT_TYPE_HEADER, content_type)
        self._content_type = value
        return self

    # Headers and query params

    def add_header(self, name: str, value: str) -> TestRequest:
        """Add a header to this request only. Server headers are kept.

        Raises:
            ConstructionError: If the header name or value is invalid.
        """
        self._ensure_building()
        self._headers.append(validate_header(name, value))
        return self

    def add_query_param(self, key: str, value: Any) -> TestRequest:
        """Add a query parameter to this request only. Duplicates are kept."""
        self._ensure_building()
        self._query_params.extend(expand_query_value(key, value))
        return self

    def add_query_params(self, source: Any) -> TestRequest:
        """Add query parameters from pairs, a mapping or a model to this request only."""
        self._ensure_building()
        self._query_params.extend(expand_query_params(source))
        return self

    # Cookies

    def add_cookie(self, cookie: Cookie) -> TestRequest:
        """Send a cookie with this request only, replacing a server cookie of the same name."""
        self._ensure_building()
        self._cookies.add(cookie)
        return self

    def add_cookies(self, cookies: Iterable[Cookie]) -> TestRequest:
        self._ensure_building()
        self._cookies.update(cookies)
        return self

    def clear_cookies(self) -> TestRequest:
        """Send no cookies with this request. The server's jar is not touched."""
        self._ensure_building()
        self._cookies.clear()
        return self

    def do_save_cookies(self) -> TestRequest:
        """Save cookies from this response into the server's jar."""
        self._ensure_building()
        self._save_cookies = True
        return self

    def do_not_save_cookies(self) -> TestRequest:
        self._ensure_building()
        self._save_cookies = False
        return self

    # Expectations

    def expect_success(self) -> TestRequest:
        """Fail unless the response status is 2xx."""
        self._ensure_building()
        self._expected_state = ExpectedState.SUCCESS
        return self

    def expect_failure(self) -> TestRequest:
        """Fail if the response status is 2xx."""
        self._ensure_building()
        self._expected_state = ExpectedState.FAILURE
        return self

    def expect_none(self) -> TestRequest:
        """Do not check the status, even if the server expects success or failure."""
        self._ensure_building()
        self._expected_state = ExpectedState.NONE
        return self

    clear_expectation = expect_none

    # Dispatch

    def _resolve_url(self) -> httpx.URL:
        url = httpx.URL(self._config.full_request_url)
        extra = self._server_query_params + self._query_params
        if not extra:
            return url
        return url.copy_with(params=list(url.params.multi_items()) + extra)

    def _resolve_content_type(self, headers: list[tuple[str, str]]) -> str | None:
        if self._content_type is not None:
            return self._content_type
        if self._body is not None and self._body.content_type is not None:
            return self._body.content_type
        if any(name == CONTENT_TYPE_HEADER for name, _ in headers):
            return None
        return self._config.content_type

    def _build_headers(self) -> list[tuple[str, str]]:
        headers = self._server_headers + self._headers
        content_type = self._resolve_content_type(headers)
        if content_type is not None:
            headers = [(n, v) for n, v in headers if n != CONTENT_TYPE_HEADER]
            headers.append((CONTENT_TYPE_HEADER, content_type))

        cookie_header = self._cookies.to_header()
        if cookie_header is not None:
            headers.append((COOKIE_HEADER, cookie_header))
        return headers

    def _build_httpx_request(self) -> httpx.Request:
        return httpx.Request(
            self._config.method,
            self._resolve_url(),
            headers=self._build_headers(),
            content=self._body.content if self._body is not None else None,
        )

    def _check_expectation(self, response: TestResponse) -> None:
        expected = self._expected_state if self._expected_state is not None else self._config.expected_state
        if expected == ExpectedState.SUCCESS and not response.is_success():
            raise ResponseAssertionError(
                "Expected request to succeed",
                expected="2xx",
                actual=response.status_code,
                method=self.method,
                path=self.path,
            )
        if expected == ExpectedState.FAILURE and response.is_success():
            raise ResponseAssertionError(
                "Expected request to fail",
                expected="not 2xx",
                actual=response.status_code,
                method=self.method,
                path=self.path,
            )

    async def send(self) -> TestResponse:
        """Dispatch the request and return its response. Consumes the builder.

        Raises:
            RequestConsumedError: If the request was already dispatched.
            TransportError: If the request could not be delivered.
            ResponseAssertionError: If the status expectation is not met.
        """
        self._ensure_building()
        self._dispatched = True

        request = self._build_httpx_request()
        logger.debug(
            "asgi_test.request.dispatch",
            method=request.method,
            url=str(request.url),
            transport=self._transport.kind,
            headers=sanitize_for_logging(dict(request.headers)),
        )

        raw_response = await self._transport.send(request)

        save_cookies = self._save_cookies if self._save_cookies is not None else self._config.save_cookies
        if save_cookies:
            received = CookieJar.from_set_cookie_headers(raw_response.headers.get_list(SET_COOKIE_HEADER))
            if received:
                self._state.add_cookies(received)
                logger.debug(
                    "asgi_test.cookies.saved",
                    method=self.method,
                    path=self.path,
                    cookie_names=received.names(),
                )

        response = TestResponse.from_httpx(raw_response, self.method, self.path)
        logger.debug(
            "asgi_test.request.completed",
            method=self.method,
            url=response.request_url,
            status_code=response.status_code,
        )

        self._check_expectation(response)
        return response

    def __await__(self) -> Generator[Any, None, TestResponse]:
        return self.send().__await__()

    def __repr__(self) -> str:
        state = "dispatched" if self._dispatched else "building"
        return f"TestRequest({self.method} {self._config.full_request_url}, {state})"
