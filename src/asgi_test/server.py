"""TestServer: runs an ASGI app and builds requests against it.

A TestServer owns one transport layer (mock or bound socket) and one
ServerSharedState. Every request it creates starts from a snapshot of the
server's defaults: cookies, headers, query params, content type, cookie
saving and status expectation.

Example:
    >>> from fastapi import FastAPI
    >>> from asgi_test import TestServer
    >>>
    >>> app = FastAPI()
    >>>
    >>> @app.get("/ping")
    ... async def ping() -> str:
    ...     return "pong!"
    >>>
    >>> server = TestServer(app)
    >>> response = await server.get("/ping")
    >>> response.assert_json("pong!")
"""

from __future__ import annotations

import copy
from typing import Any, Iterable
from urllib.parse import urlsplit

import httpx
from pydantic import ValidationError

from asgi_test.config import TestServerConfig
from asgi_test.cookies import Cookie, CookieJar
from asgi_test.errors import SetupError
from asgi_test.observability import get_logger
from asgi_test.request import ExpectedState, TestRequest, TestRequestConfig
from asgi_test.state import ServerSharedState
from asgi_test.transport.base import TransportLayer
from asgi_test.transport.builder import build_transport_layer

logger = get_logger(__name__)

# Base URL used when the transport has no real address (mock transport)
DEFAULT_URL_ADDRESS = "http://localhost"


def _is_absolute_url(path: str) -> bool:
    parts = urlsplit(path)
    return bool(parts.scheme and parts.netloc)


def build_url(base_url: httpx.URL, path: str, is_http_restricted: bool) -> httpx.URL:
    """Resolve the URL a request for ``path`` is sent to.

    Absolute URLs are used verbatim, unless requests are restricted to the
    server's own address: then the whole string (scheme and all) becomes the
    path on the base URL, which the app will not route.

    Example:
        >>> str(build_url(httpx.URL("http://localhost"), "ping", False))
        'http://localhost/ping'
        >>> str(build_url(httpx.URL("http://a:1/"), "http://a:1/ping", True))
        'http://a:1/http://a:1/ping'
    """
    if is_http_restricted:
        return base_url.copy_with(path=path if path.startswith("/") else f"/{path}")

    if _is_absolute_url(path):
        return httpx.URL(path)

    raw_path, sep, query = path.partition("?")
    if not raw_path.startswith("/"):
        raw_path = f"/{raw_path}"
    url = base_url.copy_with(path=raw_path)
    if sep:
        # Parsing the full string lets httpx percent-encode non-ASCII query text.
        return httpx.URL(f"{url}?{query}")
    return url


class TestServer:
    """Run an ASGI app for testing and make requests against it.

    Copies of a TestServer (``copy.copy(server)``) share the transport and the
    cookie/header/query state; cookie saving, expectations and content type
    settings are per handle. The transport is shut down when the last handle
    is garbage collected, or earlier through close() or a ``with`` block.

    Args:
        app: ASGI application under test
        config: Server settings; when omitted, keyword options build one
        **options: TestServerConfig fields, used when config is None

    Raises:
        SetupError: If the configuration is invalid or the server cannot start.
    """

    __test__ = False

    def __init__(self, app: Any, config: TestServerConfig | None = None, **options: Any) -> None:
        if config is None:
            try:
                config = TestServerConfig(**options)
            except ValidationError as e:
                raise SetupError(
                    "invalid_config",
                    f"Invalid TestServer configuration: {e}",
                    details={"errors": e.errors(include_url=False, include_context=False)},
                ) from e
        elif options:
            raise SetupError(
                "invalid_config",
                "Pass either a TestServerConfig or keyword options, not both",
                details={"options": sorted(options)},
            )

        self._state = ServerSharedState()
        self._transport: TransportLayer = build_transport_layer(
            app, config.transport, config.startup_timeout
        )
        self._save_cookies = config.save_cookies
        self._expected_state = (
            ExpectedState.SUCCESS if config.expect_success_by_default else ExpectedState.NONE
        )
        self._default_content_type = config.default_content_type
        self._is_http_path_restricted = config.restrict_requests_with_http_schema

        logger.debug(
            "asgi_test.server.created",
            transport=self._transport.kind,
            base_url=str(self._transport.url()) if self._transport.url() else None,
        )

    # Requests

    def get(self, path: str) -> TestRequest:
        """Create a GET request to the path."""
        return self.method("GET", path)

    def post(self, path: str) -> TestRequest:
        """Create a POST request to the path."""
        return self.method("POST", path)

    def patch(self, path: str) -> TestRequest:
        """Create a PATCH request to the path."""
        return self.method("PATCH", path)

    def put(self, path: str) -> TestRequest:
        """Create a PUT request to the path."""
        return self.method("PUT", path)

    def delete(self, path: str) -> TestRequest:
        """Create a DELETE request to the path."""
        return self.method("DELETE", path)

    def method(self, method: str, path: str) -> TestRequest:
        """Create a request with any HTTP method."""
        config = self.request_config(method.upper(), path)
        return TestRequest(self._state, self._transport, config)

    def request_config(self, method: str, path: str) -> TestRequestConfig:
        """Snapshot this handle's settings for a new request."""
        base_url = self._transport.url() or httpx.URL(DEFAULT_URL_ADDRESS)
        return TestRequestConfig(
            save_cookies=self._save_cookies,
            expected_state=self._expected_state,
            content_type=self._default_content_type,
            full_request_url=str(build_url(base_url, path, self._is_http_path_restricted)),
            method=method,
            path=path,
        )

    def server_address(self) -> httpx.URL | None:
        """Return the server's base URL, or None for the mock transport."""
        return self._transport.url()

    def is_running(self) -> bool:
        return self._transport.is_running()

    # Cookies

    def add_cookie(self, cookie: Cookie) -> None:
        """Send this cookie on all future requests, replacing one with the same name."""
        self._state.add_cookie(cookie)

    def add_cookies(self, cookies: Iterable[Cookie]) -> None:
        self._state.add_cookies(cookies)

    def clear_cookies(self) -> None:
        self._state.clear_cookies()

    def cookies(self) -> CookieJar:
        """Return a copy of the shared cookie jar."""
        return self._state.cookies()

    def do_save_cookies(self) -> None:
        """Save response cookies for future requests (off by default)."""
        self._save_cookies = True

    def do_not_save_cookies(self) -> None:
        self._save_cookies = False

    # Expectations

    def expect_success(self) -> None:
        """Fail any request from this handle that does not return 2xx, unless overridden."""
        self._expected_state = ExpectedState.SUCCESS

    def expect_failure(self) -> None:
        """Fail any request from this handle that returns 2xx, unless overridden."""
        self._expected_state = ExpectedState.FAILURE

    def clear_expectation(self) -> None:
        self._expected_state = ExpectedState.NONE

    # Headers and query params

    def add_header(self, name: str, value: str) -> None:
        """Send this header on all future requests. Repeated names are kept."""
        self._state.add_header(name, value)

    def clear_headers(self) -> None:
        self._state.clear_headers()

    def add_query_param(self, key: str, value: Any) -> None:
        """Send this query param on all future requests. Repeated keys are kept."""
        self._state.add_query_param(key, value)

    def add_query_params(self, source: Any) -> None:
        """Send query params from pairs, a mapping or a model on all future requests."""
        self._state.add_query_params(source)

    def clear_query_params(self) -> None:
        self._state.clear_query_params()

    # Lifecycle

    def close(self) -> None:
        """Shut down the transport for every handle sharing it."""
        self._transport.close()

    def __copy__(self) -> TestServer:
        clone = object.__new__(TestServer)
        clone.__dict__.update(self.__dict__)
        return clone

    def clone(self) -> TestServer:
        """Return a new handle sharing this server's transport and state."""
        return copy.copy(self)

    def __enter__(self) -> TestServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def __aenter__(self) -> TestServer:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"TestServer(transport={self._transport!r}, state={self._state!r})"
