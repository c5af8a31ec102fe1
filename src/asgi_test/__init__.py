"""asgi-test: spin up ASGI apps inside tests and make requests against them.

- Run an app in-process (default) or on a real socket, behind one API.
- Build requests with chaining helpers for bodies, headers, query params and cookies.
- Keep server-wide defaults: cookies (optionally saved from responses),
  headers, query params, content type and status expectations.
- Assert on responses with helpers that report the request that failed.

Example:
    >>> from asgi_test import TestServer, TestServerConfig, Transport
    >>>
    >>> server = TestServer(app, TestServerConfig(save_cookies=True))
    >>> await server.post("/login").json({"user": "alice"}).expect_success()
    >>> response = await server.get("/me")
    >>> response.assert_json({"user": "alice"})
"""

from asgi_test.config import TestServerConfig, Transport, TransportKind
from asgi_test.cookies import Cookie, CookieJar
from asgi_test.errors import (
    ASGITestError,
    ConstructionError,
    RequestConsumedError,
    ResponseAssertionError,
    SetupError,
    TransportError,
)
from asgi_test.request import ExpectedState, TestRequest, TestRequestConfig
from asgi_test.response import TestResponse
from asgi_test.server import TestServer
from asgi_test.state import ServerSharedState

__version__ = "0.1.0"

__all__ = [
    "ASGITestError",
    "ConstructionError",
    "Cookie",
    "CookieJar",
    "ExpectedState",
    "RequestConsumedError",
    "ResponseAssertionError",
    "ServerSharedState",
    "SetupError",
    "TestRequest",
    "TestRequestConfig",
    "TestResponse",
    "TestServer",
    "TestServerConfig",
    "Transport",
    "TransportError",
    "TransportKind",
]
