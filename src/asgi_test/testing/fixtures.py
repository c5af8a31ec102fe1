"""Pytest fixtures and context managers for tests using asgi-test.

Load the fixtures from a conftest.py:

    pytest_plugins = ["asgi_test.testing.fixtures"]

Fixtures:
    test_server_factory: Builds TestServers and closes them at test teardown.
        Harness events logged during the test carry a ``test_id`` field.

Context managers:
    open_test_server(): Sync context manager yielding a TestServer for the scope.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator

import pytest

from asgi_test.config import TestServerConfig
from asgi_test.observability import bind_context, unbind_context
from asgi_test.server import TestServer

TestServerFactory = Callable[..., TestServer]


@pytest.fixture
def test_server_factory(request: pytest.FixtureRequest) -> Iterator[TestServerFactory]:
    """Provide a factory creating TestServers that are closed after the test.

    The factory takes the same arguments as TestServer.

    Yields:
        Callable building a TestServer.

    Example:
        >>> async def test_ping(test_server_factory):
        ...     server = test_server_factory(app, transport=Transport.http_random_port())
        ...     (await server.get("/ping")).assert_status_ok()
    """
    servers: list[TestServer] = []

    def factory(app: Any, config: TestServerConfig | None = None, **options: Any) -> TestServer:
        server = TestServer(app, config, **options)
        servers.append(server)
        return server

    bind_context(test_id=request.node.nodeid)
    try:
        yield factory
    finally:
        for server in servers:
            server.close()
        unbind_context("test_id")


@contextmanager
def open_test_server(
    app: Any,
    config: TestServerConfig | None = None,
    **options: Any,
) -> Iterator[TestServer]:
    """Context manager that runs a TestServer for the scope.

    Args:
        app: ASGI application under test
        config: Server settings
        **options: TestServerConfig fields, used when config is None

    Yields:
        A TestServer, closed on exit.

    Example:
        >>> with open_test_server(app, transport=Transport.http_random_port()) as server:
        ...     response = await server.get("/ping")
    """
    server = TestServer(app, config, **options)
    try:
        yield server
    finally:
        server.close()


__all__ = [
    "TestServerFactory",
    "open_test_server",
    "test_server_factory",
]
