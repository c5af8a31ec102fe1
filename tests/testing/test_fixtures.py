"""Tests for asgi_test.testing fixtures and context managers."""

import pytest
import structlog
from fastapi import FastAPI

from asgi_test import TestServer, Transport
from asgi_test.testing import open_test_server
from asgi_test.testing.fixtures import TestServerFactory


class TestServerFactoryFixture:
    """Tests for the test_server_factory fixture."""

    def test_factory_returns_test_server(
        self, app: FastAPI, test_server_factory: TestServerFactory
    ) -> None:
        server = test_server_factory(app, save_cookies=True)

        assert isinstance(server, TestServer)
        assert server.request_config("GET", "/").save_cookies is True

    @pytest.mark.asyncio
    async def test_factory_server_serves_requests(
        self, app: FastAPI, test_server_factory: TestServerFactory
    ) -> None:
        server = test_server_factory(app, transport=Transport.http_random_port())
        (await server.get("/ping")).assert_status_ok()

    def test_factory_tags_events_with_test_id(
        self, request: pytest.FixtureRequest, test_server_factory: TestServerFactory
    ) -> None:
        assert structlog.contextvars.get_contextvars()["test_id"] == request.node.nodeid


class TestOpenTestServer:
    """Tests for the open_test_server() context manager."""

    def test_closes_on_exit(self, app: FastAPI) -> None:
        with open_test_server(app, transport=Transport.http_random_port()) as server:
            assert server.is_running()

        assert not server.is_running()

    def test_closes_on_error(self, app: FastAPI) -> None:
        with pytest.raises(ValueError, match="inside"):
            with open_test_server(app, transport=Transport.http_random_port()) as server:
                raise ValueError("inside")

        assert not server.is_running()

    @pytest.mark.asyncio
    async def test_mock_server(self, app: FastAPI) -> None:
        with open_test_server(app) as server:
            (await server.get("/ping")).assert_text("pong!")
