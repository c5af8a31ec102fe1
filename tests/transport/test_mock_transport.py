"""Tests for the in-process mock transport."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterator

import httpx
import pytest
from fastapi import FastAPI, Request

from asgi_test import TestServer, Transport
from asgi_test.errors import SetupError, TransportError
from asgi_test.testing.fixtures import TestServerFactory
from asgi_test.transport import MockTransportLayer


@pytest.fixture
def mock_transport(app: FastAPI) -> Iterator[MockTransportLayer]:
    transport = MockTransportLayer(app, startup_timeout=5.0)
    try:
        yield transport
    finally:
        transport.close()


def create_lifespan_app(events: list[str]) -> FastAPI:
    """App whose routes only work once its lifespan startup has run."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[dict[str, str]]:
        events.append("startup")
        app.state.db = "connected"
        yield {"pool": "ready"}
        events.append("shutdown")

    app = FastAPI(lifespan=lifespan)

    @app.get("/db")
    async def db(request: Request) -> dict[str, str]:
        return {"db": request.app.state.db, "pool": request.state.pool}

    return app


class TestMockTransportLayer:
    """Tests for MockTransportLayer."""

    def test_has_no_url(self, mock_transport: MockTransportLayer) -> None:
        assert mock_transport.url() is None
        assert mock_transport.kind == "mock_http"
        assert mock_transport.is_running()

    @pytest.mark.asyncio
    async def test_send_returns_read_response(self, mock_transport: MockTransportLayer) -> None:
        """The response body is fully read and linked to its request."""
        request = httpx.Request("GET", "http://localhost/ping")

        response = await mock_transport.send(request)

        assert response.status_code == 200
        assert response.content == b"pong!"
        assert response.request is request

    @pytest.mark.asyncio
    async def test_send_after_close_raises(self, mock_transport: MockTransportLayer) -> None:
        mock_transport.close()

        assert not mock_transport.is_running()
        with pytest.raises(TransportError) as exc_info:
            await mock_transport.send(httpx.Request("GET", "http://localhost/ping"))

        assert exc_info.value.details["reason"] == "transport closed"
        assert exc_info.value.path == "/ping"

    @pytest.mark.asyncio
    async def test_app_exception_becomes_500(self, mock_transport: MockTransportLayer) -> None:
        response = await mock_transport.send(httpx.Request("GET", "http://localhost/boom"))

        assert response.status_code == 500


class TestLifespan:
    """Tests for running the app's lifespan around the server's lifetime."""

    @pytest.mark.asyncio
    async def test_startup_runs_before_first_request(self, transport: Transport | None) -> None:
        """Both transports run startup, so lifespan-backed routes answer 200."""
        events: list[str] = []

        with TestServer(create_lifespan_app(events), transport=transport) as server:
            assert events == ["startup"]
            response = await server.get("/db")

        response.assert_json({"db": "connected", "pool": "ready"})

    def test_close_runs_shutdown(self, transport: Transport | None) -> None:
        events: list[str] = []
        server = TestServer(create_lifespan_app(events), transport=transport)

        server.close()

        assert events == ["startup", "shutdown"]
        assert not server.is_running()

    def test_failed_startup_raises_setup_error(self) -> None:
        @asynccontextmanager
        async def lifespan(_: FastAPI) -> AsyncIterator[None]:
            raise RuntimeError("database unavailable")
            yield

        broken = FastAPI(lifespan=lifespan)

        with pytest.raises(SetupError) as exc_info:
            TestServer(broken)

        assert exc_info.value.reason == "server_start_failed"
        assert exc_info.value.details["transport"] == "mock_http"

    def test_slow_startup_raises_timeout(self) -> None:
        @asynccontextmanager
        async def lifespan(_: FastAPI) -> AsyncIterator[None]:
            await asyncio.sleep(0.5)
            yield

        slow = FastAPI(lifespan=lifespan)

        with pytest.raises(SetupError) as exc_info:
            TestServer(slow, startup_timeout=0.05)

        assert exc_info.value.reason == "server_start_timeout"

    @pytest.mark.asyncio
    async def test_app_without_lifespan_support(self) -> None:
        """A bare ASGI app that rejects lifespan scopes still serves requests."""

        async def bare_app(scope: dict, receive: object, send: object) -> None:
            if scope["type"] != "http":
                raise RuntimeError("lifespan not supported")
            await send({"type": "http.response.start", "status": 204, "headers": []})  # type: ignore[operator]
            await send({"type": "http.response.body", "body": b""})  # type: ignore[operator]

        with TestServer(bare_app) as server:
            response = await server.get("/")

        response.assert_status(204)


class TestMockConcurrency:
    """Tests for serialized dispatch through the mock transport."""

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_serialized(
        self, app: FastAPI, test_server_factory: TestServerFactory
    ) -> None:
        """Two overlapping awaits never run inside the app at the same time."""
        server = test_server_factory(app)

        first, second = await asyncio.gather(server.get("/slow/first"), server.get("/slow/second"))

        first.assert_json("first")
        second.assert_json("second")
        assert app.state.in_flight.peak == 1
        assert app.state.in_flight.order == ["first", "second"]


class TestEventLoopReuse:
    """Tests for awaiting one server from several event loops."""

    def test_server_survives_separate_event_loops(
        self, app: FastAPI, transport: Transport | None
    ) -> None:
        """Each asyncio.run() uses a fresh loop; the same server serves both."""

        async def fetch_pair(suffix: str) -> list[str]:
            responses = await asyncio.gather(
                server.get(f"/slow/a{suffix}"), server.get(f"/slow/b{suffix}")
            )
            return [response.json() for response in responses]

        with TestServer(app, transport=transport) as server:
            assert asyncio.run(fetch_pair("1")) == ["a1", "b1"]
            assert asyncio.run(fetch_pair("2")) == ["a2", "b2"]
