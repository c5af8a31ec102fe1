"""Shared pytest fixtures for asgi-test tests.

The ``app`` fixture is a small FastAPI application whose routes echo back
what they received (headers, query params, cookies, content type, body), so
tests can observe exactly what the harness sent.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field

import pytest
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from asgi_test import Transport

# Load asgi_test.testing fixtures (test_server_factory)
pytest_plugins = ["asgi_test.testing.fixtures"]

TEST_COOKIE_NAME = "test-cookie"
COOKIE_NOT_FOUND = "cookie-not-found"
SLOW_ROUTE_DELAY = 0.1


@dataclass
class InFlightCounter:
    """Tracks how many requests to /slow overlap."""

    current: int = 0
    peak: int = 0
    order: list[str] = field(default_factory=list)


def create_app() -> FastAPI:
    """Build the FastAPI application used as the system under test."""
    app = FastAPI()
    app.state.in_flight = InFlightCounter()

    @app.get("/ping")
    async def ping() -> Response:
        return PlainTextResponse("pong!")

    @app.get("/content_type")
    async def content_type(request: Request) -> Response:
        return PlainTextResponse(request.headers.get("content-type", ""))

    @app.get("/cookie")
    async def get_cookie(request: Request) -> Response:
        return PlainTextResponse(request.cookies.get(TEST_COOKIE_NAME, COOKIE_NOT_FOUND))

    @app.put("/cookie")
    async def put_cookie(request: Request) -> Response:
        body = (await request.body()).decode("utf-8", errors="replace")
        response = PlainTextResponse("done")
        response.set_cookie(TEST_COOKIE_NAME, body)
        return response

    @app.get("/cookies")
    async def get_cookies(request: Request) -> Response:
        pairs = sorted(f"{name}={value}" for name, value in request.cookies.items())
        return PlainTextResponse(", ".join(pairs))

    @app.get("/set-cookies")
    async def set_cookies() -> Response:
        response = PlainTextResponse("set")
        response.set_cookie("session", "abc123", path="/", httponly=True, max_age=60)
        response.set_cookie("theme", "dark")
        return response

    @app.get("/headers")
    async def headers(request: Request) -> Response:
        raw = [[name.decode("latin-1"), value.decode("latin-1")] for name, value in request.headers.raw]
        return JSONResponse(raw)

    @app.get("/query")
    async def query(request: Request) -> Response:
        return JSONResponse([list(pair) for pair in request.query_params.multi_items()])

    @app.api_route("/echo", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    async def echo(request: Request) -> Response:
        body = await request.body()
        return JSONResponse(
            {
                "method": request.method,
                "path": request.url.path,
                "content_type": request.headers.get("content-type"),
                "body": body.decode("utf-8", errors="replace"),
            }
        )

    @app.get("/status/{code}")
    async def status(code: int) -> Response:
        return Response(status_code=code)

    @app.get("/user")
    async def user() -> Response:
        return JSONResponse({"name": "Alice", "age": 30})

    @app.get("/form")
    async def form() -> Response:
        return Response(
            content="name=Alice&tags=a&tags=b",
            media_type="application/x-www-form-urlencoded",
        )

    @app.get("/binary")
    async def binary() -> Response:
        return Response(content=b"\xff\xfe\xfd", media_type="application/octet-stream")

    @app.get("/not-json")
    async def not_json() -> Response:
        return PlainTextResponse("{not json")

    @app.get("/boom")
    async def boom() -> Response:
        raise RuntimeError("boom")

    @app.get("/slow/{name}")
    async def slow(name: str) -> Response:
        counter: InFlightCounter = app.state.in_flight
        counter.current += 1
        counter.peak = max(counter.peak, counter.current)
        counter.order.append(name)
        try:
            await asyncio.sleep(SLOW_ROUTE_DELAY)
        finally:
            counter.current -= 1
        return PlainTextResponse(json.dumps(name))

    return app


@pytest.fixture
def app() -> FastAPI:
    """Create a fresh application for the test."""
    return create_app()


@pytest.fixture(
    params=[
        pytest.param(None, id="mock"),
        pytest.param(Transport.http_random_port(), id="http"),
    ]
)
def transport(request: pytest.FixtureRequest) -> Transport | None:
    """Run a test once against the mock transport and once against a bound socket."""
    return request.param
