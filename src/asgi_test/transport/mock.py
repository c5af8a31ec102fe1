"""In-process transport: requests are handed straight to the ASGI app.

There is no socket and no port. The app runs on a private event loop in a
daemon thread, so its lifespan startup completes before the TestServer is
returned and its lifespan shutdown runs when the transport is closed or
garbage collected, exactly as with the bound-socket transport. The lifespan
is driven by uvicorn's own lifespan implementation.

Requests are built on the caller's event loop and executed on the private
loop. Dispatches through one MockTransportLayer are serialized by an
asyncio.Lock that lives on the private loop, in acquisition order, so one
TestServer can be awaited from any number of caller event loops.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
import weakref
from typing import Any

import httpx
import uvicorn

from asgi_test.errors import SetupError, TransportError
from asgi_test.observability import get_logger
from asgi_test.transport.base import TransportLayer

logger = get_logger(__name__)

# How long close() waits for the app's lifespan shutdown
SHUTDOWN_TIMEOUT = 5.0
# How long close() waits for the loop thread to finish
SHUTDOWN_JOIN_TIMEOUT = 1.0


def _with_lifespan_state(app: Any, state: dict[str, Any]) -> Any:
    """Give every request a shallow copy of the lifespan state, as uvicorn does."""

    async def wrapped(scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] in ("http", "websocket"):
            scope = {**scope, "state": state.copy()}
        await app(scope, receive, send)

    return wrapped


def _run_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Thread target running the private loop until it is stopped."""
    asyncio.set_event_loop(loop)
    try:
        loop.run_forever()
    finally:
        loop.close()


def _shutdown(loop: asyncio.AbstractEventLoop, thread: threading.Thread, lifespan: Any) -> None:
    """Run the app's lifespan shutdown, then stop the private loop.

    Registered with weakref.finalize, so it must not reference the
    MockTransportLayer itself.
    """
    if loop.is_running() and thread is not threading.current_thread():
        future = asyncio.run_coroutine_threadsafe(lifespan.shutdown(), loop)
        try:
            future.result(timeout=SHUTDOWN_TIMEOUT)
        except concurrent.futures.TimeoutError:
            future.cancel()
            logger.warning("asgi_test.transport.mock.shutdown_timeout", timeout=SHUTDOWN_TIMEOUT)
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT)
    logger.debug("asgi_test.transport.mock.stopped")


class MockTransportLayer(TransportLayer):
    """Call an ASGI application directly through httpx.ASGITransport.

    Unhandled exceptions raised by the app are turned into 500 responses,
    the same as a real server would produce.

    Args:
        app: ASGI application under test
        startup_timeout: Seconds to wait for the app's lifespan startup

    Raises:
        SetupError: If the lifespan startup fails or does not finish in time.
    """

    kind = "mock_http"

    def __init__(self, app: Any, startup_timeout: float) -> None:
        config = uvicorn.Config(app, log_level="warning", lifespan="auto")
        config.load()
        self._lifespan = config.lifespan_class(config)
        self._transport = httpx.ASGITransport(
            app=_with_lifespan_state(config.loaded_app, self._lifespan.state),
            raise_app_exceptions=False,
        )
        self._lock = asyncio.Lock()

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=_run_loop, args=(self._loop,), name="asgi-test-mock", daemon=True
        )
        self._finalizer = weakref.finalize(
            self, _shutdown, self._loop, self._thread, self._lifespan
        )

        self._thread.start()
        self._start_lifespan(startup_timeout)

        logger.debug("asgi_test.transport.mock.started")

    def _start_lifespan(self, timeout: float) -> None:
        future = asyncio.run_coroutine_threadsafe(self._lifespan.startup(), self._loop)
        try:
            future.result(timeout=timeout)
        except concurrent.futures.TimeoutError as e:
            future.cancel()
            self._finalizer()
            raise SetupError(
                "server_start_timeout",
                f"App lifespan startup did not finish within {timeout}s",
                details={"transport": self.kind, "timeout": timeout},
            ) from e

        if self._lifespan.should_exit:
            self._finalizer()
            raise SetupError(
                "server_start_failed",
                "App lifespan startup failed",
                details={"transport": self.kind},
            )

    def url(self) -> httpx.URL | None:
        return None

    async def _dispatch(self, request: httpx.Request) -> httpx.Response:
        async with self._lock:
            response = await self._transport.handle_async_request(request)
            await response.aread()
            await response.aclose()
        return response

    async def send(self, request: httpx.Request) -> httpx.Response:
        if not self._finalizer.alive:
            raise TransportError(
                request.method,
                request.url.path,
                details={"transport": self.kind, "reason": "transport closed"},
            )

        future = asyncio.run_coroutine_threadsafe(self._dispatch(request), self._loop)
        try:
            response = await asyncio.wrap_future(future)
        except (httpx.HTTPError, OSError) as e:
            logger.warning(
                "asgi_test.transport.send_failed",
                transport=self.kind,
                method=request.method,
                url=str(request.url),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransportError(
                request.method,
                request.url.path,
                cause=e,
                details={"transport": self.kind},
            ) from e

        response.request = request
        return response

    def close(self) -> None:
        self._finalizer()

    def is_running(self) -> bool:
        return self._finalizer.alive and self._thread.is_alive()
