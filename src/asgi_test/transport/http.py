"""Bound-socket transport: the app is served by uvicorn on a real TCP port.

The listening socket is bound up front (so bind failures surface when the
TestServer is created and the OS-assigned port is known), then handed to a
uvicorn.Server running on its own event loop in a daemon thread. Requests are
sent with httpx.AsyncClient on the caller's event loop.

When the HttpTransportLayer is garbage collected (or close() is called) the
server is told to exit and the socket is closed. There is no drain phase.
"""

from __future__ import annotations

import asyncio
import socket
import threading
import time
import weakref
from typing import Any

import httpx
import uvicorn

from asgi_test.errors import SetupError, TransportError
from asgi_test.observability import get_logger
from asgi_test.transport.base import TransportLayer

logger = get_logger(__name__)

# How often to poll uvicorn's started flag during startup
STARTUP_POLL_INTERVAL = 0.01
# How long close() waits for the server thread to finish
SHUTDOWN_JOIN_TIMEOUT = 1.0


def _url_for_socket(sock: socket.socket) -> httpx.URL:
    """Build the base URL (with trailing slash) from a bound socket's address."""
    host, port = sock.getsockname()[:2]
    if sock.family == socket.AF_INET6:
        host = f"[{host}]"
    return httpx.URL(f"http://{host}:{port}/")


def _serve(server: uvicorn.Server, sock: socket.socket, errors: list[BaseException]) -> None:
    """Thread target running the accept loop until should_exit is set."""
    try:
        asyncio.run(server.serve(sockets=[sock]))
    except BaseException as e:  # noqa: BLE001 - reported to the constructing thread
        errors.append(e)


def _shutdown(
    server: uvicorn.Server,
    thread: threading.Thread,
    sock: socket.socket,
    base_url: str,
) -> None:
    """Stop a running uvicorn server and release its socket.

    Registered with weakref.finalize, so it must not reference the
    HttpTransportLayer itself.
    """
    server.should_exit = True
    if thread.is_alive() and thread is not threading.current_thread():
        thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT)
    sock.close()
    logger.debug("asgi_test.transport.http.stopped", base_url=base_url)


class HttpTransportLayer(TransportLayer):
    """Serve an ASGI app with uvicorn on a bound socket and send real HTTP requests.

    Args:
        app: ASGI application under test
        sock: Bound (not yet listening) TCP socket; ownership moves to the transport
        startup_timeout: Seconds to wait for uvicorn to report it started

    Raises:
        SetupError: If the server fails to start within startup_timeout.
    """

    kind = "http"

    def __init__(self, app: Any, sock: socket.socket, startup_timeout: float) -> None:
        self._base_url = _url_for_socket(sock)
        self._startup_errors: list[BaseException] = []

        config = uvicorn.Config(app, log_level="warning", lifespan="auto")
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=_serve,
            args=(self._server, sock, self._startup_errors),
            name=f"asgi-test-server-{self._base_url.port}",
            daemon=True,
        )
        self._finalizer = weakref.finalize(
            self, _shutdown, self._server, self._thread, sock, str(self._base_url)
        )

        self._thread.start()
        self._wait_until_started(startup_timeout)

        logger.debug("asgi_test.transport.http.started", base_url=str(self._base_url))

    def _wait_until_started(self, timeout: float) -> None:
        deadline = time.monotonic() + timeout
        while not self._server.started:
            if self._startup_errors or not self._thread.is_alive():
                self._finalizer()
                cause = self._startup_errors[0] if self._startup_errors else None
                raise SetupError(
                    "server_start_failed",
                    f"Test server at {self._base_url} stopped during startup"
                    + (f": {cause}" if cause is not None else ""),
                    details={"base_url": str(self._base_url)},
                ) from cause
            if time.monotonic() > deadline:
                self._finalizer()
                raise SetupError(
                    "server_start_timeout",
                    f"Test server at {self._base_url} did not start within {timeout}s",
                    details={"base_url": str(self._base_url), "timeout": timeout},
                )
            time.sleep(STARTUP_POLL_INTERVAL)

    def url(self) -> httpx.URL | None:
        return self._base_url

    async def send(self, request: httpx.Request) -> httpx.Response:
        if not self._finalizer.alive:
            raise TransportError(
                request.method,
                request.url.path,
                details={"transport": self.kind, "reason": "server closed"},
            )

        try:
            async with httpx.AsyncClient(
                timeout=None, follow_redirects=False, trust_env=False
            ) as client:
                response = await client.send(request)
                await response.aread()
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
                details={"transport": self.kind, "base_url": str(self._base_url)},
            ) from e

        return response

    def close(self) -> None:
        self._finalizer()

    def is_running(self) -> bool:
        return self._finalizer.alive and self._thread.is_alive()
