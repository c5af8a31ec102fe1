"""The interface shared by every way of executing a test request.

A TransportLayer is picked once when a TestServer is created; everything
after that only relies on url() and send().
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx


class TransportLayer(ABC):
    """Send one request to the app under test and return its response.

    Implementations:
        HttpTransportLayer: the app is served by uvicorn on a bound socket.
        MockTransportLayer: the app is called in-process through ASGI.
    """

    kind: str = "unknown"

    @abstractmethod
    def url(self) -> httpx.URL | None:
        """Return the base URL of the running server, or None when there is none."""

    @abstractmethod
    async def send(self, request: httpx.Request) -> httpx.Response:
        """Execute the request and return a response whose body is fully read.

        Raises:
            TransportError: If the request could not be delivered.
        """

    def close(self) -> None:
        """Release any resources held by the transport. Safe to call twice."""

    def is_running(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(url={self.url()!s})"
