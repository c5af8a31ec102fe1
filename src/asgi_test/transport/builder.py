"""Construction of a TransportLayer from a TestServerConfig transport selection."""

from __future__ import annotations

import socket
from typing import Any

from asgi_test.config import Transport, TransportKind
from asgi_test.errors import SetupError
from asgi_test.transport.base import TransportLayer
from asgi_test.transport.http import HttpTransportLayer
from asgi_test.transport.mock import MockTransportLayer
from asgi_test.utils.ports import DEFAULT_IP


class TransportLayerBuilder:
    """Binds the listening socket for a bound-socket transport.

    Args:
        ip: Address to bind; defaults to 127.0.0.1
        port: Port to bind; defaults to 0 (OS-assigned)
    """

    def __init__(self, ip: str | None = None, port: int | None = None) -> None:
        self.ip = ip or DEFAULT_IP
        self.port = port or 0

    def tcp_socket(self) -> socket.socket:
        """Bind a TCP socket at the configured address.

        Raises:
            SetupError: If the address cannot be bound (in use, permission denied, ...).
        """
        family = socket.AF_INET6 if ":" in self.ip else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.ip, self.port))
        except OSError as e:
            sock.close()
            raise SetupError(
                "bind_failed",
                f"Failed to bind test server to {self.ip}:{self.port}: {e}",
                details={"ip": self.ip, "port": self.port, "errno": e.errno},
            ) from e
        return sock


def build_transport_layer(
    app: Any,
    transport: Transport | None,
    startup_timeout: float,
) -> TransportLayer:
    """Create the transport layer selected by the configuration.

    None selects the in-process mock transport.

    Raises:
        SetupError: If a bound-socket transport cannot bind or start, or the
            app's lifespan startup fails.
    """
    if transport is None or transport.kind == TransportKind.MOCK_HTTP:
        return MockTransportLayer(app, startup_timeout)

    if transport.kind == TransportKind.HTTP_RANDOM_PORT:
        builder = TransportLayerBuilder()
    else:
        builder = TransportLayerBuilder(transport.ip, transport.port)

    sock = builder.tcp_socket()
    return HttpTransportLayer(app, sock, startup_timeout)
