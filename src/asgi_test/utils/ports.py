"""Helpers for picking free local ports in tests.

new_random_port() and new_random_socket_addr() release the port before
returning, so another process may grab it in between. When the port must stay
reserved, use new_random_socket() and keep the socket open.
"""

from __future__ import annotations

import socket

DEFAULT_IP = "127.0.0.1"


def new_random_socket(ip: str = DEFAULT_IP) -> socket.socket:
    """Bind a TCP socket on an OS-assigned port and return it (not listening)."""
    family = socket.AF_INET6 if ":" in ip else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.bind((ip, 0))
    except OSError:
        sock.close()
        raise
    return sock


def new_random_socket_addr(ip: str = DEFAULT_IP) -> tuple[str, int]:
    """Return an ``(ip, port)`` pair whose port was free a moment ago."""
    with new_random_socket(ip) as sock:
        port: int = sock.getsockname()[1]
    return ip, port


def new_random_port(ip: str = DEFAULT_IP) -> int:
    """Return a TCP port that was free a moment ago."""
    return new_random_socket_addr(ip)[1]
