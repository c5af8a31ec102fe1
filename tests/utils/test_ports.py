"""Tests for free port helpers."""

import socket

from asgi_test.utils.ports import DEFAULT_IP, new_random_port, new_random_socket, new_random_socket_addr


class TestPorts:
    """Tests for picking free local ports."""

    def test_new_random_socket_is_bound(self) -> None:
        """The socket is bound to the requested ip on a non-zero port."""
        with new_random_socket() as sock:
            ip, port = sock.getsockname()[:2]
            assert ip == DEFAULT_IP
            assert port > 0

    def test_new_random_socket_addr(self) -> None:
        ip, port = new_random_socket_addr()
        assert ip == DEFAULT_IP
        assert 0 < port <= 65535

    def test_new_random_port_is_bindable(self) -> None:
        """The returned port has been released and can be bound again."""
        port = new_random_port()
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((DEFAULT_IP, port))
