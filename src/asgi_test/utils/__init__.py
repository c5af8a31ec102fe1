"""Utility helpers for asgi-test."""

from asgi_test.utils.headers import validate_header
from asgi_test.utils.ports import new_random_port, new_random_socket, new_random_socket_addr
from asgi_test.utils.query import expand_query_params, expand_query_value, query_value_to_str

__all__ = [
    "expand_query_params",
    "expand_query_value",
    "new_random_port",
    "new_random_socket",
    "new_random_socket_addr",
    "query_value_to_str",
    "validate_header",
]
