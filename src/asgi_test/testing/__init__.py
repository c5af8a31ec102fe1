"""Pytest integration for asgi-test.

Modules:
    fixtures: The test_server_factory fixture and the open_test_server()
              context manager.

Example:
    >>> # conftest.py
    >>> pytest_plugins = ["asgi_test.testing.fixtures"]
"""

from asgi_test.testing.fixtures import open_test_server

__all__ = ["open_test_server"]
