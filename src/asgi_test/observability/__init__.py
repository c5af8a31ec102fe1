"""Observability module for asgi-test.

Structured logging for the harness: server startup/shutdown, request
dispatch and cookie write-back events.

Example:
    >>> from asgi_test.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.debug("asgi_test.request.dispatch", method="GET", path="/ping")
"""

from asgi_test.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_logging_configured,
    sanitize_for_logging,
    unbind_context,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "is_logging_configured",
    "sanitize_for_logging",
    "unbind_context",
]
