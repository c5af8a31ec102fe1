"""Structured logging for asgi-test.

Harness events go through structlog into the standard logging module under
the ``asgi_test`` logger namespace. Nothing is printed by default: until
configure_logging() is called, events are rendered as key=value strings and
left to whatever handlers the test process has, usually pytest's log capture.

configure_logging() opts in to console or JSON output on stdout. It only
touches the ``asgi_test`` logger, never the root logger.

Environment Variables:
    ASGI_TEST_LOG_FORMAT: "json" for JSON lines, "console" for colored output
    ASGI_TEST_LOG_LEVEL: Level for harness events (DEBUG, INFO, WARNING, ERROR)

Example:
    >>> from asgi_test.observability.logging import configure_logging
    >>> configure_logging(log_format="console", log_level="DEBUG")
"""

import logging
import os
import sys
from typing import Any

import structlog
from structlog.typing import Processor

HARNESS_LOGGER_NAME = "asgi_test"

ENV_LOG_FORMAT = "ASGI_TEST_LOG_FORMAT"
ENV_LOG_LEVEL = "ASGI_TEST_LOG_LEVEL"

# Placeholder for redacted sensitive values in logs
REDACTED_PLACEHOLDER = "***REDACTED***"

# Key substrings (case-insensitive) that indicate sensitive data to redact
_SENSITIVE_KEY_PATTERNS = frozenset(
    {"password", "token", "secret", "authorization", "cookie", "session"}
)

_structlog_configured = False
_handler: logging.Handler | None = None


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    return any(pattern in lower for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of data with sensitive values redacted.

    Keys containing password, token, secret, authorization, cookie or
    session (case-insensitive) get REDACTED_PLACEHOLDER. Nested dicts and
    dicts inside lists are handled too.

    Example:
        >>> sanitize_for_logging({"accept": "text/plain", "cookie": "session=abc"})
        {'accept': 'text/plain', 'cookie': '***REDACTED***'}
    """
    result: dict[str, Any] = {}
    for k, v in data.items():
        if _is_sensitive_key(k):
            result[k] = REDACTED_PLACEHOLDER
        elif isinstance(v, dict):
            result[k] = sanitize_for_logging(v)
        elif isinstance(v, list):
            result[k] = [
                sanitize_for_logging(item) if isinstance(item, dict) else item for item in v
            ]
        else:
            result[k] = v
    return result


def _configure_structlog(processors: list[Processor]) -> None:
    global _structlog_configured

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        # Module-level loggers must pick up a later configure_logging()
        cache_logger_on_first_use=False,
    )
    _structlog_configured = True


def _configure_passthrough() -> None:
    """Render events as key=value strings for the stdlib handlers already in place."""
    _configure_structlog(
        [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.KeyValueRenderer(key_order=["event"], sort_keys=True),
        ]
    )


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    force: bool = False,
) -> None:
    """Print harness events to stdout.

    Installs one stdout handler on the ``asgi_test`` logger. Records still
    propagate, so pytest's log capture keeps seeing them.

    Args:
        log_format: "json" or "console". Defaults to ASGI_TEST_LOG_FORMAT, then "console"
        log_level: Minimum level. Defaults to ASGI_TEST_LOG_LEVEL, then "INFO"
        force: Reconfigure even if configure_logging() already ran

    Example:
        >>> configure_logging(log_format="json", log_level="DEBUG")
    """
    global _handler

    if _handler is not None and not force:
        return

    log_format = (log_format or os.environ.get(ENV_LOG_FORMAT, "console")).lower()
    log_level = (log_level or os.environ.get(ENV_LOG_LEVEL, "INFO")).upper()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    renderer: Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True, exception_formatter=structlog.dev.plain_traceback
        )

    _configure_structlog(
        [
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ]
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    harness_logger = logging.getLogger(HARNESS_LOGGER_NAME)
    if _handler is not None:
        harness_logger.removeHandler(_handler)
    harness_logger.addHandler(handler)
    harness_logger.setLevel(getattr(logging, log_level))
    _handler = handler


def is_logging_configured() -> bool:
    """Return True once configure_logging() has installed its handler."""
    return _handler is not None


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, setting up the pass-through default on first use.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.debug("asgi_test.request.dispatch", method="GET", path="/ping")
    """
    if not _structlog_configured:
        _configure_passthrough()

    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Add key-value pairs to every harness event logged from this context.

    Example:
        >>> bind_context(test_id="tests/test_users.py::test_create")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
