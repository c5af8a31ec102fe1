"""Validation of header names and values supplied by test authors."""

import re

from asgi_test.errors import ConstructionError

# RFC 7230 token characters
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_FORBIDDEN_VALUE_CHARS = ("\r", "\n", "\x00")


def validate_header(name: str, value: str) -> tuple[str, str]:
    """Check a header name/value pair and return it normalized.

    The name is lower-cased; the value is returned unchanged.

    Raises:
        ConstructionError: If the name is not a token or the value contains
            CR, LF or NUL.
    """
    if not isinstance(name, str) or not _TOKEN_RE.match(name):
        raise ConstructionError(
            f"Invalid header name {name!r}",
            details={"header": repr(name)},
        )
    if not isinstance(value, str):
        raise ConstructionError(
            f"Header {name!r} value must be a string, got {type(value).__name__}",
            details={"header": name},
        )
    if any(ch in value for ch in _FORBIDDEN_VALUE_CHARS):
        raise ConstructionError(
            f"Invalid value for header {name!r}: control characters are not allowed",
            details={"header": name},
        )
    return name.lower(), value
