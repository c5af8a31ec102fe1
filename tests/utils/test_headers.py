"""Tests for header validation."""

import pytest

from asgi_test.errors import ConstructionError
from asgi_test.utils.headers import validate_header


class TestValidateHeader:
    """Tests for validate_header()."""

    def test_name_is_lowercased(self) -> None:
        assert validate_header("X-Request-ID", "Abc") == ("x-request-id", "Abc")

    def test_empty_value_is_allowed(self) -> None:
        assert validate_header("x-empty", "") == ("x-empty", "")

    @pytest.mark.parametrize("name", ["", "bad header", "bad:header", "ünicode"])
    def test_invalid_names(self, name: str) -> None:
        """Names must be RFC 7230 tokens."""
        with pytest.raises(ConstructionError, match="Invalid header name"):
            validate_header(name, "value")

    @pytest.mark.parametrize("value", ["line\nbreak", "carriage\rreturn", "nul\x00byte"])
    def test_invalid_values(self, value: str) -> None:
        """Values must not contain CR, LF or NUL."""
        with pytest.raises(ConstructionError, match="control characters"):
            validate_header("x-header", value)

    def test_non_string_value(self) -> None:
        with pytest.raises(ConstructionError, match="must be a string"):
            validate_header("x-header", 42)  # type: ignore[arg-type]
