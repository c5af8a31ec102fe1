"""Error taxonomy for the asgi-test harness.

Every failure the harness can raise is fatal to the running test. The
classes here only differ in *when* they are raised:

- SetupError: while constructing a TestServer (bind failure, bad config).
- ConstructionError: synchronously at a TestRequest builder call.
- TransportError: when a TestRequest is awaited and the send fails.
- ResponseAssertionError: when an expectation or assertion helper fails.

ResponseAssertionError subclasses AssertionError (not ASGITestError) so that
pytest reports it as a regular assertion failure.
"""

from __future__ import annotations

from typing import Any


class ASGITestError(Exception):
    """Base exception for all asgi-test harness errors.

    Attributes:
        code: Error code following the asgi_test:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class SetupError(ASGITestError):
    """Raised when a TestServer cannot be constructed.

    Covers binding the listening socket (port in use, permission denied),
    the bound server failing to start, and invalid configuration.

    Attributes:
        reason: Short machine-readable reason (e.g. "bind_failed")
    """

    def __init__(self, reason: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code=f"asgi_test:setup/{reason}",
            message=message,
            details=details or {},
        )
        self.reason = reason


class ConstructionError(ASGITestError):
    """Raised synchronously by a request builder call.

    This error occurs when a body cannot be serialized, a header name or
    value is invalid, or query parameters cannot be expanded into pairs.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="asgi_test:request/invalid",
            message=message,
            details=details or {},
        )


class RequestConsumedError(ConstructionError):
    """Raised when a TestRequest is used after it has been dispatched.

    Attributes:
        method: HTTP method of the consumed request
        path: Path the request was built for
    """

    def __init__(self, method: str, path: str) -> None:
        super().__init__(
            f"Request {method} {path} has already been sent and cannot be reused",
            details={"method": method, "path": path},
        )
        self.code = "asgi_test:request/consumed"
        self.method = method
        self.path = path


class TransportError(ASGITestError):
    """Raised when sending a request through a transport layer fails.

    The original exception (connection refused, server torn down, ...) is
    kept as ``__cause__`` and summarized in ``details``.

    Attributes:
        method: HTTP method of the failed request
        path: Path the request was built for
    """

    def __init__(
        self,
        method: str,
        path: str,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        reason = f": {cause}" if cause is not None else ""
        message = f"Failed to send request {method} {path}{reason}"
        details_dict: dict[str, Any] = {"method": method, "path": path}
        if cause is not None:
            details_dict["error_type"] = type(cause).__name__
        if details:
            details_dict.update(details)
        super().__init__(
            code="asgi_test:transport/send_failed",
            message=message,
            details=details_dict,
        )
        self.method = method
        self.path = path


class ResponseAssertionError(AssertionError):
    """Raised when a response does not match what the test expected.

    Attributes:
        expected: The expected value
        actual: The value found on the response
        method: HTTP method of the originating request
        path: Path of the originating request
    """

    def __init__(
        self,
        message: str,
        *,
        expected: Any = None,
        actual: Any = None,
        method: str = "",
        path: str = "",
    ) -> None:
        full_message = f"{message}\n  expected: {expected!r}\n  actual:   {actual!r}"
        if method or path:
            full_message = f"{full_message}\n  for request {method} {path}"
        super().__init__(full_message)
        self.message = full_message
        self.expected = expected
        self.actual = actual
        self.method = method
        self.path = path
