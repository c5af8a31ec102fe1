"""The immutable result of an awaited TestRequest, plus assertion helpers.

Every assertion raises ResponseAssertionError with the expected and actual
values and the originating ``METHOD path``, so failures in a long test point
straight at the request that produced them.

Example:
    >>> response = await server.get("/todos/1")
    >>> response.assert_status_ok()
    >>> todo = response.json_as(Todo)
"""

from __future__ import annotations

import json
from typing import Any, TypeVar
from urllib.parse import parse_qsl

import httpx
from pydantic import TypeAdapter, ValidationError

from asgi_test.cookies import SET_COOKIE_HEADER, Cookie, CookieJar
from asgi_test.errors import ResponseAssertionError
from asgi_test.utils.query import expand_query_params

T = TypeVar("T")


class TestResponse:
    """Status, headers and body returned for one request.

    Attributes:
        status_code: HTTP status code
        headers: Response headers (case-insensitive, repeated names kept)
        request_url: Fully resolved URL the request was sent to
        request_method: HTTP method of the request
        request_path: Path as passed to the TestServer, used in diagnostics
    """

    __test__ = False
    __slots__ = ("_status_code", "_headers", "_body", "_request_url", "_request_method", "_request_path")

    def __init__(
        self,
        status_code: int,
        headers: httpx.Headers,
        body: bytes,
        request_url: str,
        request_method: str,
        request_path: str | None = None,
    ) -> None:
        object.__setattr__(self, "_status_code", status_code)
        object.__setattr__(self, "_headers", httpx.Headers(headers))
        object.__setattr__(self, "_body", bytes(body))
        object.__setattr__(self, "_request_url", request_url)
        object.__setattr__(self, "_request_method", request_method)
        object.__setattr__(self, "_request_path", request_path or httpx.URL(request_url).path)

    @classmethod
    def from_httpx(
        cls, response: httpx.Response, request_method: str, request_path: str
    ) -> TestResponse:
        """Build from an httpx.Response whose body has already been read."""
        return cls(
            status_code=response.status_code,
            headers=response.headers,
            body=response.content,
            request_url=str(response.request.url),
            request_method=request_method,
            request_path=request_path,
        )

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def headers(self) -> httpx.Headers:
        # Copy so callers cannot mutate the response's headers.
        return httpx.Headers(self._headers)

    @property
    def request_url(self) -> str:
        return self._request_url

    @property
    def request_method(self) -> str:
        return self._request_method

    @property
    def request_path(self) -> str:
        return self._request_path

    def _fail(self, message: str, *, expected: Any, actual: Any) -> ResponseAssertionError:
        return ResponseAssertionError(
            message,
            expected=expected,
            actual=actual,
            method=self._request_method,
            path=self._request_path,
        )

    # Body accessors

    def as_bytes(self) -> bytes:
        return self._body

    def text(self) -> str:
        """Decode the body as UTF-8.

        Raises:
            ResponseAssertionError: If the body is not valid UTF-8.
        """
        try:
            return self._body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise self._fail(
                f"Response body is not valid UTF-8 ({e.reason} at byte {e.start})",
                expected="utf-8 text",
                actual=self._body[:64],
            ) from e

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            ResponseAssertionError: If the body is not valid JSON.
        """
        text = self.text()
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise self._fail(
                f"Response body is not valid JSON: {e.msg}",
                expected="json",
                actual=text[:200],
            ) from e

    def json_as(self, type_: type[T]) -> T:
        """Decode the JSON body into ``type_`` (a pydantic model, dataclass, list[...], ...).

        Raises:
            ResponseAssertionError: If the body does not match the expected shape.
        """
        data = self.json()
        try:
            return TypeAdapter(type_).validate_python(data)
        except ValidationError as e:
            raise self._fail(
                f"Response body does not match {getattr(type_, '__name__', type_)!s}: "
                f"{e.error_count()} validation error(s)\n{e}",
                expected=getattr(type_, "__name__", str(type_)),
                actual=data,
            ) from e

    def form(self) -> list[tuple[str, str]]:
        """Decode an application/x-www-form-urlencoded body into ordered pairs."""
        return parse_qsl(self.text(), keep_blank_values=True)

    # Headers and cookies

    def maybe_header(self, name: str) -> str | None:
        return self._headers.get(name)

    def header(self, name: str) -> str:
        """Return a header value.

        Raises:
            ResponseAssertionError: If the header is missing.
        """
        value = self._headers.get(name)
        if value is None:
            raise self._fail(
                f"Header {name!r} not found in response",
                expected=name,
                actual=list(self._headers.keys()),
            )
        return value

    def cookies(self) -> CookieJar:
        """Return every cookie set by the response's Set-Cookie headers."""
        return CookieJar.from_set_cookie_headers(self._headers.get_list(SET_COOKIE_HEADER))

    def maybe_cookie(self, name: str) -> Cookie | None:
        return self.cookies().get(name)

    def cookie(self, name: str) -> Cookie:
        """Return the cookie set under ``name``.

        Raises:
            ResponseAssertionError: If the response did not set it.
        """
        jar = self.cookies()
        cookie = jar.get(name)
        if cookie is None:
            raise self._fail(
                f"Cookie {name!r} not found in response",
                expected=name,
                actual=jar.names(),
            )
        return cookie

    # Status assertions

    def is_success(self) -> bool:
        return 200 <= self._status_code < 300

    def assert_status(self, expected: int) -> None:
        if self._status_code != expected:
            raise self._fail("Unexpected status code", expected=expected, actual=self._status_code)

    def assert_not_status(self, unexpected: int) -> None:
        if self._status_code == unexpected:
            raise self._fail(
                "Status code should differ",
                expected=f"anything but {unexpected}",
                actual=self._status_code,
            )

    def assert_status_success(self) -> None:
        """Assert the status is in the 2xx range."""
        if not self.is_success():
            raise self._fail("Expected a success status", expected="2xx", actual=self._status_code)

    def assert_status_failure(self) -> None:
        """Assert the status is outside the 2xx range."""
        if self.is_success():
            raise self._fail(
                "Expected a failure status", expected="not 2xx", actual=self._status_code
            )

    def assert_status_ok(self) -> None:
        self.assert_status(200)

    def assert_status_not_ok(self) -> None:
        self.assert_not_status(200)

    def assert_status_bad_request(self) -> None:
        self.assert_status(400)

    def assert_status_unauthorized(self) -> None:
        self.assert_status(401)

    def assert_status_forbidden(self) -> None:
        self.assert_status(403)

    def assert_status_not_found(self) -> None:
        self.assert_status(404)

    def assert_status_internal_server_error(self) -> None:
        self.assert_status(500)

    # Body assertions

    def assert_text(self, expected: str) -> None:
        actual = self.text()
        if actual != expected:
            raise self._fail("Response text differs", expected=expected, actual=actual)

    def assert_text_contains(self, fragment: str) -> None:
        actual = self.text()
        if fragment not in actual:
            raise self._fail(
                "Response text does not contain fragment", expected=fragment, actual=actual
            )

    def assert_json(self, expected: Any) -> None:
        """Assert the JSON body equals ``expected`` structurally.

        A pydantic model is compared through ``model_dump(mode="json")``.
        """
        if hasattr(expected, "model_dump"):
            expected = expected.model_dump(mode="json")
        actual = self.json()
        if actual != expected:
            raise self._fail("Response JSON differs", expected=expected, actual=actual)

    def assert_form(self, expected: Any) -> None:
        """Assert the form body equals ``expected`` (pairs, mapping or model)."""
        expected_pairs = expand_query_params(expected)
        actual = self.form()
        if actual != expected_pairs:
            raise self._fail("Response form differs", expected=expected_pairs, actual=actual)

    def assert_header(self, name: str, expected: str) -> None:
        actual = self.header(name)
        if actual != expected:
            raise self._fail(f"Header {name!r} differs", expected=expected, actual=actual)

    def assert_contains_header(self, name: str) -> None:
        self.header(name)

    def __repr__(self) -> str:
        return (
            f"TestResponse({self._request_method} {self._request_url} "
            f"-> {self._status_code}, {len(self._body)} bytes)"
        )
