"""Cookies and the name-keyed cookie jar shared by TestServer requests.

A CookieJar holds at most one cookie per name. Adding a cookie whose name is
already present replaces the stored cookie in place, so the jar size and
iteration order are unchanged.

Example:
    >>> jar = CookieJar()
    >>> jar.add(Cookie("session", "abc"))
    >>> jar.add(Cookie("session", "def"))
    >>> len(jar), jar.get("session").value
    (1, 'def')
    >>> jar.to_header()
    'session=def'
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from http.cookies import CookieError, SimpleCookie
from typing import Iterable, Iterator

from asgi_test.observability import get_logger

logger = get_logger(__name__)

SET_COOKIE_HEADER = "set-cookie"
COOKIE_HEADER = "cookie"


@dataclass(frozen=True)
class Cookie:
    """A single cookie: a name, a value and optional Set-Cookie attributes.

    Attributes are only informational for the harness; every cookie in a jar
    is sent on every request regardless of path, domain or expiry.
    """

    name: str
    value: str
    path: str | None = None
    domain: str | None = None
    expires: str | None = None
    max_age: int | None = None
    secure: bool = False
    http_only: bool = False
    same_site: str | None = None

    def with_value(self, value: str) -> Cookie:
        """Return a copy of this cookie carrying a new value."""
        return replace(self, value=value)

    def to_pair(self) -> str:
        """Render as ``name=value`` for an outgoing Cookie header."""
        return f"{self.name}={self.value}"

    @classmethod
    def parse_set_cookie(cls, header_value: str) -> Cookie | None:
        """Parse one Set-Cookie header value.

        Args:
            header_value: Raw header value, e.g. ``"id=42; Path=/; HttpOnly"``

        Returns:
            The parsed cookie, or None if the value holds no parseable cookie.
            Unparseable values are logged as a warning.
        """
        parsed = SimpleCookie()
        try:
            parsed.load(header_value)
        except CookieError as e:
            _log_unparsed(header_value, str(e))
            return None

        for name, morsel in parsed.items():
            max_age: int | None = None
            if morsel["max-age"]:
                try:
                    max_age = int(morsel["max-age"])
                except ValueError:
                    max_age = None
            return cls(
                name=name,
                value=morsel.value,
                path=morsel["path"] or None,
                domain=morsel["domain"] or None,
                expires=morsel["expires"] or None,
                max_age=max_age,
                secure=bool(morsel["secure"]),
                http_only=bool(morsel["httponly"]),
                same_site=morsel["samesite"] or None,
            )
        _log_unparsed(header_value, "no cookie found")
        return None


def _log_unparsed(header_value: str, reason: str) -> None:
    # Only the name is logged, cookie values may be secrets
    logger.warning(
        "asgi_test.cookies.unparsed",
        cookie_name=header_value.partition("=")[0].strip(),
        reason=reason,
    )


class CookieJar:
    """Ordered, name-keyed collection of cookies (last write wins)."""

    def __init__(self, cookies: Iterable[Cookie] = ()) -> None:
        self._cookies: dict[str, Cookie] = {}
        for cookie in cookies:
            self.add(cookie)

    def add(self, cookie: Cookie) -> None:
        """Insert a cookie, replacing any stored cookie with the same name."""
        self._cookies[cookie.name] = cookie

    def update(self, cookies: Iterable[Cookie]) -> None:
        """Add every cookie from another jar or iterable of cookies."""
        for cookie in cookies:
            self.add(cookie)

    def get(self, name: str) -> Cookie | None:
        return self._cookies.get(name)

    def remove(self, name: str) -> Cookie | None:
        """Remove and return the cookie with this name, if present."""
        return self._cookies.pop(name, None)

    def clear(self) -> None:
        self._cookies.clear()

    def copy(self) -> CookieJar:
        return CookieJar(self._cookies.values())

    def names(self) -> list[str]:
        return list(self._cookies)

    def to_dict(self) -> dict[str, str]:
        """Return a plain ``{name: value}`` mapping."""
        return {name: cookie.value for name, cookie in self._cookies.items()}

    def to_header(self) -> str | None:
        """Render the jar as a single Cookie header value, or None when empty."""
        if not self._cookies:
            return None
        return "; ".join(cookie.to_pair() for cookie in self._cookies.values())

    @classmethod
    def from_set_cookie_headers(cls, header_values: Iterable[str]) -> CookieJar:
        """Build a jar from every Set-Cookie header value of a response.

        Values are parsed one header at a time: Expires attributes contain
        commas, so combined header values cannot be split reliably.
        """
        jar = cls()
        for header_value in header_values:
            cookie = Cookie.parse_set_cookie(header_value)
            if cookie is not None:
                jar.add(cookie)
        return jar

    def __contains__(self, name: object) -> bool:
        return name in self._cookies

    def __len__(self) -> int:
        return len(self._cookies)

    def __iter__(self) -> Iterator[Cookie]:
        return iter(list(self._cookies.values()))

    def __bool__(self) -> bool:
        return bool(self._cookies)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CookieJar):
            return NotImplemented
        return self._cookies == other._cookies

    def __repr__(self) -> str:
        return f"CookieJar({list(self._cookies.values())!r})"
