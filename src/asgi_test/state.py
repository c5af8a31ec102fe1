"""Per-server defaults shared by every request built from a TestServer.

ServerSharedState owns the cookie jar, the default headers and the default
query parameters of one TestServer (and every copy of that handle). All access
goes through short atomic operations guarded by a threading.Lock; the lock is
never exposed and never held across an await.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from asgi_test.cookies import Cookie, CookieJar
from asgi_test.utils.headers import validate_header
from asgi_test.utils.query import QueryPairs, expand_query_params, expand_query_value


@dataclass(frozen=True)
class SharedStateSnapshot:
    """Point-in-time copy of ServerSharedState, taken when a request is created."""

    cookies: CookieJar = field(default_factory=CookieJar)
    headers: list[tuple[str, str]] = field(default_factory=list)
    query_params: QueryPairs = field(default_factory=list)


class ServerSharedState:
    """Cookie jar, default headers and default query params of a TestServer.

    Headers and query params keep insertion order and allow duplicates;
    cookies are unique by name with the last write winning.

    Example:
        >>> state = ServerSharedState()
        >>> state.add_query_param("a", "1")
        >>> state.add_query_param("a", "1")
        >>> state.query_params()
        [('a', '1'), ('a', '1')]
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cookies = CookieJar()
        self._headers: list[tuple[str, str]] = []
        self._query_params: QueryPairs = []

    # Cookies

    def add_cookie(self, cookie: Cookie) -> None:
        """Insert a cookie, replacing any stored cookie with the same name."""
        with self._lock:
            self._cookies.add(cookie)

    def add_cookies(self, cookies: Iterable[Cookie]) -> None:
        """Insert every cookie from a jar or iterable, replacing by name."""
        incoming = list(cookies)
        with self._lock:
            self._cookies.update(incoming)

    def clear_cookies(self) -> None:
        with self._lock:
            self._cookies.clear()

    def cookies(self) -> CookieJar:
        """Return a copy of the current cookie jar."""
        with self._lock:
            return self._cookies.copy()

    # Headers

    def add_header(self, name: str, value: str) -> None:
        """Append a default header. Existing headers with the same name are kept.

        Raises:
            ConstructionError: If the header name or value is invalid.
        """
        header = validate_header(name, value)
        with self._lock:
            self._headers.append(header)

    def clear_headers(self) -> None:
        with self._lock:
            self._headers.clear()

    def headers(self) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._headers)

    # Query params

    def add_query_param(self, key: str, value: Any) -> None:
        """Append one query parameter (or one per item when value is a list).

        Raises:
            ConstructionError: If the value cannot be rendered as a query value.
        """
        pairs = expand_query_value(key, value)
        with self._lock:
            self._query_params.extend(pairs)

    def add_query_params(self, source: Any) -> None:
        """Append query parameters expanded from pairs, a mapping or a model.

        Raises:
            ConstructionError: If the source cannot be expanded into pairs.
        """
        pairs = expand_query_params(source)
        with self._lock:
            self._query_params.extend(pairs)

    def clear_query_params(self) -> None:
        with self._lock:
            self._query_params.clear()

    def query_params(self) -> QueryPairs:
        with self._lock:
            return list(self._query_params)

    def snapshot(self) -> SharedStateSnapshot:
        """Copy cookies, headers and query params under a single lock acquisition."""
        with self._lock:
            return SharedStateSnapshot(
                cookies=self._cookies.copy(),
                headers=list(self._headers),
                query_params=list(self._query_params),
            )

    def __repr__(self) -> str:
        snapshot = self.snapshot()
        return (
            f"ServerSharedState(cookies={snapshot.cookies.names()!r}, "
            f"headers={len(snapshot.headers)}, query_params={len(snapshot.query_params)})"
        )
