"""Configuration for TestServer.

Example:
    >>> from asgi_test.config import TestServerConfig, Transport
    >>> config = TestServerConfig(
    ...     transport=Transport.http_random_port(),
    ...     save_cookies=True,
    ...     default_content_type="application/json",
    ... )
"""

from __future__ import annotations

import ipaddress
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from asgi_test.errors import SetupError

DEFAULT_STARTUP_TIMEOUT = 5.0

_MIME_RE = re.compile(r"^[\w.+-]+/[\w.+-]+(\s*;.*)?$")


class TransportKind(str, Enum):
    """How a TestServer executes requests against the app under test."""

    HTTP_RANDOM_PORT = "http_random_port"
    HTTP_IP_PORT = "http_ip_port"
    MOCK_HTTP = "mock_http"


class Transport(BaseModel):
    """Transport selection for a TestServer.

    Use the constructors rather than building instances directly:
    Transport.http_random_port(), Transport.http_ip_port(ip, port) and
    Transport.mock_http().

    Attributes:
        kind: Which execution strategy to use
        ip: Address to bind (HTTP_IP_PORT only, defaults to 127.0.0.1)
        port: Port to bind (HTTP_IP_PORT only, defaults to an OS-assigned port)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: TransportKind
    ip: str | None = None
    port: int | None = Field(default=None, ge=0, le=65535)

    @field_validator("ip")
    @classmethod
    def _validate_ip(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return str(ipaddress.ip_address(v))

    @model_validator(mode="after")
    def _ip_port_only_for_bound_address(self) -> Transport:
        if self.kind != TransportKind.HTTP_IP_PORT and (self.ip is not None or self.port is not None):
            raise ValueError(f"ip and port can only be set for {TransportKind.HTTP_IP_PORT.value}")
        return self

    @classmethod
    def _build(cls, **fields: Any) -> Transport:
        try:
            return cls(**fields)
        except ValidationError as e:
            raise SetupError(
                "invalid_config",
                f"Invalid transport: {e}",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    @classmethod
    def http_random_port(cls) -> Transport:
        """Serve over a real socket on 127.0.0.1 with an OS-assigned port."""
        return cls._build(kind=TransportKind.HTTP_RANDOM_PORT)

    @classmethod
    def http_ip_port(cls, ip: str | None = None, port: int | None = None) -> Transport:
        """Serve over a real socket on the given ip and port.

        Raises:
            SetupError: If the ip is not an address or the port is outside 0-65535.
        """
        return cls._build(kind=TransportKind.HTTP_IP_PORT, ip=ip, port=port)

    @classmethod
    def mock_http(cls) -> Transport:
        """Call the app in-process, without any socket."""
        return cls._build(kind=TransportKind.MOCK_HTTP)


class TestServerConfig(BaseModel):
    """Settings accepted by TestServer at construction.

    Attributes:
        transport: Execution strategy; None means the in-process mock transport
        save_cookies: Save cookies from responses into the server's jar
        default_content_type: Content type used when a request sets none
        expect_success_by_default: Fail any request not returning 2xx
        restrict_requests_with_http_schema: Treat absolute URLs as plain paths
        startup_timeout: Seconds to wait for a bound server to start serving
    """

    __test__ = False

    model_config = ConfigDict(extra="forbid")

    transport: Transport | None = None
    save_cookies: bool = False
    default_content_type: str | None = None
    expect_success_by_default: bool = False
    restrict_requests_with_http_schema: bool = False
    startup_timeout: float = Field(default=DEFAULT_STARTUP_TIMEOUT, gt=0)

    @field_validator("default_content_type")
    @classmethod
    def _validate_content_type(cls, v: str | None) -> str | None:
        if v is not None and not _MIME_RE.match(v):
            raise ValueError(f"default_content_type {v!r} is not a type/subtype MIME value")
        return v
