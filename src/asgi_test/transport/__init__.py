"""Transport layers: how a TestServer delivers requests to the app under test.

Two implementations share the TransportLayer interface:
    HttpTransportLayer: uvicorn serving the app on a bound TCP socket
    MockTransportLayer: in-process ASGI calls via httpx.ASGITransport
"""

from asgi_test.transport.base import TransportLayer
from asgi_test.transport.builder import TransportLayerBuilder, build_transport_layer
from asgi_test.transport.http import HttpTransportLayer
from asgi_test.transport.mock import MockTransportLayer

__all__ = [
    "HttpTransportLayer",
    "MockTransportLayer",
    "TransportLayer",
    "TransportLayerBuilder",
    "build_transport_layer",
]
