"""Transport implementations for the relay."""

from inspector_proxy.transports.base import (
    CloseEvent,
    ErrorEvent,
    MessageEvent,
    Transport,
    TransportEvent,
)
from inspector_proxy.transports.sse_client import StreamTransport
from inspector_proxy.transports.sse_server import SseServerTransport
from inspector_proxy.transports.stdio import ProcessTransport

__all__ = [
    "Transport",
    "TransportEvent",
    "MessageEvent",
    "ErrorEvent",
    "CloseEvent",
    "ProcessTransport",
    "StreamTransport",
    "SseServerTransport",
]
