"""Utility package for the MCP Inspector proxy."""

from .errors import (
    RelayError,
    InvalidTransportType,
    InvalidParameters,
    InvalidMessage,
    SpawnFailure,
    ConnectFailure,
    AuthFailure,
    SessionNotFound,
    RelayClosed,
    UnexpectedTransportError,
)
from .headers import SSE_HEADERS_PASSTHROUGH, passthrough_headers
from .http import (
    get_ssl_verify,
    create_http_client,
    DEFAULT_CUSTOM_CERT_PATH,
)

__all__ = [
    # Errors
    "RelayError",
    "InvalidTransportType",
    "InvalidParameters",
    "InvalidMessage",
    "SpawnFailure",
    "ConnectFailure",
    "AuthFailure",
    "SessionNotFound",
    "RelayClosed",
    "UnexpectedTransportError",
    # Header passthrough
    "SSE_HEADERS_PASSTHROUGH",
    "passthrough_headers",
    # HTTP utilities
    "get_ssl_verify",
    "create_http_client",
    "DEFAULT_CUSTOM_CERT_PATH",
]
