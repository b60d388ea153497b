"""
Relay error taxonomy.

Errors raised before a session exists are mapped to the HTTP response of the
connect request through ``status_code``. Errors raised during an active session
are handled by the relay itself and only logged.
"""
from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for all relay errors."""

    status_code: int = 500
    kind: str = "relay_error"

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for an HTTP error response."""
        return {"error": self.kind, "message": self.message}


class InvalidTransportType(RelayError):
    """The requested transportType is neither stdio nor sse."""

    status_code = 400
    kind = "invalid_transport_type"


class InvalidParameters(RelayError):
    """Connection parameters are missing or malformed."""

    status_code = 400
    kind = "invalid_parameters"


class InvalidMessage(RelayError):
    """A payload is not a JSON-RPC request, response or notification."""

    status_code = 400
    kind = "invalid_message"


class SpawnFailure(RelayError):
    """The upstream executable could not be located or started."""

    status_code = 500
    kind = "spawn_failure"


class ConnectFailure(RelayError):
    """The upstream transport failed to start for any other reason."""

    status_code = 500
    kind = "connect_failure"


class AuthFailure(RelayError):
    """
    The upstream event stream rejected the handshake with an auth status.

    The upstream body and content type are kept so the connect response can
    replay them to the browser unchanged.
    """

    status_code = 401
    kind = "auth_failure"

    def __init__(
        self,
        message: str = "",
        status_code: int = 401,
        body: bytes = b"",
        content_type: Optional[str] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.body = body
        self.content_type = content_type or "application/json"


class SessionNotFound(RelayError):
    """No live browser-facing transport is registered for a session id."""

    status_code = 404
    kind = "session_not_found"


class RelayClosed(RelayError):
    """A transport was used after its close began."""

    kind = "relay_closed"


class UnexpectedTransportError(RelayError):
    """An I/O failure occurred on a transport during an active session."""

    kind = "unexpected_transport_error"
