"""Relay services."""
from inspector_proxy.services.relay import Relay, RelayState, wire
from inspector_proxy.services.session_registry import SessionRegistry, get_session_registry
from inspector_proxy.services.stderr_forwarder import (
    STDERR_NOTIFICATION_METHOD,
    forward_stderr,
    stderr_notification,
)
from inspector_proxy.services.transport_factory import (
    create_upstream_transport,
    default_environment,
    merge_environment,
    parse_connection_parameters,
    resolve_executable,
)

__all__ = [
    "Relay",
    "RelayState",
    "wire",
    "SessionRegistry",
    "get_session_registry",
    "STDERR_NOTIFICATION_METHOD",
    "forward_stderr",
    "stderr_notification",
    "create_upstream_transport",
    "default_environment",
    "merge_environment",
    "parse_connection_parameters",
    "resolve_executable",
]
