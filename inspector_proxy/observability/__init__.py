"""Observability module with conditional OpenTelemetry support.

This module provides observability functions that work regardless of whether
OpenTelemetry is enabled. When disabled, noop implementations are used to
avoid conditional checks throughout the codebase.
"""

from typing import Any, Dict, Optional

from inspector_proxy.config import settings

if settings.OTEL_ENABLED:
    from inspector_proxy.observability.otel import (
        init_telemetry,
        get_meter,
        get_tracer,
        create_span,
        record_session_opened,
        record_session_closed,
        record_message_relayed,
        record_relay_error,
        record_stderr_chunk,
    )
else:
    class NoopSpan:
        """Noop span that does nothing but provides the span interface."""

        def set_attribute(self, key: str, value: Any) -> None:
            pass

        def add_event(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> None:
            pass

        def end(self) -> None:
            pass

        def is_recording(self) -> bool:
            return False

        def __enter__(self) -> "NoopSpan":
            return self

        def __exit__(self, *args) -> None:
            pass

    def init_telemetry(
        service_name: str = "mcp-inspector-proxy",
        service_version: str = "0.1.0",
        environment: Optional[str] = None,
    ) -> None:
        """Noop: OpenTelemetry is disabled."""

    def get_meter():
        """Noop: Returns None when OpenTelemetry is disabled."""
        return None

    def get_tracer():
        """Noop: Returns None when OpenTelemetry is disabled."""
        return None

    def create_span(
        name: str,
        kind: Any = None,
        attributes: Optional[Dict[str, Any]] = None
    ) -> NoopSpan:
        """Noop: Returns a NoopSpan when OpenTelemetry is disabled."""
        return NoopSpan()

    def record_session_opened(transport_type: str) -> None:
        """Noop: OpenTelemetry is disabled."""

    def record_session_closed(transport_type: str) -> None:
        """Noop: OpenTelemetry is disabled."""

    def record_message_relayed(direction: str) -> None:
        """Noop: OpenTelemetry is disabled."""

    def record_relay_error(kind: str) -> None:
        """Noop: OpenTelemetry is disabled."""

    def record_stderr_chunk() -> None:
        """Noop: OpenTelemetry is disabled."""


__all__ = [
    "init_telemetry",
    "get_meter",
    "get_tracer",
    "create_span",
    "record_session_opened",
    "record_session_closed",
    "record_message_relayed",
    "record_relay_error",
    "record_stderr_chunk",
]
