"""
OpenTelemetry configuration and initialization.

This module sets up observability for the relay with OpenTelemetry including:
- Automatic instrumentation for FastAPI and HTTPx
- Session, message and error metrics for the relay
- OTLP exporter for sending traces and metrics to a backend
"""

import logging
import os
from typing import Any, Dict, Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind

from inspector_proxy.config import settings

logger = logging.getLogger(__name__)

# Global variables
_meter: Optional[metrics.Meter] = None
_tracer: Optional[trace.Tracer] = None
_session_metrics: Optional[Dict[str, Any]] = None
_message_counter: Optional[metrics.Counter] = None
_error_counter: Optional[metrics.Counter] = None
_stderr_counter: Optional[metrics.Counter] = None


def get_meter() -> metrics.Meter:
    """Get the OpenTelemetry meter."""
    if _meter is None:
        raise RuntimeError("OpenTelemetry not initialized. Call init_telemetry() first.")
    return _meter


def get_tracer() -> trace.Tracer:
    """Get the OpenTelemetry tracer."""
    if _tracer is None:
        raise RuntimeError("OpenTelemetry not initialized. Call init_telemetry() first.")
    return _tracer


def _exporter_headers() -> Optional[Dict[str, str]]:
    if settings.OTEL_HONEYCOMB_TEAM:
        return {"x-honeycomb-team": settings.OTEL_HONEYCOMB_TEAM}
    return None


def init_telemetry(
    service_name: str = "mcp-inspector-proxy",
    service_version: str = "0.1.0",
    environment: Optional[str] = None,
) -> None:
    """
    Initialize OpenTelemetry with proper configuration.

    Args:
        service_name: Name of the service
        service_version: Version of the service
        environment: Environment (dev, staging, prod)
    """
    global _meter, _tracer

    resource = Resource.create(
        attributes={
            "service.name": service_name,
            "service.version": service_version,
            "service.namespace": "mcp-inspector",
            "deployment.environment": environment or os.getenv("ENVIRONMENT", "development"),
            "process.pid": os.getpid(),
        }
    )

    trace_provider = TracerProvider(resource=resource)
    if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        span_processor = BatchSpanProcessor(
            OTLPSpanExporter(
                endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
                headers=_exporter_headers(),
            )
        )
        trace_provider.add_span_processor(span_processor)
    trace.set_tracer_provider(trace_provider)
    _tracer = trace_provider.get_tracer(__name__)

    metric_readers = []
    metrics_endpoint = settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT or settings.OTEL_EXPORTER_OTLP_ENDPOINT
    if metrics_endpoint:
        metric_readers.append(
            PeriodicExportingMetricReader(
                exporter=OTLPMetricExporter(endpoint=metrics_endpoint, headers=_exporter_headers()),
                export_interval_millis=30000,  # Export every 30 seconds
            )
        )
    meter_provider = MeterProvider(resource=resource, metric_readers=metric_readers)
    metrics.set_meter_provider(meter_provider)
    _meter = meter_provider.get_meter(__name__)

    init_custom_metrics(_meter)
    _setup_instrumentation()

    logger.info(
        "OpenTelemetry initialized",
        extra={
            "service_name": service_name,
            "otel_endpoint": settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            "environment": environment or os.getenv("ENVIRONMENT", "development"),
        }
    )


def init_custom_metrics(meter: metrics.Meter) -> None:
    """Create the relay metrics on the given meter."""
    global _session_metrics, _message_counter, _error_counter, _stderr_counter

    _session_metrics = {
        "opened": meter.create_counter(
            name="relay_sessions_total",
            description="Total number of relay sessions opened",
            unit="1"
        ),
        "active": meter.create_up_down_counter(
            name="relay_sessions_active",
            description="Number of relay sessions currently open",
            unit="1"
        ),
    }

    _message_counter = meter.create_counter(
        name="relay_messages_total",
        description="Total number of messages forwarded by the relay",
        unit="1"
    )

    _error_counter = meter.create_counter(
        name="relay_errors_total",
        description="Total number of relay errors by kind",
        unit="1"
    )

    _stderr_counter = meter.create_counter(
        name="relay_stderr_chunks_total",
        description="Total number of stderr chunks forwarded as notifications",
        unit="1"
    )

    logger.info("Relay OpenTelemetry metrics initialized")


def _setup_instrumentation() -> None:
    """Set up automatic instrumentation for common libraries."""
    FastAPIInstrumentor().instrument()

    # Upstream SSE handshakes and message POSTs
    HTTPXClientInstrumentor().instrument()

    logger.info("Automatic instrumentation configured")


def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Optional[Dict[str, Any]] = None
) -> trace.Span:
    """
    Create a new span with common attributes.

    Args:
        name: Name of the span
        kind: Kind of span (client, server, internal, etc.)
        attributes: Additional attributes to add to the span

    Returns:
        The created span
    """
    tracer = get_tracer()

    span_attrs = {
        "service.name": settings.OTEL_SERVICE_NAME,
        "service.namespace": "mcp-inspector",
    }
    if attributes:
        span_attrs.update(attributes)

    return tracer.start_span(name, kind=kind, attributes=span_attrs)


def record_session_opened(transport_type: str) -> None:
    """Record a new relay session."""
    if not _session_metrics:
        return
    _session_metrics["opened"].add(1, attributes={"transport_type": transport_type})
    _session_metrics["active"].add(1, attributes={"transport_type": transport_type})


def record_session_closed(transport_type: str) -> None:
    """Record the end of a relay session."""
    if not _session_metrics:
        return
    _session_metrics["active"].add(-1, attributes={"transport_type": transport_type})


def record_message_relayed(direction: str) -> None:
    """
    Record one forwarded message.

    Args:
        direction: "to_server" or "to_client"
    """
    if _message_counter:
        _message_counter.add(1, attributes={"direction": direction})


def record_relay_error(kind: str) -> None:
    """Record a relay error by taxonomy kind."""
    if _error_counter:
        _error_counter.add(1, attributes={"kind": kind})


def record_stderr_chunk() -> None:
    """Record one forwarded stderr chunk."""
    if _stderr_counter:
        _stderr_counter.add(1)
