"""Pydantic schemas for request/response validation."""

from inspector_proxy.schemas.relay import (
    StdioParameters,
    SseParameters,
    ConnectionParameters,
    ConfigResponse,
    HealthCheckResponse,
    ErrorResponse,
)

__all__ = [
    "StdioParameters",
    "SseParameters",
    "ConnectionParameters",
    "ConfigResponse",
    "HealthCheckResponse",
    "ErrorResponse",
]
