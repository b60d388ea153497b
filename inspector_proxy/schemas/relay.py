"""
Pydantic schemas for the relay HTTP surface.

Defines the connection parameters parsed from the connect request and the
response models of the introspection endpoints.
"""
from typing import Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Connection Parameters
# ============================================================================

class StdioParameters(BaseModel):
    """Spawn a local MCP server and talk to it over stdin/stdout."""

    model_config = ConfigDict(frozen=True)

    transport_type: Literal["stdio"] = "stdio"
    command: str = Field(..., min_length=1, description="Executable to spawn")
    args: List[str] = Field(default_factory=list, description="Executable arguments")
    env: Dict[str, str] = Field(
        default_factory=dict, description="Caller-supplied environment overrides"
    )


class SseParameters(BaseModel):
    """Connect to a remote MCP server over HTTP+SSE."""

    model_config = ConfigDict(frozen=True)

    transport_type: Literal["sse"] = "sse"
    url: str = Field(..., min_length=1, description="Event stream URL")
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Headers sent with every upstream request"
    )


ConnectionParameters = Union[StdioParameters, SseParameters]


# ============================================================================
# Introspection
# ============================================================================

class ConfigResponse(BaseModel):
    """Defaults offered to the inspector UI."""

    model_config = ConfigDict(populate_by_name=True)

    default_environment: Dict[str, str] = Field(..., alias="defaultEnvironment")
    default_command: str = Field("", alias="defaultCommand")
    default_args: str = Field("", alias="defaultArgs")


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    active_sessions: int = Field(..., description="Number of registered sessions")


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error kind")
    message: str = Field("", description="Human-readable error message")
