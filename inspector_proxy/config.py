"""Application configuration using Pydantic Settings."""

import json
from functools import lru_cache
from typing import Dict

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "mcp-inspector-proxy"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    CORS_ORIGINS: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Upstream process defaults
    MCP_ENV_VARS: Dict[str, str] = Field(
        default={},
        description="Extra environment variables merged over the MCP default environment"
    )
    DEFAULT_COMMAND: str = Field(
        default="",
        description="Default server command reported to the inspector UI"
    )
    DEFAULT_ARGS: str = Field(
        default="",
        description="Default server arguments reported to the inspector UI"
    )

    # Relay routes
    SSE_PATH: str = "/sse"
    MESSAGE_PATH: str = "/message"

    # Relay timing
    SSE_CONNECT_TIMEOUT: float = 30.0
    SSE_PING_INTERVAL: int = 15  # seconds
    PROCESS_TERMINATE_TIMEOUT: float = 5.0
    STDERR_CHUNK_SIZE: int = 65536
    RELAY_QUEUE_SIZE: int = 64  # messages buffered per direction before readers wait

    # OpenTelemetry Configuration
    OTEL_EXPORTER_OTLP_ENDPOINT: str | None = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: str | None = None
    OTEL_SERVICE_NAME: str = "mcp-inspector-proxy"
    OTEL_SERVICE_VERSION: str = "0.1.0"
    OTEL_HONEYCOMB_TEAM: str | None = None
    OTEL_ENABLED: bool = False

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v) -> list[str]:
        """Parse CORS origins from list or comma-separated string."""
        if isinstance(v, str):
            if v == "*":
                return ["*"]
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, list):
            return [str(origin).rstrip("/") for origin in v if origin]
        return []

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v_upper

    @field_validator("PORT")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate the listening port."""
        if v < 1 or v > 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return v

    @field_validator("MCP_ENV_VARS", mode="before")
    @classmethod
    def parse_env_vars(cls, v) -> Dict[str, str]:
        """Parse extra environment variables from a JSON object string or dict."""
        if isinstance(v, str):
            if not v.strip():
                return {}
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                raise ValueError("MCP_ENV_VARS must be a JSON object")
            v = parsed
        if isinstance(v, dict):
            return {str(key): str(value) for key, value in v.items()}
        raise ValueError("MCP_ENV_VARS must be a JSON object")

    @field_validator("SSE_PATH", "MESSAGE_PATH")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Validate route paths are absolute."""
        if not v.startswith("/"):
            raise ValueError("Route paths must start with '/'")
        return v.rstrip("/") or "/"

    @field_validator("SSE_CONNECT_TIMEOUT", "PROCESS_TERMINATE_TIMEOUT")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout must be a positive number")
        if v > 600:
            raise ValueError("Timeout should not exceed 600 seconds")
        return v

    @field_validator("SSE_PING_INTERVAL")
    @classmethod
    def validate_ping_interval(cls, v: int) -> int:
        """Validate SSE keep-alive interval."""
        if v < 1:
            raise ValueError("SSE_PING_INTERVAL must be at least 1 second")
        return v

    @field_validator("RELAY_QUEUE_SIZE")
    @classmethod
    def validate_queue_size(cls, v: int) -> int:
        """Validate the per-direction message buffer."""
        if v < 1:
            raise ValueError("RELAY_QUEUE_SIZE must be at least 1")
        return v

    @field_validator("STDERR_CHUNK_SIZE")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Validate stderr read size."""
        if v < 1:
            raise ValueError("STDERR_CHUNK_SIZE must be at least 1")
        if v > 1048576:
            raise ValueError("STDERR_CHUNK_SIZE should not exceed 1048576")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
