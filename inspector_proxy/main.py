"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inspector_proxy.config import settings
from inspector_proxy.api import relay
from inspector_proxy.schemas.relay import HealthCheckResponse
from inspector_proxy.services.session_registry import get_session_registry

# Initialize OpenTelemetry if enabled
if settings.OTEL_ENABLED:
    from inspector_proxy.observability import init_telemetry
    init_telemetry(
        service_name=settings.OTEL_SERVICE_NAME,
        service_version=settings.OTEL_SERVICE_VERSION,
        environment=os.getenv("ENVIRONMENT", "development")
    )

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    On shutdown every open session is closed so that no spawned MCP server
    outlives the proxy.
    """
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} starting...")
    logger.info(f"Relay endpoints ready at {settings.SSE_PATH} and {settings.MESSAGE_PATH}")

    yield  # Application runs here

    logger.info(f"{settings.APP_NAME} shutting down...")
    try:
        await get_session_registry().close_all()
        logger.info("All sessions closed")
    except Exception:
        logger.exception("Error closing sessions")

    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Relay between the MCP Inspector UI and stdio or SSE MCP servers",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(relay.router)


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint reporting the number of open sessions."""
    return HealthCheckResponse(
        status="healthy",
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        active_sessions=await get_session_registry().count(),
    )


@app.get("/live")
async def liveness_check() -> dict:
    """Liveness probe."""
    return {"status": "alive", "service": settings.APP_NAME}
