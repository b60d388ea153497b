"""
Relay API endpoints.

- GET  /sse     - open a session: start the upstream transport and stream its
                  messages to the browser
- POST /message - deliver one browser message to a session
- GET  /config  - defaults for the inspector UI
"""
import logging

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from sse_starlette.sse import EventSourceResponse

from inspector_proxy.config import settings
from inspector_proxy.observability import create_span
from inspector_proxy.schemas.relay import ConfigResponse, ErrorResponse
from inspector_proxy.services.relay import wire
from inspector_proxy.services.session_registry import get_session_registry
from inspector_proxy.services.stderr_forwarder import forward_stderr
from inspector_proxy.services.transport_factory import (
    create_upstream_transport,
    default_environment,
    parse_connection_parameters,
)
from inspector_proxy.transports.sse_server import SseServerTransport
from inspector_proxy.transports.stdio import ProcessTransport
from inspector_proxy.utils.errors import (
    AuthFailure,
    InvalidMessage,
    RelayClosed,
    RelayError,
    SessionNotFound,
)
from inspector_proxy.utils.headers import passthrough_headers

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Relay"])


def _error_response(error: RelayError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(),
    )


@router.get(
    settings.SSE_PATH,
    summary="Open a relay session",
    description="Starts the upstream MCP transport described by the query parameters "
    "and streams its messages to the caller as Server-Sent Events.",
)
async def connect(request: Request) -> Response:
    """
    Open a relay session.

    Query parameters:
    - transportType: "stdio" or "sse"
    - command, args, env: for stdio
    - url: for sse

    Failures before the session exists are returned as the response; an
    upstream 401 is replayed with its original body.
    """
    logger.info("New SSE connection")
    span = create_span(
        name="relay.connect",
        attributes={"transport_type": request.query_params.get("transportType", "")},
    )

    try:
        try:
            params = parse_connection_parameters(request.query_params)
            upstream = await create_upstream_transport(params, passthrough_headers(request.headers))
        except AuthFailure as e:
            logger.error(f"Received {e.status_code} from MCP server: {e.message}")
            span.set_attribute("relay.auth_failure", True)
            return Response(content=e.body, status_code=e.status_code, media_type=e.content_type)
        except RelayError as e:
            logger.warning(f"Failed to create upstream transport: {e.message}")
            span.set_attribute("error.type", e.kind)
            return _error_response(e)

        registry = get_session_registry()
        client_transport = SseServerTransport(settings.MESSAGE_PATH)
        try:
            await client_transport.start()
            await registry.insert(client_transport.session_id, client_transport)
        except Exception:
            await upstream.close("session setup failed")
            raise

        async def unregister() -> None:
            await registry.remove(client_transport.session_id)

        relay = wire(client_transport, upstream, on_closed=unregister)
        if isinstance(upstream, ProcessTransport):
            relay.track(forward_stderr(upstream, client_transport))

        span.set_attribute("relay.session_id", client_transport.session_id)
        span.add_event("relay.session_opened", {"session_id": client_transport.session_id})
        logger.info(f"Set up relay for session {client_transport.session_id}")

        return EventSourceResponse(
            client_transport.event_stream(),
            ping=settings.SSE_PING_INTERVAL,
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",  # disable proxy buffering
            },
        )

    except Exception as e:
        logger.exception("Error in connect route")
        span.set_attribute("error.type", type(e).__name__)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="internal_error", message=str(e)).model_dump(),
        )
    finally:
        span.end()


@router.post(
    settings.MESSAGE_PATH,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Deliver a message to a session",
    description="Injects one JSON-RPC message into the relay as if received from the browser.",
)
async def post_message(
    request: Request,
    session_id: str = Query(..., alias="sessionId"),
) -> Response:
    """
    Deliver a browser message.

    Returns:
        202 when the message is accepted, 404 for an unknown session, 400 for
        a body that is not a JSON-RPC message
    """
    logger.debug(f"Received message for sessionId {session_id}")
    try:
        transport = await get_session_registry().lookup(session_id)
    except SessionNotFound:
        return PlainTextResponse("Session not found", status_code=status.HTTP_404_NOT_FOUND)

    try:
        body = await request.body()
        await transport.handle_post_message(body)
    except InvalidMessage as e:
        return PlainTextResponse(e.message, status_code=status.HTTP_400_BAD_REQUEST)
    except RelayClosed:
        # Closed between lookup and delivery
        return PlainTextResponse("Session not found", status_code=status.HTTP_404_NOT_FOUND)
    except Exception as e:
        logger.exception(f"Error delivering message to session {session_id}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="internal_error", message=str(e)).model_dump(),
        )

    return PlainTextResponse("Accepted", status_code=status.HTTP_202_ACCEPTED)


@router.get(
    "/config",
    response_model=ConfigResponse,
    response_model_by_alias=True,
    summary="Inspector defaults",
)
async def get_config() -> ConfigResponse:
    """Default environment, command and arguments offered to the inspector UI."""
    return ConfigResponse(
        default_environment=default_environment(),
        default_command=settings.DEFAULT_COMMAND,
        default_args=settings.DEFAULT_ARGS,
    )
