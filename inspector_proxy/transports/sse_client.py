"""
Stream transport.

Connects to a remote MCP server over HTTP+SSE: a long-lived GET event stream
carries server-to-client messages, and each client-to-server message is a
separate POST to the endpoint URL the server announces in its first
``endpoint`` event.
"""
import asyncio
import logging
from contextlib import suppress
from typing import Dict, Optional
from urllib.parse import urljoin, urlsplit

import httpx
from httpx_sse import ServerSentEvent, aconnect_sse

from inspector_proxy.config import settings
from inspector_proxy.models.message import Message
from inspector_proxy.transports.base import Transport
from inspector_proxy.utils.errors import (
    AuthFailure,
    ConnectFailure,
    InvalidMessage,
    RelayClosed,
    RelayError,
    UnexpectedTransportError,
)
from inspector_proxy.utils.http import create_http_client

logger = logging.getLogger(__name__)


class StreamTransport(Transport):
    """Transport backed by an outbound HTTP event stream plus per-message POSTs."""

    transport_type = "sse"

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        connect_timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the stream transport. Nothing is opened until start().

        Args:
            url: Event stream URL of the remote MCP server
            headers: Headers attached to the handshake and every POST
            connect_timeout: Seconds to wait for the endpoint event
            client: Optional pre-configured HTTP client (not closed by the transport)
        """
        super().__init__()
        self.url = url
        self.headers = dict(headers or {})
        self.connect_timeout = connect_timeout or settings.SSE_CONNECT_TIMEOUT
        self.endpoint: Optional[str] = None
        self._client = client
        self._owns_client = client is None
        self._reader_task: Optional[asyncio.Task] = None
        self._endpoint_ready: Optional[asyncio.Future] = None

    async def start(self) -> None:
        """
        Open the event stream and wait for the endpoint announcement.

        Raises:
            AuthFailure: If the server answers the handshake with 401
            ConnectFailure: On any other handshake failure or timeout
        """
        if self._reader_task is not None:
            raise RuntimeError("StreamTransport already started")

        if self._client is None:
            self._client = create_http_client(timeout=self.connect_timeout)

        logger.info(f"Connecting to SSE server: url={self.url}, headers={list(self.headers)}")
        self._endpoint_ready = asyncio.get_running_loop().create_future()
        self._reader_task = asyncio.create_task(self._read_stream())

        try:
            await asyncio.wait_for(self._endpoint_ready, timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            await self.close("connect timeout")
            raise ConnectFailure(
                f"Timed out after {self.connect_timeout}s waiting for endpoint event from {self.url}"
            )
        except RelayError:
            await self.close("connect failed")
            raise

        logger.info(f"Connected to SSE server, posting messages to {self.endpoint}")

    def _fail_startup(self, error: RelayError) -> bool:
        """Report a handshake failure to start(). Returns False once started."""
        if self._endpoint_ready is not None and not self._endpoint_ready.done():
            self._endpoint_ready.set_exception(error)
            return True
        return False

    async def _read_stream(self) -> None:
        assert self._client is not None
        reason = "stream ended"
        try:
            async with aconnect_sse(
                self._client,
                "GET",
                self.url,
                headers=dict(self.headers),
                timeout=httpx.Timeout(self.connect_timeout, read=None),
            ) as event_source:
                response = event_source.response
                if response.status_code != 200:
                    body = await response.aread()
                    if response.status_code == 401:
                        logger.error(f"Received 401 Unauthorized from MCP server at {self.url}")
                        error: RelayError = AuthFailure(
                            f"Non-200 status code ({response.status_code})",
                            status_code=response.status_code,
                            body=body,
                            content_type=response.headers.get("content-type"),
                        )
                    else:
                        error = ConnectFailure(
                            f"SSE endpoint {self.url} returned {response.status_code}"
                        )
                    self._fail_startup(error)
                    return

                async for event in event_source.aiter_sse():
                    await self._dispatch(event)
        except httpx.HTTPError as e:
            if not self._fail_startup(ConnectFailure(f"Failed to connect to {self.url}: {e}")):
                logger.warning(f"SSE stream from {self.url} failed: {e}")
                await self._emit_error(UnexpectedTransportError(str(e)))
            reason = "stream failed"
        except RelayError as e:
            if not self._fail_startup(e):
                await self._emit_error(e)
            reason = "stream failed"
        except Exception as e:
            if not self._fail_startup(ConnectFailure(f"Failed to connect to {self.url}: {e!r}")):
                logger.warning(f"SSE stream from {self.url} failed: {e!r}", exc_info=True)
                await self._emit_error(UnexpectedTransportError(repr(e)))
            reason = "stream failed"
        finally:
            # No-op once start() has its answer
            self._fail_startup(ConnectFailure(f"SSE stream from {self.url} ended before endpoint event"))
            await self.close(reason)

    async def _dispatch(self, event: ServerSentEvent) -> None:
        if event.event == "endpoint":
            self._set_endpoint(event.data)
        elif event.event == "message":
            try:
                message = Message.from_json(event.data)
            except InvalidMessage as e:
                logger.debug(f"Discarding invalid SSE message event: {event.data[:200]}")
                await self._emit_error(e, fatal=False)
                return
            logger.debug(f"<- sse {self.url}: {message}")
            await self._emit_message(message)
        else:
            logger.debug(f"Ignoring SSE event '{event.event}' from {self.url}")

    def _set_endpoint(self, data: str) -> None:
        endpoint = urljoin(self.url, data.strip())
        stream_origin = urlsplit(self.url)[:2]
        if urlsplit(endpoint)[:2] != stream_origin:
            raise ConnectFailure(f"Endpoint origin does not match connection origin: {endpoint}")
        self.endpoint = endpoint
        if self._endpoint_ready is not None and not self._endpoint_ready.done():
            self._endpoint_ready.set_result(endpoint)

    async def send(self, message: Message) -> None:
        if self._closing or self._client is None or self.endpoint is None:
            raise RelayClosed("sse transport is not connected")

        logger.debug(f"-> sse {self.endpoint}: {message}")
        try:
            response = await self._client.post(
                self.endpoint,
                content=message.to_json().encode("utf-8"),
                headers={**self.headers, "Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise UnexpectedTransportError(f"POST to {self.endpoint} failed: {e}")

        if response.status_code >= 400:
            raise UnexpectedTransportError(
                f"POST to {self.endpoint} returned {response.status_code}: {response.text[:200]}"
            )

    async def _close(self) -> None:
        if self._reader_task and self._reader_task is not asyncio.current_task():
            self._reader_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._reader_task

        if self._owns_client and self._client is not None:
            await self._client.aclose()
