"""
Browser-facing SSE transport.

The browser holds one GET event stream per session and sends each message
as a separate POST correlated by session id. Outgoing messages are queued here
and drained by the streaming response; inbound POST bodies are injected with
``handle_post_message``.
"""
import asyncio
import logging
import uuid
from typing import Any, AsyncIterator, Dict, Optional, Union

from inspector_proxy.config import settings
from inspector_proxy.models.message import Message
from inspector_proxy.transports.base import Transport
from inspector_proxy.utils.errors import RelayClosed

logger = logging.getLogger(__name__)


class SseServerTransport(Transport):
    """Server side of an SSE session held with the inspector UI."""

    transport_type = "sse-server"

    def __init__(
        self,
        message_path: Optional[str] = None,
        session_id: Optional[str] = None,
        queue_size: Optional[int] = None,
    ):
        super().__init__(queue_size)
        self.session_id = session_id or uuid.uuid4().hex
        self.message_path = message_path or settings.MESSAGE_PATH
        self._outgoing: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue()
        # Message events not yet taken by the streaming response
        self._send_capacity = asyncio.Semaphore(queue_size or settings.RELAY_QUEUE_SIZE)
        self._started = False

    @property
    def endpoint(self) -> str:
        """Relative URL the browser must POST its messages to."""
        return f"{self.message_path}?sessionId={self.session_id}"

    async def start(self) -> None:
        if self._started:
            raise RuntimeError("SseServerTransport already started")
        self._started = True
        self._outgoing.put_nowait({"event": "endpoint", "data": self.endpoint})
        logger.info(f"Session {self.session_id} opened")

    async def send(self, message: Message) -> None:
        if self._closing:
            raise RelayClosed(f"session {self.session_id} is closed")
        await self._send_capacity.acquire()
        if self._closing:
            self._send_capacity.release()
            raise RelayClosed(f"session {self.session_id} is closed")
        logger.debug(f"-> browser {self.session_id}: {message}")
        self._outgoing.put_nowait({"event": "message", "data": message.to_json()})

    async def handle_post_message(self, body: Union[str, bytes]) -> Message:
        """
        Inject a message POSTed by the browser.

        Raises:
            RelayClosed: If the session is closing
            InvalidMessage: If the body is not a JSON-RPC message
        """
        if self._closing:
            raise RelayClosed(f"session {self.session_id} is closed")
        message = Message.from_json(body)
        logger.debug(f"<- browser {self.session_id}: {message}")
        if not await self._emit_message(message):
            raise RelayClosed(f"session {self.session_id} is closed")
        return message

    async def event_stream(self) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield SSE event dicts for ``EventSourceResponse``.

        Ends when the transport closes. If the consumer stops early (the
        browser disconnected) the transport is closed.
        """
        try:
            while True:
                item = await self._outgoing.get()
                if item is None:
                    break
                if item["event"] == "message":
                    self._send_capacity.release()
                yield item
        finally:
            if not self._closing:
                logger.info(f"Browser disconnected from session {self.session_id}")
                await self.close("browser disconnected")

    async def _close(self) -> None:
        self._outgoing.put_nowait(None)
        self._send_capacity.release()
        logger.info(f"Session {self.session_id} closed")
