"""
Bidirectional relay.

Wires a browser-facing transport to an upstream transport so that each
forwards every message it receives to the other, unmodified and in arrival
order. The relay knows nothing about MCP: capability negotiation happens end
to end between the browser and the real server.
"""
import asyncio
import logging
from contextlib import suppress
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Set

from inspector_proxy.observability import (
    record_message_relayed,
    record_relay_error,
    record_session_closed,
    record_session_opened,
)
from inspector_proxy.transports.base import CloseEvent, ErrorEvent, MessageEvent, Transport
from inspector_proxy.utils.errors import RelayError

logger = logging.getLogger(__name__)

OnClosed = Callable[[], Awaitable[None]]

# Strong references to running relays; the event loop only keeps weak ones to tasks
_running_relays: Set["Relay"] = set()


class RelayState(str, Enum):
    """Lifecycle of a relayed session."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class Relay:
    """
    Pairing of a browser-facing transport and an upstream transport.

    One pump task per direction consumes the source transport's events and
    awaits each send on the target before taking the next event. The first
    close, fatal error or failed send in either direction tears the pair down
    exactly once.
    """

    def __init__(
        self,
        to_client: Transport,
        to_server: Transport,
        on_closed: Optional[OnClosed] = None,
        name: Optional[str] = None,
    ):
        self.to_client = to_client
        self.to_server = to_server
        self.on_closed = on_closed
        self.name = name or getattr(to_client, "session_id", None) or hex(id(self))
        self.state = RelayState.CONNECTING
        self.close_reason: Optional[str] = None
        self._pumps: List[asyncio.Task] = []
        self._side_tasks: List[asyncio.Task] = []
        self._closed = asyncio.Event()

    def start(self) -> None:
        if self.state is not RelayState.CONNECTING:
            raise RuntimeError(f"Relay {self.name} already started")
        self.state = RelayState.ACTIVE
        _running_relays.add(self)
        record_session_opened(self.to_server.transport_type)
        self._pumps = [
            asyncio.create_task(self._pump(self.to_server, self.to_client, "to_client")),
            asyncio.create_task(self._pump(self.to_client, self.to_server, "to_server")),
        ]
        logger.info(
            f"Relay {self.name} active: {self.to_client.transport_type} <-> "
            f"{self.to_server.transport_type}"
        )

    def track(self, task: asyncio.Task) -> None:
        """Tie a side task (e.g. stderr forwarding) to the relay's lifetime."""
        if self.state in (RelayState.CLOSING, RelayState.CLOSED):
            task.cancel()
            return
        self._side_tasks.append(task)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def _pump(self, source: Transport, target: Transport, direction: str) -> None:
        reason = f"{source.transport_type} closed"
        async for event in source.events():
            if isinstance(event, MessageEvent):
                try:
                    await target.send(event.message)
                except Exception as e:
                    kind = e.kind if isinstance(e, RelayError) else "unexpected_transport_error"
                    record_relay_error(kind)
                    logger.warning(
                        f"Relay {self.name}: send {direction} failed ({kind}): {e}"
                    )
                    reason = f"{target.transport_type} send failed"
                    break
                record_message_relayed(direction)
            elif isinstance(event, ErrorEvent):
                kind = event.error.kind if isinstance(event.error, RelayError) else "unexpected_transport_error"
                record_relay_error(kind)
                if not event.fatal:
                    logger.debug(f"Relay {self.name}: {source.transport_type} reported {event.error}")
                    continue
                logger.warning(f"Relay {self.name}: {source.transport_type} error: {event.error}")
                reason = f"{source.transport_type} error"
                break
            elif isinstance(event, CloseEvent):
                if event.reason:
                    reason = f"{source.transport_type} closed: {event.reason}"
                break

        await self._teardown(reason)

    async def _teardown(self, reason: str) -> None:
        if self.state in (RelayState.CLOSING, RelayState.CLOSED):
            return
        self.state = RelayState.CLOSING
        self.close_reason = reason
        logger.info(f"Relay {self.name} closing: {reason}")

        for task in self._side_tasks:
            task.cancel()

        for transport in (self.to_client, self.to_server):
            try:
                await transport.close(reason)
            except Exception as e:
                logger.warning(
                    f"Relay {self.name}: closing {transport.transport_type} failed: {e}",
                    exc_info=True,
                )

        for task in self._side_tasks:
            with suppress(asyncio.CancelledError, Exception):
                await task

        if self.on_closed is not None:
            try:
                await self.on_closed()
            except Exception:
                logger.exception(f"Relay {self.name}: on_closed callback failed")

        record_session_closed(self.to_server.transport_type)
        self.state = RelayState.CLOSED
        self._closed.set()
        _running_relays.discard(self)
        logger.info(f"Relay {self.name} closed")


def wire(
    to_client: Transport,
    to_server: Transport,
    on_closed: Optional[OnClosed] = None,
) -> Relay:
    """
    Connect two started transports into a transparent bidirectional forwarder.

    Args:
        to_client: Transport facing the inspector UI
        to_server: Transport facing the real MCP server
        on_closed: Awaited once after both transports are closed

    Returns:
        The running Relay
    """
    relay = Relay(to_client, to_server, on_closed=on_closed)
    relay.start()
    return relay
