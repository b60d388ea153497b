"""
Base transport interface.

A transport is a bidirectional message channel. Inbound traffic is exposed as
an ordered stream of events rather than callbacks, so the relay can be written
as a plain consumer of two such streams.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Union

from inspector_proxy.config import settings
from inspector_proxy.models.message import Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageEvent:
    """A message received from the remote side."""

    message: Message


@dataclass(frozen=True)
class ErrorEvent:
    """
    A transport-level failure.

    Non-fatal errors (an unparseable line, for example) leave the transport
    usable; fatal ones are followed by a CloseEvent.
    """

    error: BaseException
    fatal: bool = True


@dataclass(frozen=True)
class CloseEvent:
    """Terminal event: the transport is closed and will produce nothing else."""

    reason: Optional[str] = None


TransportEvent = Union[MessageEvent, ErrorEvent, CloseEvent]


class Transport(ABC):
    """
    Abstract base class for all transports.

    Subclasses implement ``start``, ``send`` and ``_close``. The base class
    owns the event queue and makes ``close`` idempotent: the CloseEvent is
    emitted at most once and ``is_closed`` becomes true as soon as closing
    starts.

    At most ``queue_size`` message and error events wait in the queue.
    Readers emitting beyond that wait until the consumer catches up.
    """

    transport_type: str = "abstract"

    def __init__(self, queue_size: Optional[int] = None):
        self._events: "asyncio.Queue[TransportEvent]" = asyncio.Queue()
        self._capacity = asyncio.Semaphore(queue_size or settings.RELAY_QUEUE_SIZE)
        self._closing = False
        self._close_emitted = False
        self._closed = asyncio.Event()

    @property
    def is_closed(self) -> bool:
        """True once close has started."""
        return self._closing

    @abstractmethod
    async def start(self) -> None:
        """Open the underlying channel."""

    @abstractmethod
    async def send(self, message: Message) -> None:
        """
        Deliver a message to the remote side.

        Raises:
            RelayClosed: If the transport is closed
            UnexpectedTransportError: If the underlying I/O fails
        """

    @abstractmethod
    async def _close(self) -> None:
        """Release the underlying channel. Called at most once."""

    async def close(self, reason: Optional[str] = None) -> None:
        """Close the transport. Safe to call more than once."""
        if self._closing:
            return
        self._closing = True
        try:
            await self._close()
        except Exception as e:
            logger.warning(f"Error closing {self.transport_type} transport: {e}", exc_info=True)
        finally:
            self._emit_close(reason)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def events(self) -> AsyncIterator[TransportEvent]:
        """Yield inbound events in arrival order, ending after the CloseEvent."""
        while True:
            event = await self._events.get()
            if not isinstance(event, CloseEvent):
                self._capacity.release()
            yield event
            if isinstance(event, CloseEvent):
                return

    async def _reserve(self) -> bool:
        """Wait for queue capacity. Returns False if the transport closed meanwhile."""
        await self._capacity.acquire()
        if self._close_emitted:
            # Pass the wake-up on to the next blocked emitter
            self._capacity.release()
            return False
        return True

    async def _emit_message(self, message: Message) -> bool:
        """Queue an inbound message. Returns False if it was dropped on close."""
        if not await self._reserve():
            return False
        self._events.put_nowait(MessageEvent(message))
        return True

    async def _emit_error(self, error: BaseException, fatal: bool = True) -> None:
        if await self._reserve():
            self._events.put_nowait(ErrorEvent(error, fatal=fatal))

    def _emit_close(self, reason: Optional[str] = None) -> None:
        if self._close_emitted:
            return
        self._close_emitted = True
        self._events.put_nowait(CloseEvent(reason))
        self._closed.set()
        # Wake emitters blocked on a full queue so they can see the close
        self._capacity.release()
