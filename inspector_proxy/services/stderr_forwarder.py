"""Forward a child process's stderr to the browser as notifications."""
import asyncio
import codecs
import logging
from typing import Optional

from inspector_proxy.config import settings
from inspector_proxy.models.message import Message
from inspector_proxy.observability import record_stderr_chunk
from inspector_proxy.transports.base import Transport
from inspector_proxy.transports.stdio import ProcessTransport
from inspector_proxy.utils.errors import RelayError

logger = logging.getLogger(__name__)

STDERR_NOTIFICATION_METHOD = "notifications/stderr"


def stderr_notification(content: str) -> Message:
    """Build the out-of-band notification carrying one stderr chunk."""
    return Message.notification(STDERR_NOTIFICATION_METHOD, {"content": content})


async def pump_stderr(
    process: ProcessTransport,
    to_client: Transport,
    chunk_size: Optional[int] = None,
) -> None:
    """
    Send each stderr chunk of ``process`` to ``to_client`` in arrival order.

    Chunks are whatever the pipe delivers; there is no line reassembly. An
    incremental decoder keeps multi-byte characters that straddle two chunks
    intact. Returns on EOF or once the client transport rejects a send.
    """
    stream = process.stderr
    if stream is None:
        return

    chunk_size = chunk_size or settings.STDERR_CHUNK_SIZE
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    while True:
        chunk = await stream.read(chunk_size)
        final = not chunk
        text = decoder.decode(chunk, final=final)
        if text:
            try:
                await to_client.send(stderr_notification(text))
            except RelayError as e:
                logger.debug(f"Stopping stderr forwarding for pid {process.pid}: {e}")
                return
            record_stderr_chunk()
        if final:
            logger.debug(f"stderr of pid {process.pid} reached EOF")
            return


def forward_stderr(process: ProcessTransport, to_client: Transport) -> asyncio.Task:
    """Start forwarding stderr in the background and return the task."""
    return asyncio.create_task(pump_stderr(process, to_client))
