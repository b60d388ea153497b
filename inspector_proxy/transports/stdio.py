"""
Process transport.

Spawns an MCP server as a child process and speaks newline-delimited JSON-RPC
over its stdin/stdout. The child's stderr is captured as a pipe and exposed as
a raw byte stream for the side-channel forwarder.
"""
import asyncio
import logging
from contextlib import suppress
from typing import Dict, List, Optional

from inspector_proxy.config import settings
from inspector_proxy.models.message import Message
from inspector_proxy.transports.base import Transport
from inspector_proxy.utils.errors import (
    ConnectFailure,
    InvalidMessage,
    RelayClosed,
    SpawnFailure,
    UnexpectedTransportError,
)

logger = logging.getLogger(__name__)

# asyncio's default 64 KiB line limit is too small for large tool listings
STDOUT_LINE_LIMIT = 16 * 1024 * 1024


class ProcessTransport(Transport):
    """Transport backed by a spawned child process."""

    transport_type = "stdio"

    def __init__(
        self,
        command: str,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        terminate_timeout: Optional[float] = None,
    ):
        """
        Initialize the process transport. The child is not spawned until start().

        Args:
            command: Resolved executable to run
            args: Arguments passed to the executable
            env: Complete environment for the child
            terminate_timeout: Seconds to wait after SIGTERM before SIGKILL
        """
        super().__init__()
        self.command = command
        self.args = list(args or [])
        self.env = env
        self.terminate_timeout = terminate_timeout or settings.PROCESS_TERMINATE_TIMEOUT
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.returncode if self._proc else None

    @property
    def stderr(self) -> Optional[asyncio.StreamReader]:
        """Raw stderr byte stream of the child."""
        return self._proc.stderr if self._proc else None

    async def start(self) -> None:
        """
        Spawn the child process and start reading its stdout.

        Raises:
            SpawnFailure: If the executable is missing or not executable
            ConnectFailure: For any other spawn error
        """
        if self._proc is not None:
            raise RuntimeError("ProcessTransport already started")

        logger.info(f"Spawning stdio server: command={self.command}, args={self.args}")
        try:
            self._proc = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.env,
                limit=STDOUT_LINE_LIMIT,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise SpawnFailure(f"Failed to spawn '{self.command}': {e}")
        except OSError as e:
            raise ConnectFailure(f"Failed to start '{self.command}': {e}")

        self._reader_task = asyncio.create_task(self._read_stdout())
        logger.info(f"Spawned stdio server (pid={self._proc.pid})")

    async def send(self, message: Message) -> None:
        if self._closing or self._proc is None or self._proc.stdin is None:
            raise RelayClosed("stdio transport is closed")

        line = message.to_json() + "\n"
        logger.debug(f"-> stdio (pid={self._proc.pid}): {message}")
        async with self._write_lock:
            try:
                self._proc.stdin.write(line.encode("utf-8"))
                await self._proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise UnexpectedTransportError(f"stdin of pid {self._proc.pid} is closed: {e}")

    async def _read_stdout(self) -> None:
        """Pump stdout lines into the event queue until EOF."""
        assert self._proc is not None and self._proc.stdout is not None
        reader = self._proc.stdout
        reason = "process exited"
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                text = line.decode("utf-8", errors="replace").strip()
                if not text:
                    continue
                try:
                    message = Message.from_json(text)
                except InvalidMessage as e:
                    logger.debug(f"Discarding non JSON-RPC stdout line: {text[:200]}")
                    await self._emit_error(e, fatal=False)
                    continue
                logger.debug(f"<- stdio (pid={self._proc.pid}): {message}")
                await self._emit_message(message)
        except Exception as e:
            logger.warning(f"stdout reader for pid {self._proc.pid} failed: {e}", exc_info=True)
            await self._emit_error(UnexpectedTransportError(str(e)))
            reason = "stdout read failed"

        await self.close(reason)

    async def _close(self) -> None:
        if self._reader_task and self._reader_task is not asyncio.current_task():
            self._reader_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._reader_task

        proc = self._proc
        if proc is None:
            return

        if proc.stdin is not None:
            with suppress(Exception):
                proc.stdin.close()

        if proc.returncode is None:
            logger.info(f"Terminating stdio server (pid={proc.pid})")
            with suppress(ProcessLookupError):
                proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=self.terminate_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"stdio server (pid={proc.pid}) ignored SIGTERM for "
                    f"{self.terminate_timeout}s, killing"
                )
                with suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()
        else:
            await proc.wait()

        logger.info(f"stdio server (pid={proc.pid}) exited with code {proc.returncode}")
