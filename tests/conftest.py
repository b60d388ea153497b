"""Pytest configuration and fixtures for test suite."""
import asyncio
import sys
import textwrap
from typing import Callable, List, Optional, Union

import httpx
import pytest

from inspector_proxy.models.message import Message
from inspector_proxy.transports.base import Transport, TransportEvent
from inspector_proxy.utils.errors import RelayClosed, UnexpectedTransportError


# Stdio MCP server stand-in: answers every request with its method and params
ECHO_SERVER = textwrap.dedent(
    """
    import json, sys
    while True:
        line = sys.stdin.readline()
        if not line:
            break
        msg = json.loads(line)
        if "id" in msg and "method" in msg:
            reply = {"jsonrpc": "2.0", "id": msg["id"],
                     "result": {"method": msg["method"], "params": msg.get("params")}}
            sys.stdout.write(json.dumps(reply) + "\\n")
            sys.stdout.flush()
    """
)

# Writes one stderr line, then blocks until stdin closes
STDERR_SERVER = textwrap.dedent(
    """
    import sys
    sys.stderr.write("warning: low memory\\n")
    sys.stderr.flush()
    sys.stdin.readline()
    """
)

# Never reads stdin and never exits on its own
SLEEPY_SERVER = "import time\nwhile True:\n    time.sleep(1)\n"


class FakeTransport(Transport):
    """In-memory transport recording everything sent to it."""

    transport_type = "fake"

    def __init__(self, fail_send: bool = False, queue_size: Optional[int] = None):
        super().__init__(queue_size)
        self.sent: List[Message] = []
        self.close_calls = 0
        self.started = False
        self.fail_send = fail_send

    async def start(self) -> None:
        self.started = True

    async def send(self, message: Message) -> None:
        if self._closing:
            raise RelayClosed("fake transport closed")
        if self.fail_send:
            raise UnexpectedTransportError("simulated send failure")
        self.sent.append(message)

    async def _close(self) -> None:
        self.close_calls += 1

    async def inject(self, message: Message) -> bool:
        """Simulate a message arriving from the remote side."""
        return await self._emit_message(message)

    async def fail(self, error: BaseException, fatal: bool = True) -> None:
        """Simulate a transport error."""
        await self._emit_error(error, fatal=fatal)


class FakeSSEServer:
    """Scripted remote MCP server behind an httpx mock transport."""

    def __init__(self, status_code: int = 200, body: bytes = b"", content_type: str = "text/event-stream"):
        self.status_code = status_code
        self.body = body
        self.content_type = content_type
        self.post_status = 202
        self.stream_requests: List[httpx.Request] = []
        self.posts: List[httpx.Request] = []
        self._chunks: "asyncio.Queue[Optional[Union[bytes, BaseException]]]" = asyncio.Queue()

    def push(self, event: str, data: str) -> None:
        self._chunks.put_nowait(f"event: {event}\ndata: {data}\n\n".encode("utf-8"))

    def end(self) -> None:
        self._chunks.put_nowait(None)

    def break_stream(self, error: BaseException) -> None:
        """Make the open event stream raise ``error``."""
        self._chunks.put_nowait(error)

    async def _stream(self):
        while True:
            chunk = await self._chunks.get()
            if chunk is None:
                return
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            self.posts.append(request)
            return httpx.Response(self.post_status, text="Accepted")

        self.stream_requests.append(request)
        if self.status_code != 200:
            return httpx.Response(
                self.status_code,
                content=self.body,
                headers={"content-type": self.content_type},
            )
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=self._stream(),
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def python_command(script: str) -> List[str]:
    """Command line running ``script`` with the current interpreter."""
    return [sys.executable, "-u", "-c", script]


@pytest.fixture
def fake_transport() -> Callable[..., FakeTransport]:
    """Factory for in-memory transports."""
    return FakeTransport


@pytest.fixture
def fake_sse_server():
    """Factory for scripted remote SSE servers."""
    return FakeSSEServer


@pytest.fixture
def script_command() -> Callable[[str], List[str]]:
    return python_command


@pytest.fixture
def echo_server() -> List[str]:
    return python_command(ECHO_SERVER)


@pytest.fixture
def stderr_server() -> List[str]:
    return python_command(STDERR_SERVER)


@pytest.fixture
def sleepy_server() -> List[str]:
    return python_command(SLEEPY_SERVER)


@pytest.fixture
def next_event():
    """Await the next event of a transport with a timeout."""
    async def _next_event(transport: Transport, timeout: float = 5.0) -> TransportEvent:
        return await asyncio.wait_for(transport.events().__anext__(), timeout)

    return _next_event


@pytest.fixture
def eventually():
    """Poll a condition until it holds or the timeout expires."""
    async def _eventually(condition: Callable[[], bool], timeout: float = 5.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not condition():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.01)

    return _eventually

