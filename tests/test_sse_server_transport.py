"""Tests for the browser-facing SSE transport."""
import asyncio

import pytest

from inspector_proxy.models.message import Message
from inspector_proxy.transports.base import CloseEvent, MessageEvent
from inspector_proxy.transports.sse_server import SseServerTransport
from inspector_proxy.utils.errors import InvalidMessage, RelayClosed


@pytest.mark.asyncio
async def test_endpoint_event_comes_first():
    transport = SseServerTransport("/message", session_id="abc123")
    await transport.start()
    await transport.send(Message.notification("notifications/tools/list_changed"))
    stream = transport.event_stream()

    first = await asyncio.wait_for(stream.__anext__(), 1)
    second = await asyncio.wait_for(stream.__anext__(), 1)

    assert first == {"event": "endpoint", "data": "/message?sessionId=abc123"}
    assert second["event"] == "message"
    assert Message.from_json(second["data"]).method == "notifications/tools/list_changed"

    await stream.aclose()


@pytest.mark.asyncio
async def test_session_ids_are_unique():
    ids = {SseServerTransport().session_id for _ in range(100)}

    assert len(ids) == 100


@pytest.mark.asyncio
async def test_post_message_emits_event(next_event):
    transport = SseServerTransport()
    await transport.start()

    await transport.handle_post_message('{"jsonrpc":"2.0","id":1,"method":"ping"}')

    event = await next_event(transport)
    assert isinstance(event, MessageEvent)
    assert event.message.id == 1
    await transport.close()


@pytest.mark.asyncio
async def test_post_invalid_body_rejected():
    transport = SseServerTransport()
    await transport.start()

    with pytest.raises(InvalidMessage):
        await transport.handle_post_message(b"[1, 2, 3]")

    await transport.close()


@pytest.mark.asyncio
async def test_closed_transport_rejects_traffic():
    transport = SseServerTransport()
    await transport.start()
    await transport.close()

    with pytest.raises(RelayClosed):
        await transport.send(Message.notification("notifications/initialized"))
    with pytest.raises(RelayClosed):
        await transport.handle_post_message('{"jsonrpc":"2.0","method":"x"}')


@pytest.mark.asyncio
async def test_stream_ends_on_close():
    transport = SseServerTransport()
    await transport.start()
    items = []

    async def consume():
        async for item in transport.event_stream():
            items.append(item)

    consumer = asyncio.create_task(consume())
    await transport.close("relay closed")
    await asyncio.wait_for(consumer, 1)

    assert [item["event"] for item in items] == ["endpoint"]


@pytest.mark.asyncio
async def test_disconnect_closes_transport(next_event):
    transport = SseServerTransport()
    await transport.start()
    stream = transport.event_stream()
    await stream.__anext__()

    await stream.aclose()

    assert transport.is_closed
    event = await next_event(transport)
    assert isinstance(event, CloseEvent)
    assert event.reason == "browser disconnected"
