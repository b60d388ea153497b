"""Tests for the bidirectional relay."""
import asyncio

import pytest

from inspector_proxy.models.message import Message
from inspector_proxy.services.relay import Relay, RelayState, _running_relays, wire
from inspector_proxy.utils.errors import InvalidMessage, UnexpectedTransportError


def _request(i: int) -> Message:
    return Message.from_obj({"jsonrpc": "2.0", "id": i, "method": "tools/call", "params": {"n": i}})


def _response(i: int) -> Message:
    return Message.from_obj({"jsonrpc": "2.0", "id": i, "result": {"n": i}})


class TestForwarding:
    """Messages cross the relay unchanged and in order."""

    @pytest.mark.asyncio
    async def test_client_to_server_in_order(self, fake_transport, eventually):
        client, server = fake_transport(), fake_transport()
        relay = wire(client, server)

        for i in range(20):
            await client.inject(_request(i))

        await eventually(lambda: len(server.sent) == 20)
        assert [m.payload for m in server.sent] == [_request(i).payload for i in range(20)]
        assert client.sent == []

        await client.close()
        await relay.wait_closed()

    @pytest.mark.asyncio
    async def test_server_to_client_in_order(self, fake_transport, eventually):
        client, server = fake_transport(), fake_transport()
        relay = wire(client, server)

        await server.inject(Message.notification("notifications/progress", {"progress": 1}))
        for i in range(5):
            await server.inject(_response(i))

        await eventually(lambda: len(client.sent) == 6)
        assert client.sent[0].method == "notifications/progress"
        assert [m.id for m in client.sent[1:]] == list(range(5))

        await server.close()
        await relay.wait_closed()

    @pytest.mark.asyncio
    async def test_unknown_fields_survive(self, fake_transport, eventually):
        client, server = fake_transport(), fake_transport()
        relay = wire(client, server)
        payload = {"jsonrpc": "2.0", "id": "x", "method": "custom/thing", "params": {}, "extra": [1, {"a": None}]}

        await client.inject(Message.from_obj(payload))

        await eventually(lambda: len(server.sent) == 1)
        assert server.sent[0].payload == payload

        await client.close()
        await relay.wait_closed()


class TestTeardown:
    """Any terminal event closes both sides exactly once."""

    @pytest.mark.asyncio
    async def test_client_close_closes_server(self, fake_transport):
        client, server = fake_transport(), fake_transport()
        closed_calls = []

        async def on_closed():
            closed_calls.append(True)

        relay = wire(client, server, on_closed=on_closed)
        await client.close("browser disconnected")
        await asyncio.wait_for(relay.wait_closed(), 5)

        assert server.is_closed
        assert client.close_calls == 1
        assert server.close_calls == 1
        assert closed_calls == [True]
        assert relay.state is RelayState.CLOSED
        assert relay not in _running_relays

    @pytest.mark.asyncio
    async def test_simultaneous_close_tears_down_once(self, fake_transport):
        client, server = fake_transport(), fake_transport()
        closed_calls = []

        async def on_closed():
            closed_calls.append(True)

        relay = wire(client, server, on_closed=on_closed)
        await asyncio.gather(client.close(), server.close(), client.close())
        await asyncio.wait_for(relay.wait_closed(), 5)

        assert closed_calls == [True]
        assert client.close_calls == 1
        assert server.close_calls == 1

    @pytest.mark.asyncio
    async def test_fatal_error_tears_down(self, fake_transport):
        client, server = fake_transport(), fake_transport()
        relay = wire(client, server)

        await server.fail(UnexpectedTransportError("stream reset"))
        await asyncio.wait_for(relay.wait_closed(), 5)

        assert client.is_closed and server.is_closed
        assert "error" in relay.close_reason

    @pytest.mark.asyncio
    async def test_non_fatal_error_is_skipped(self, fake_transport, eventually):
        client, server = fake_transport(), fake_transport()
        relay = wire(client, server)

        await server.fail(InvalidMessage("not json"), fatal=False)
        await server.inject(_response(1))

        await eventually(lambda: len(client.sent) == 1)
        assert relay.state is RelayState.ACTIVE

        await client.close()
        await relay.wait_closed()

    @pytest.mark.asyncio
    async def test_send_failure_tears_down(self, fake_transport):
        client, server = fake_transport(), fake_transport(fail_send=True)
        relay = wire(client, server)

        await client.inject(_request(1))
        await asyncio.wait_for(relay.wait_closed(), 5)

        assert client.is_closed and server.is_closed
        assert relay.close_reason == "fake send failed"

    @pytest.mark.asyncio
    async def test_on_closed_failure_is_contained(self, fake_transport):
        client, server = fake_transport(), fake_transport()

        async def on_closed():
            raise RuntimeError("boom")

        relay = wire(client, server, on_closed=on_closed)
        await server.close()
        await asyncio.wait_for(relay.wait_closed(), 5)

        assert relay.state is RelayState.CLOSED

    @pytest.mark.asyncio
    async def test_side_task_cancelled_on_teardown(self, fake_transport):
        client, server = fake_transport(), fake_transport()
        relay = wire(client, server)
        side = asyncio.create_task(asyncio.sleep(3600))
        relay.track(side)

        await client.close()
        await asyncio.wait_for(relay.wait_closed(), 5)

        assert side.cancelled()

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, fake_transport, eventually):
        a_client, a_server = fake_transport(), fake_transport()
        b_client, b_server = fake_transport(), fake_transport()
        relay_a = wire(a_client, a_server)
        relay_b = wire(b_client, b_server)

        await a_client.close()
        await relay_a.wait_closed()
        await b_client.inject(_request(9))

        await eventually(lambda: len(b_server.sent) == 1)
        assert relay_b.state is RelayState.ACTIVE
        assert not b_server.is_closed

        await b_client.close()
        await relay_b.wait_closed()


@pytest.mark.asyncio
async def test_start_twice_rejected(fake_transport):
    client, server = fake_transport(), fake_transport()
    relay = Relay(client, server)
    relay.start()

    with pytest.raises(RuntimeError):
        relay.start()

    await client.close()
    await relay.wait_closed()
