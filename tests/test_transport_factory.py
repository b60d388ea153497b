"""Tests for upstream transport construction."""
import os
import stat

import pytest

from inspector_proxy.config import settings
from inspector_proxy.models.message import Message
from inspector_proxy.schemas.relay import SseParameters, StdioParameters
from inspector_proxy.services.transport_factory import (
    create_upstream_transport,
    default_environment,
    merge_environment,
    parse_connection_parameters,
    resolve_executable,
)
from inspector_proxy.transports.base import MessageEvent
from inspector_proxy.transports.sse_client import StreamTransport
from inspector_proxy.transports.stdio import ProcessTransport
from inspector_proxy.utils.errors import (
    ConnectFailure,
    InvalidParameters,
    InvalidTransportType,
    SpawnFailure,
)


class TestParseConnectionParameters:
    """Query parameters to connection parameters."""

    def test_stdio(self):
        params = parse_connection_parameters({
            "transportType": "stdio",
            "command": "npx",
            "args": "-y '@modelcontextprotocol/server-everything' --name \"my server\"",
            "env": '{"API_KEY": "k", "DEBUG": 1}',
        })

        assert isinstance(params, StdioParameters)
        assert params.command == "npx"
        assert params.args == ["-y", "@modelcontextprotocol/server-everything", "--name", "my server"]
        assert params.env == {"API_KEY": "k", "DEBUG": "1"}

    def test_stdio_defaults(self):
        params = parse_connection_parameters({"transportType": "stdio", "command": "server"})

        assert params.args == []
        assert params.env == {}

    def test_stdio_requires_command(self):
        with pytest.raises(InvalidParameters):
            parse_connection_parameters({"transportType": "stdio"})

    def test_stdio_env_must_be_object(self):
        with pytest.raises(InvalidParameters):
            parse_connection_parameters({"transportType": "stdio", "command": "x", "env": "[1, 2]"})

    def test_stdio_env_invalid_json(self):
        with pytest.raises(InvalidParameters):
            parse_connection_parameters({"transportType": "stdio", "command": "x", "env": "{oops"})

    def test_stdio_unbalanced_quotes(self):
        with pytest.raises(InvalidParameters):
            parse_connection_parameters({"transportType": "stdio", "command": "x", "args": "'open"})

    def test_sse(self):
        params = parse_connection_parameters({"transportType": "sse", "url": "http://localhost:3001/sse"})

        assert isinstance(params, SseParameters)
        assert params.url == "http://localhost:3001/sse"

    def test_sse_requires_url(self):
        with pytest.raises(InvalidParameters):
            parse_connection_parameters({"transportType": "sse"})

    @pytest.mark.parametrize("transport_type", [None, "", "websocket", "STDIO"])
    def test_unknown_transport_type(self, transport_type):
        query = {} if transport_type is None else {"transportType": transport_type}

        with pytest.raises(InvalidTransportType) as exc_info:
            parse_connection_parameters(query)

        assert exc_info.value.status_code == 400


class TestEnvironment:
    """Environment layering for spawned servers."""

    def test_merge_precedence(self):
        merged = merge_environment(
            {"PATH": "/usr/bin", "HOME": "/root", "ONLY_PROCESS": "p"},
            {"PATH": "/opt/bin", "ONLY_DEFAULT": "d"},
            {"PATH": "/custom/bin"},
        )

        assert merged == {
            "PATH": "/custom/bin",
            "HOME": "/root",
            "ONLY_PROCESS": "p",
            "ONLY_DEFAULT": "d",
        }

    def test_default_environment_includes_configured_vars(self, monkeypatch):
        monkeypatch.setattr(settings, "MCP_ENV_VARS", {"MCP_TOKEN": "abc"})

        env = default_environment()

        assert env["MCP_TOKEN"] == "abc"
        if "PATH" in os.environ:
            assert "PATH" in env


class TestResolveExecutable:
    """PATH lookup of bare command names."""

    @pytest.mark.skipif(os.name == "nt", reason="POSIX executable bits")
    def test_found_on_env_path(self, tmp_path):
        tool = tmp_path / "my-mcp-server"
        tool.write_text("#!/bin/sh\nexit 0\n")
        tool.chmod(tool.stat().st_mode | stat.S_IXUSR)

        command, args = resolve_executable("my-mcp-server", ["--port", "1"], {"PATH": str(tmp_path)})

        assert command == str(tool)
        assert args == ["--port", "1"]

    def test_unknown_command_unchanged(self, tmp_path):
        command, args = resolve_executable("no-such-command-xyz", ["a"], {"PATH": str(tmp_path)})

        assert command == "no-such-command-xyz"
        assert args == ["a"]


class TestCreateUpstreamTransport:
    """Construction and start of upstream transports."""

    @pytest.mark.asyncio
    async def test_stdio_transport_started(self, echo_server, next_event):
        params = StdioParameters(command=echo_server[0], args=echo_server[1:], env={"EXTRA": "1"})

        transport = await create_upstream_transport(params)
        try:
            assert isinstance(transport, ProcessTransport)
            assert transport.env["EXTRA"] == "1"

            await transport.send(Message.from_obj({"jsonrpc": "2.0", "id": 5, "method": "ping"}))
            event = await next_event(transport)
            assert isinstance(event, MessageEvent)
            assert event.message.id == 5
        finally:
            await transport.close()

    @pytest.mark.asyncio
    async def test_stdio_missing_executable(self):
        params = StdioParameters(command="definitely-not-an-mcp-server-xyz")

        with pytest.raises(SpawnFailure):
            await create_upstream_transport(params)

    @pytest.mark.asyncio
    async def test_sse_headers_merged_with_passthrough(self, monkeypatch):
        async def fake_start(self):
            self.endpoint = "http://upstream.test/messages"

        monkeypatch.setattr(StreamTransport, "start", fake_start)
        params = SseParameters(
            url="http://upstream.test/sse",
            headers={"x-api-key": "k", "authorization": "Bearer old"},
        )

        transport = await create_upstream_transport(params, {"authorization": "Bearer new"})
        try:
            assert isinstance(transport, StreamTransport)
            assert transport.headers == {"x-api-key": "k", "authorization": "Bearer new"}
        finally:
            await transport.close()

    @pytest.mark.asyncio
    async def test_unexpected_start_error_is_connect_failure(self, monkeypatch):
        async def broken_start(self):
            raise RuntimeError("socket exploded")

        monkeypatch.setattr(StreamTransport, "start", broken_start)

        with pytest.raises(ConnectFailure) as exc_info:
            await create_upstream_transport(SseParameters(url="http://upstream.test/sse"))

        assert "socket exploded" in exc_info.value.message
