"""
Upstream transport factory.

Turns the query parameters of a connect request into a started transport
talking to the real MCP server: either a spawned child process (stdio) or a
remote event stream (sse).
"""
import json
import logging
import os
import shlex
import shutil
from typing import Dict, List, Mapping, Optional, Tuple

from mcp.client.stdio import get_default_environment
from pydantic import ValidationError

from inspector_proxy.config import settings
from inspector_proxy.schemas.relay import ConnectionParameters, SseParameters, StdioParameters
from inspector_proxy.transports.base import Transport
from inspector_proxy.transports.sse_client import StreamTransport
from inspector_proxy.transports.stdio import ProcessTransport
from inspector_proxy.utils.errors import (
    ConnectFailure,
    InvalidParameters,
    InvalidTransportType,
    RelayError,
)

logger = logging.getLogger(__name__)

WINDOWS_SHELL_SCRIPT_SUFFIXES = (".cmd", ".bat")


def default_environment() -> Dict[str, str]:
    """
    Variables every spawned server receives.

    The MCP SDK's safe inherited set (HOME, PATH, USER, ...) overlaid with the
    MCP_ENV_VARS setting.
    """
    return {**get_default_environment(), **settings.MCP_ENV_VARS}


def merge_environment(
    process_env: Mapping[str, str],
    defaults: Mapping[str, str],
    overrides: Mapping[str, str],
) -> Dict[str, str]:
    """
    Merge the three environment layers for a spawned server.

    Precedence, lowest to highest:
        1. process_env - the proxy's own environment
        2. defaults    - default_environment()
        3. overrides   - variables supplied with the connect request
    """
    merged: Dict[str, str] = {}
    for layer in (process_env, defaults, overrides):
        merged.update({str(key): str(value) for key, value in layer.items()})
    return merged


def resolve_executable(
    command: str,
    args: List[str],
    env: Optional[Mapping[str, str]] = None,
) -> Tuple[str, List[str]]:
    """
    Resolve a command the way a shell would.

    Bare names are looked up on the PATH of ``env``. On Windows, batch
    scripts are run through ``cmd.exe /c``. A command that cannot be found is
    returned unchanged so that spawning it reports the failure.
    """
    search_path = (env or os.environ).get("PATH")
    resolved = shutil.which(command, path=search_path) or command

    if os.name == "nt" and resolved.lower().endswith(WINDOWS_SHELL_SCRIPT_SUFFIXES):
        return "cmd.exe", ["/c", resolved, *args]
    return resolved, list(args)


def parse_connection_parameters(query: Mapping[str, str]) -> ConnectionParameters:
    """
    Build connection parameters from connect request query parameters.

    Raises:
        InvalidTransportType: If transportType is neither stdio nor sse
        InvalidParameters: If required parameters are missing or malformed
    """
    transport_type = query.get("transportType")

    try:
        if transport_type == "stdio":
            command = query.get("command")
            if not command:
                raise InvalidParameters("'command' is required for stdio transport")
            try:
                args = shlex.split(query.get("args") or "")
            except ValueError as e:
                raise InvalidParameters(f"Invalid 'args': {e}")
            env = _parse_env(query.get("env"))
            return StdioParameters(command=command, args=args, env=env)

        if transport_type == "sse":
            url = query.get("url")
            if not url:
                raise InvalidParameters("'url' is required for sse transport")
            return SseParameters(url=url)
    except ValidationError as e:
        raise InvalidParameters(f"Invalid connection parameters: {e}")

    logger.error(f"Invalid transport type: {transport_type}")
    raise InvalidTransportType(f"Invalid transport type specified: {transport_type!r}")


def _parse_env(raw: Optional[str]) -> Dict[str, str]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidParameters(f"'env' must be a JSON object: {e}")
    if not isinstance(parsed, dict):
        raise InvalidParameters("'env' must be a JSON object")
    return {str(key): str(value) for key, value in parsed.items()}


async def create_upstream_transport(
    params: ConnectionParameters,
    passthrough: Optional[Mapping[str, str]] = None,
) -> Transport:
    """
    Construct and start the transport to the real MCP server.

    Args:
        params: Stdio or SSE connection parameters
        passthrough: Allow-listed headers from the browser request (sse only)

    Returns:
        A started transport

    Raises:
        InvalidTransportType: For an unknown parameter type
        SpawnFailure: If the stdio executable cannot be started
        AuthFailure: If the SSE server answers the handshake with 401
        ConnectFailure: For any other startup error
    """
    if isinstance(params, StdioParameters):
        env = merge_environment(os.environ, default_environment(), params.env)
        command, args = resolve_executable(params.command, params.args, env)
        logger.info(f"Stdio transport: command={command}, args={args}")
        transport: Transport = ProcessTransport(command, args, env=env)
    elif isinstance(params, SseParameters):
        headers = {**params.headers, **(passthrough or {})}
        logger.info(f"SSE transport: url={params.url}, headers={list(headers)}")
        transport = StreamTransport(params.url, headers=headers)
    else:
        raise InvalidTransportType(f"Unsupported connection parameters: {type(params).__name__}")

    try:
        await transport.start()
    except RelayError:
        raise
    except Exception as e:
        logger.exception(f"Failed to start {transport.transport_type} transport")
        await transport.close("start failed")
        raise ConnectFailure(f"Failed to start {transport.transport_type} transport: {e}")

    return transport
