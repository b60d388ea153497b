"""
Command line entry point for the inspector proxy.

Usage:
    mcp-inspector-proxy [--env COMMAND] [--args ARGS] [--host HOST] [--port PORT]

Examples:
    # Offer "npx @modelcontextprotocol/server-everything" as the UI default
    mcp-inspector-proxy --env npx --args "@modelcontextprotocol/server-everything"

    # Listen on a different port
    PORT=3001 mcp-inspector-proxy
"""
import argparse
import errno
import logging
import socket
import sys
from typing import List, Optional

import uvicorn

from inspector_proxy.config import settings

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mcp-inspector-proxy",
        description="Relay between the MCP Inspector UI and stdio or SSE MCP servers",
    )
    # The inspector launcher passes the server command as --env
    parser.add_argument("--env", default=settings.DEFAULT_COMMAND, help="Default server command")
    parser.add_argument("--args", default=settings.DEFAULT_ARGS, help="Default server arguments")
    parser.add_argument("--host", default=settings.HOST, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Bind port")
    return parser.parse_args(argv)


def bind_socket(host: str, port: int) -> socket.socket:
    """
    Bind the listening socket up front so a busy port is a fatal startup error.

    Raises:
        OSError: If the address cannot be bound
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


def main(argv: Optional[List[str]] = None) -> int:
    """Run the proxy server. Returns the process exit code."""
    args = parse_args(argv)
    settings.DEFAULT_COMMAND = args.env
    settings.DEFAULT_ARGS = args.args

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        sock = bind_socket(args.host, args.port)
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            logger.error(f"Proxy server port is in use at port {args.port}")
        else:
            logger.error(f"Failed to bind {args.host}:{args.port}: {e}")
        return 1

    logger.info(f"Proxy server listening on port {args.port}")
    config = uvicorn.Config(
        "inspector_proxy.main:app",
        log_level=settings.LOG_LEVEL.lower(),
    )
    server = uvicorn.Server(config)
    server.run(sockets=[sock])
    return 0


if __name__ == "__main__":
    sys.exit(main())
