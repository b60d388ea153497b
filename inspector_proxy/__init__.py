"""MCP Inspector proxy: relays browser sessions to stdio and SSE MCP servers."""

__version__ = "0.1.0"
