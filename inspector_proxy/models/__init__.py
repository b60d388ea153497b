"""Relay data models."""

from inspector_proxy.models.message import JSONRPC_VERSION, Message, MessageKind, classify

__all__ = ["JSONRPC_VERSION", "Message", "MessageKind", "classify"]
