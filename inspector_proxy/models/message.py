"""
JSON-RPC message framing.

Messages are classified only as far as framing requires (``id`` and
``method`` presence). The decoded object is carried as-is and never rewritten.
"""
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from inspector_proxy.utils.errors import InvalidMessage

JSONRPC_VERSION = "2.0"


class MessageKind(str, Enum):
    """Framing-level kind of a JSON-RPC message."""

    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"


def classify(payload: Any) -> MessageKind:
    """
    Determine the kind of a decoded JSON-RPC object.

    Raises:
        InvalidMessage: If the object is not a request, response or notification
    """
    if not isinstance(payload, dict):
        raise InvalidMessage(
            f"JSON-RPC message must be an object, got {type(payload).__name__}"
        )

    if "method" in payload:
        if not isinstance(payload["method"], str):
            raise InvalidMessage("JSON-RPC method must be a string")
        return MessageKind.REQUEST if "id" in payload else MessageKind.NOTIFICATION

    if "id" in payload and ("result" in payload or "error" in payload):
        return MessageKind.RESPONSE

    raise InvalidMessage("Object is not a JSON-RPC request, response or notification")


@dataclass(frozen=True)
class Message:
    """An opaque JSON-RPC message tagged with its framing kind."""

    kind: MessageKind
    payload: Dict[str, Any]

    @classmethod
    def from_obj(cls, payload: Any) -> "Message":
        return cls(kind=classify(payload), payload=payload)

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "Message":
        """
        Decode one framed message.

        Raises:
            InvalidMessage: If the text is not JSON or not a JSON-RPC message
        """
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidMessage(f"Invalid JSON: {e}")
        return cls.from_obj(payload)

    @classmethod
    def notification(cls, method: str, params: Optional[Dict[str, Any]] = None) -> "Message":
        payload: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
        if params is not None:
            payload["params"] = params
        return cls(kind=MessageKind.NOTIFICATION, payload=payload)

    @property
    def id(self) -> Any:
        return self.payload.get("id")

    @property
    def method(self) -> Optional[str]:
        return self.payload.get("method")

    def to_json(self) -> str:
        """Serialize without altering any field."""
        return json.dumps(self.payload, ensure_ascii=False, separators=(",", ":"))

    def __str__(self) -> str:
        if self.kind is MessageKind.RESPONSE:
            return f"<{self.kind.value} id={self.id!r}>"
        if self.kind is MessageKind.REQUEST:
            return f"<{self.kind.value} id={self.id!r} method={self.method}>"
        return f"<{self.kind.value} method={self.method}>"
