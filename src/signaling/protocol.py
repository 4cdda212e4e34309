"""Signaling wire protocol definitions.

Frames are JSON objects with a mandatory ``type`` string. Outbound control
frames are Pydantic models; inbound frames are decoded into a small tagged
variant so the dispatcher never handles an untyped blob.
"""

import json
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.signaling.errors import FrameDecodeError

JOIN_TYPE = "join"
PING_TYPE = "ping"


class JoinMessage(BaseModel):
    """Client → Server: session/room announcement.

    Sent exactly once per successful (re)connection, before anything else.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["join"] = JOIN_TYPE
    session_id: str = Field(..., min_length=1, alias="sessionId")


class PingMessage(BaseModel):
    """Client → Server: heartbeat keepalive."""

    type: Literal["ping"] = PING_TYPE


class ChatMessage(BaseModel):
    """Client ↔ Server: free-form text message used by the CLI client."""

    type: Literal["chat"] = "chat"
    text: str = Field(..., min_length=1)


class ServerErrorFrame(BaseModel):
    """Inbound frame carrying a top-level error field.

    Takes priority over type-based routing.
    """

    error: str
    type: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class TypedFrame(BaseModel):
    """Inbound frame with a string type tag."""

    type: str
    payload: dict[str, Any]


class UnrecognizedFrame(BaseModel):
    """Well-formed JSON that carries no usable type tag."""

    payload: Any = None


InboundFrame = ServerErrorFrame | TypedFrame | UnrecognizedFrame


def encode_frame(message: BaseModel | Mapping[str, Any]) -> str:
    """Serialize an outbound message to JSON text.

    Args:
        message: Pydantic model or mapping with a ``type`` key

    Returns:
        JSON string ready for the transport

    Raises:
        TypeError: If the message is not a model or mapping, or cannot be serialized
        ValueError: If the message has no string ``type``
    """
    if isinstance(message, BaseModel):
        return message.model_dump_json(by_alias=True)

    if not isinstance(message, Mapping):
        raise TypeError(
            f"Outbound message must be a model or mapping, got {type(message).__name__}"
        )

    if not isinstance(message.get("type"), str):
        raise ValueError("Outbound message requires a string 'type' field")
    return json.dumps(dict(message))


def decode_frame(raw: str | bytes) -> InboundFrame:
    """Decode one inbound frame.

    Args:
        raw: Text (or UTF-8 bytes) frame from the transport

    Returns:
        Tagged inbound frame

    Raises:
        FrameDecodeError: If the frame is not valid JSON or nests too deeply
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
        raise FrameDecodeError(f"Invalid frame: {e}", raw=raw) from e

    if not isinstance(data, dict):
        return UnrecognizedFrame(payload=data)

    error = data.get("error")
    if error:
        msg_type = data.get("type")
        return ServerErrorFrame(
            error=str(error),
            type=msg_type if isinstance(msg_type, str) else None,
            payload=data,
        )

    msg_type = data.get("type")
    if not isinstance(msg_type, str):
        return UnrecognizedFrame(payload=data)

    return TypedFrame(type=msg_type, payload=data)
