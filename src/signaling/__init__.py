"""Resilient signaling channel.

A single bidirectional, message-oriented channel over a websocket that can
stall, drop, or never open. Higher-level features (room membership, call
negotiation, live captions) register handlers by message type and send
frames through the connection manager.
"""

from src.signaling.config import ConnectionConfig, EndpointConfig, SignalingConfig
from src.signaling.dispatch import HandlerRegistry, MessageHandler
from src.signaling.endpoint import (
    EndpointResolver,
    OriginEndpoint,
    StaticEndpoint,
    resolve_endpoint,
)
from src.signaling.errors import (
    FrameDecodeError,
    HandlerError,
    HeartbeatError,
    ReconnectExhaustedError,
    SendError,
    ServerReportedError,
    SignalingError,
    TransportSetupError,
    UnexpectedCloseError,
)
from src.signaling.manager import ConnectionManager, ConnectionState
from src.signaling.protocol import (
    ChatMessage,
    JoinMessage,
    PingMessage,
    ServerErrorFrame,
    TypedFrame,
    UnrecognizedFrame,
    decode_frame,
    encode_frame,
)
from src.signaling.retry import RetryState

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "ConnectionConfig",
    "EndpointConfig",
    "SignalingConfig",
    "HandlerRegistry",
    "MessageHandler",
    "EndpointResolver",
    "OriginEndpoint",
    "StaticEndpoint",
    "resolve_endpoint",
    "RetryState",
    "JoinMessage",
    "PingMessage",
    "ChatMessage",
    "ServerErrorFrame",
    "TypedFrame",
    "UnrecognizedFrame",
    "decode_frame",
    "encode_frame",
    "SignalingError",
    "TransportSetupError",
    "UnexpectedCloseError",
    "FrameDecodeError",
    "ServerReportedError",
    "ReconnectExhaustedError",
    "SendError",
    "HeartbeatError",
    "HandlerError",
]
