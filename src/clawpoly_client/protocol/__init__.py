"""Control channel protocol: JSON-RPC messages, reply/stream codec, errors."""

from .codec import SSEFrameDecoder, decode_reply, parse_frame
from .errors import (
    AgentInvocationError,
    ClawpolyError,
    DecodeError,
    HandshakeError,
    NotInitializedError,
    ProtocolError,
    TransportError,
)
from .messages import PROTOCOL_VERSION, JsonRpcRequest, RpcMethod

__all__ = [
    # Codec
    "SSEFrameDecoder",
    "decode_reply",
    "parse_frame",
    # Messages
    "JsonRpcRequest",
    "RpcMethod",
    "PROTOCOL_VERSION",
    # Errors
    "ClawpolyError",
    "TransportError",
    "HandshakeError",
    "ProtocolError",
    "NotInitializedError",
    "DecodeError",
    "AgentInvocationError",
]
