"""JSON-RPC 2.0 message definitions for the control channel.

Requests carry an integer `id` taken from the session's request counter;
notifications carry no `id` and expect no meaningful reply.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

PROTOCOL_VERSION = "2025-03-26"
CLIENT_NAME = "openclaw-plugin-clawpoly"
CLIENT_VERSION = "1.0.0"


class RpcMethod(str, Enum):
    """Control channel methods used by the client."""

    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    TOOLS_CALL = "tools/call"


class JsonRpcRequest(BaseModel):
    """A JSON-RPC request or notification.

    Example:
        {
            "jsonrpc": "2.0",
            "id": 3,
            "method": "tools/call",
            "params": {"name": "clawpoly_get_state", "arguments": {...}}
        }
    """

    jsonrpc: str = "2.0"
    id: int | None = None
    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def to_payload(self) -> dict[str, Any]:
        """Wire form; notifications omit the `id` key entirely."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def create(
        cls,
        method: str | RpcMethod,
        params: dict[str, Any] | None = None,
        request_id: int | None = None,
    ) -> JsonRpcRequest:
        """Factory method for creating requests."""
        return cls(
            id=request_id,
            method=method.value if isinstance(method, RpcMethod) else method,
            params=params or {},
        )

    @classmethod
    def initialize(cls, request_id: int) -> JsonRpcRequest:
        """Create the handshake request."""
        return cls.create(
            RpcMethod.INITIALIZE,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": CLIENT_NAME, "version": CLIENT_VERSION},
            },
            request_id=request_id,
        )

    @classmethod
    def initialized(cls) -> JsonRpcRequest:
        """Create the post-handshake notification."""
        return cls.create(RpcMethod.INITIALIZED)

    @classmethod
    def tool_call(cls, request_id: int, name: str, arguments: dict[str, Any]) -> JsonRpcRequest:
        """Create a tools/call request."""
        return cls.create(
            RpcMethod.TOOLS_CALL,
            {"name": name, "arguments": arguments},
            request_id=request_id,
        )
