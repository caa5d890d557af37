"""Session management for the control channel.

Owns the MCP handshake that produces the session identifier and the
request counter used to correlate replies. Every tool call goes through
`SessionManager.call()`, which refuses to touch the network without a session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .config import ClientConfig
from .protocol.codec import decode_reply
from .protocol.errors import HandshakeError, NotInitializedError
from .protocol.messages import JsonRpcRequest
from .transport import HTTPTransport

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"


@dataclass
class SessionRecord:
    """The single logical session.

    Written only by SessionManager (agent_token also by GameTools on register).
    """

    session_id: str | None = None
    next_request_id: int = 1
    agent_token: str | None = None


@dataclass
class ClientContext:
    """Shared state passed to every component at construction."""

    config: ClientConfig
    session: SessionRecord = field(default_factory=SessionRecord)
    snapshot: dict[str, Any] | None = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> ClientContext:
        return cls(config=config, session=SessionRecord(agent_token=config.agent_token))


class SessionManager:
    """Handshake and correlated calls over the control channel."""

    def __init__(self, context: ClientContext, transport: HTTPTransport):
        self._context = context
        self._transport = transport

    @property
    def session_id(self) -> str | None:
        return self._context.session.session_id

    @property
    def has_session(self) -> bool:
        return self._context.session.session_id is not None

    @property
    def endpoint(self) -> str:
        return self._context.config.server_url

    def _next_id(self) -> int:
        record = self._context.session
        request_id = record.next_request_id
        record.next_request_id += 1
        return request_id

    async def establish(self, endpoint: str | None = None) -> str:
        """Perform the initialize handshake if no session exists yet.

        Returns:
            The session identifier

        Raises:
            HandshakeError: If the reply lacks the session header
            TransportError: If the server could not be reached
        """
        if self.session_id is not None:
            return self.session_id

        url = endpoint or self.endpoint
        logger.info("Initializing MCP session...")

        request = JsonRpcRequest.initialize(self._next_id())
        response = await self._transport.send(url, {}, request.to_payload())

        session_id = response.header(SESSION_HEADER)
        if not session_id:
            raise HandshakeError(
                f"MCP initialize: {SESSION_HEADER} header missing (status {response.status})"
            )

        # Fire-and-forget; the reply carries nothing we need
        notification = JsonRpcRequest.initialized()
        await self._transport.send(url, {SESSION_HEADER: session_id}, notification.to_payload())

        self._context.session.session_id = session_id
        logger.info(f"Session ready: {session_id}")
        return session_id

    async def call(self, name: str, arguments: dict[str, Any]) -> Any:
        """Call a server tool and return its unwrapped result.

        Raises:
            NotInitializedError: If no session exists (no network attempt)
            ProtocolError: If the reply carries an error payload
            DecodeError: If the reply is not valid JSON
            TransportError: If the server could not be reached
        """
        session_id = self.session_id
        if session_id is None:
            raise NotInitializedError("MCP session not initialized")

        request = JsonRpcRequest.tool_call(self._next_id(), name, arguments)
        logger.debug(f"-> {name} (id={request.id})")
        response = await self._transport.send(
            self.endpoint,
            {SESSION_HEADER: session_id},
            request.to_payload(),
        )
        return decode_reply(response.body)

    def teardown(self) -> None:
        """Forget the session. The request counter keeps counting."""
        if self.session_id is not None:
            logger.info(f"Session {self.session_id} released")
        self._context.session.session_id = None
