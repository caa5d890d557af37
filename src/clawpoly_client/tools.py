"""Operator-facing game operations.

Each operation returns a ToolResult and never raises: transport, protocol
and session failures come back as ``success=False`` with the message.

Usage:
    tools = GameTools(context, sessions)
    result = await tools.register("CrabBot")
    result = await tools.decide("build:6")
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .protocol.errors import ClawpolyError
from .session import ClientContext, SessionManager

logger = logging.getLogger(__name__)

# Accepted decide actions; INDEX is a non-negative board position
ACTION_PATTERN = re.compile(
    r"(?:buy|pass|skip_build|escape_pay|escape_card|escape_roll|(?:build|upgrade):[0-9]+)"
)

NO_TOKEN = "No agentToken. Call clawpoly_register first."
NOT_CONNECTED = "Not connected."


def is_valid_action(action: str) -> bool:
    """Check an action string against the decide grammar."""
    return ACTION_PATTERN.fullmatch(action) is not None


@dataclass
class ToolResult:
    """Result from an operator operation.

    Attributes:
        success: Whether the operation succeeded
        output: Server result (any JSON-serializable value)
        error: Error message if success is False
    """

    success: bool = True
    output: Any = None
    error: str | None = None

    @property
    def text(self) -> str:
        if not self.success:
            return self.error or "Unknown error"
        return json.dumps(self.output, indent=2, ensure_ascii=False)

    def to_content(self) -> dict[str, Any]:
        """MCP-style tool reply envelope."""
        content: dict[str, Any] = {"content": [{"type": "text", "text": self.text}]}
        if not self.success:
            content["isError"] = True
        return content


RegisteredHook = Callable[[str], Awaitable[None]]


class GameTools:
    """register / start_with_bots / join_queue / get_state / decide."""

    def __init__(
        self,
        context: ClientContext,
        sessions: SessionManager,
        on_registered: RegisteredHook | None = None,
    ):
        self._context = context
        self._sessions = sessions
        self._on_registered = on_registered

    @property
    def agent_token(self) -> str | None:
        return self._context.session.agent_token

    async def _call(self, name: str, arguments: dict[str, Any], ensure: bool) -> ToolResult:
        try:
            if ensure:
                await self._sessions.establish()
            output = await self._sessions.call(name, arguments)
        except ClawpolyError as e:
            logger.error(f"{name} failed: {e}")
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, output=output)

    async def register(self, name: str) -> ToolResult:
        """Register a new agent and keep its token."""
        if not name:
            return ToolResult(success=False, error="Agent name is required.")

        result = await self._call("clawpoly_register", {"name": name}, ensure=True)
        token = result.output.get("agentToken") if isinstance(result.output, dict) else None
        if result.success and token:
            self._context.session.agent_token = token
            logger.info(f'Registered as "{name}". Add agentToken to plugin config to persist.')
            if self._on_registered:
                await self._on_registered(token)
        return result

    async def start_with_bots(self) -> ToolResult:
        """Start a game immediately against bot opponents."""
        if not self.agent_token:
            return ToolResult(success=False, error=NO_TOKEN)
        return await self._call(
            "clawpoly_start_with_bots", {"agentToken": self.agent_token}, ensure=True
        )

    async def join_queue(self) -> ToolResult:
        """Join the matchmaking queue."""
        if not self.agent_token:
            return ToolResult(success=False, error=NO_TOKEN)
        return await self._call(
            "clawpoly_join_queue", {"agentToken": self.agent_token}, ensure=True
        )

    async def get_state(self) -> ToolResult:
        """Fetch and cache the current game state."""
        if not self.agent_token or not self._sessions.has_session:
            return ToolResult(success=False, error=NOT_CONNECTED)
        result = await self._call(
            "clawpoly_get_state", {"agentToken": self.agent_token}, ensure=False
        )
        self._store_snapshot(result)
        return result

    async def decide(self, action: str) -> ToolResult:
        """Submit a decision and cache the resulting state."""
        if not self.agent_token or not self._sessions.has_session:
            return ToolResult(success=False, error=NOT_CONNECTED)
        if not is_valid_action(action):
            return ToolResult(success=False, error=f"Invalid action: {action!r}")
        result = await self._call(
            "clawpoly_get_state",
            {"agentToken": self.agent_token, "action": action},
            ensure=False,
        )
        self._store_snapshot(result)
        return result

    def _store_snapshot(self, result: ToolResult) -> None:
        # Replaced wholesale, never merged
        if result.success and isinstance(result.output, dict):
            self._context.snapshot = result.output
