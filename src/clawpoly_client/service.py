"""Background service wiring session, push stream and coordinator together."""

from __future__ import annotations

import logging

from .agent import AgentInvoker
from .config import ClientConfig
from .coordinator import DecisionCoordinator, DecisionMaker
from .decisions import DecisionEvent
from .protocol.errors import ClawpolyError
from .session import ClientContext, SessionManager
from .stream import StreamSupervisor
from .tools import GameTools
from .transport import HTTPTransport

logger = logging.getLogger(__name__)


class ClawpolyService:
    """Long-running client: keeps a session and a decision stream alive.

    Example:
        service = ClawpolyService(ClientConfig.load())
        await service.start()
        ...
        await service.stop()
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: HTTPTransport | None = None,
        agent: DecisionMaker | None = None,
    ):
        self.context = ClientContext.from_config(config)
        self.transport = transport or HTTPTransport(timeout=config.request_timeout)
        self.sessions = SessionManager(self.context, self.transport)
        self.coordinator = DecisionCoordinator(
            self.context,
            agent
            or AgentInvoker(
                command=config.agent_command,
                agent_id=config.agent_id,
                timeout=config.agent_timeout,
            ),
            after_run=self.refresh_snapshot,
        )
        self.tools = GameTools(self.context, self.sessions, on_registered=self._on_registered)
        self.stream: StreamSupervisor | None = None

    async def start(self) -> bool:
        """Establish the session and open the decision stream.

        Returns:
            True if the stream is running
        """
        if not self.context.session.agent_token:
            logger.info("No agentToken configured. Call clawpoly_register first.")
            return False
        try:
            await self.sessions.establish()
        except ClawpolyError as e:
            logger.error(f"Could not establish session: {e}")
            return False
        await self.refresh_snapshot()
        started = await self.restart_stream()
        if started:
            logger.info("Ready: SSE stream active.")
        return started

    async def restart_stream(self) -> bool:
        """Replace the push stream; the old supervisor is stopped first."""
        if self.stream is not None:
            await self.stream.stop()
        self.stream = StreamSupervisor(self.context, self.transport, self._on_decision)
        return self.stream.start()

    async def stop(self) -> None:
        """Stop streaming and release the session."""
        if self.stream is not None:
            await self.stream.stop()
            self.stream = None
        await self.coordinator.cancel_pending()
        self.sessions.teardown()
        logger.info("Stopped.")

    async def aclose(self) -> None:
        await self.stop()
        await self.transport.aclose()

    async def refresh_snapshot(self) -> None:
        """Re-read game state so the next instruction renders current numbers."""
        result = await self.tools.get_state()
        if not result.success:
            logger.warning(f"Game state refresh failed: {result.error}")

    def _on_decision(self, event: DecisionEvent) -> None:
        # Scheduled, not awaited: the stream keeps reading while the agent runs
        self.coordinator.dispatch(event)

    async def _on_registered(self, token: str) -> None:
        await self.refresh_snapshot()
        await self.restart_stream()
