"""Decision coordinator.

Turns each pushed decision into a rendered instruction and hands it to the
external agent. Decisions are handled one at a time: one arriving while
another is in flight waits for it to finish.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from .decisions import DecisionEvent, render_decision_prompt
from .protocol.errors import AgentInvocationError
from .session import ClientContext

logger = logging.getLogger(__name__)


class DecisionMaker(Protocol):
    """Anything that can be asked to act on an instruction."""

    async def invoke(self, message: str) -> str: ...


class DecisionCoordinator:
    """Dispatches decision events to the agent."""

    def __init__(
        self,
        context: ClientContext,
        agent: DecisionMaker,
        after_run: Callable[[], Awaitable[None]] | None = None,
    ):
        self._context = context
        self._agent = agent
        self._after_run = after_run  # e.g. refresh the cached snapshot
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[bool]] = set()
        self.handled = 0
        self.failed = 0

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def render(self, event: DecisionEvent) -> str:
        return render_decision_prompt(event, self._context.snapshot)

    def dispatch(self, event: DecisionEvent) -> asyncio.Task[bool]:
        """Stream subscriber entry: schedule handling without blocking the reader."""
        task = asyncio.create_task(self.handle(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle(self, event: DecisionEvent) -> bool:
        """Render and hand one decision to the agent.

        Returns:
            True if the agent ran to completion
        """
        if self._lock.locked():
            logger.warning(f"Decision {event.raw_type} queued behind one in flight")

        async with self._lock:
            try:
                prompt = self.render(event)
                logger.info("Invoking openclaw agent...")
                output = await self._agent.invoke(prompt)
            except AgentInvocationError as e:
                self.failed += 1
                logger.error(f"openclaw agent failed: {e}")
                ok = False
            except Exception as e:
                self.failed += 1
                logger.error(f"Decision {event.raw_type} failed: {type(e).__name__}: {e}")
                ok = False
            else:
                self.handled += 1
                logger.info(f"openclaw agent OK: {output}")
                ok = True

            if self._after_run is not None:
                await self._after_run()
            return ok

    async def drain(self) -> None:
        """Wait for scheduled decisions to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_pending(self) -> None:
        """Abandon scheduled decisions, e.g. on shutdown."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
