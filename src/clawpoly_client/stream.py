"""Push stream supervisor.

Keeps one SSE connection bound to the active session, decodes decision
events from it, and reconnects after a fixed delay when it drops:
- clean close (idle timeout on the far end): short delay
- read or connect error (likely an outage): longer delay

The lifecycle is an explicit state machine. The `on_*` handlers are the
only places state changes, so a connection lifecycle can be driven
synthetically without sockets.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import httpx

from .decisions import DecisionEvent
from .protocol.codec import SSEFrameDecoder
from .protocol.errors import ClawpolyError
from .session import SESSION_HEADER, ClientContext
from .transport import HTTPTransport

logger = logging.getLogger(__name__)

DecisionSubscriber = Callable[[DecisionEvent], Awaitable[None] | None]
SleepFn = Callable[[float], Awaitable[Any]]


class StreamState(str, Enum):
    """Push connection state machine."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class StreamSupervisor:
    """Owns the single live push connection.

    Usage:
        supervisor = StreamSupervisor(context, transport, on_decision)
        supervisor.start()
        ...
        await supervisor.stop()
    """

    def __init__(
        self,
        context: ClientContext,
        transport: HTTPTransport,
        subscriber: DecisionSubscriber,
        reconnect_delay: float | None = None,
        error_reconnect_delay: float | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._context = context
        self._transport = transport
        self._subscriber = subscriber
        self._reconnect_delay = (
            context.config.reconnect_delay if reconnect_delay is None else reconnect_delay
        )
        self._error_reconnect_delay = (
            context.config.error_reconnect_delay
            if error_reconnect_delay is None
            else error_reconnect_delay
        )
        self._sleep = sleep
        self._state = StreamState.IDLE
        self._decoder = SSEFrameDecoder()
        self._response: httpx.Response | None = None
        self._task: asyncio.Task[None] | None = None
        self._connect_attempts = 0

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def stopped(self) -> bool:
        return self._state == StreamState.STOPPED

    @property
    def connect_attempts(self) -> int:
        return self._connect_attempts

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self) -> bool:
        """Begin streaming if a session exists.

        Returns:
            True if the connection loop was started
        """
        if self.stopped:
            logger.warning("Stream supervisor already stopped; create a new one")
            return False
        if self._task is not None and not self._task.done():
            return True
        if self._context.session.session_id is None:
            logger.info("No session; push stream not started")
            return False

        self._task = asyncio.create_task(self._run())
        return True

    async def stop(self) -> None:
        """Stop for good: destroy the live connection, cancel pending reconnects."""
        self._state = StreamState.STOPPED

        task, self._task = self._task, None
        if task is asyncio.current_task():
            # Called from the subscriber; the loop sees STOPPED and unwinds itself
            logger.info("Push stream stopping")
            return

        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        response, self._response = self._response, None
        if response is not None:
            await response.aclose()
        logger.info("Push stream stopped")

    # -- State machine handlers ------------------------------------------------

    def on_connecting(self) -> bool:
        """Transition to CONNECTING. Returns False if the attempt must not happen."""
        if self.stopped:
            return False
        if self._context.session.session_id is None:
            self._state = StreamState.IDLE
            logger.info("Session gone; push stream idle")
            return False
        self._state = StreamState.CONNECTING
        self._connect_attempts += 1
        return True

    def on_connected(self, response: httpx.Response | None = None) -> None:
        """Response headers received; start a fresh frame buffer."""
        if self.stopped:
            return
        self._response = response
        self._decoder.reset()
        self._state = StreamState.STREAMING
        logger.info("SSE stream open")

    async def on_chunk(self, chunk: bytes | str) -> int:
        """Decode a chunk and deliver completed decisions in wire order.

        Returns:
            Number of decisions delivered
        """
        if self._state != StreamState.STREAMING:
            return 0

        delivered = 0
        for event in self._decoder.feed(chunk):
            # Stop may have been requested by the subscriber itself
            if self._state != StreamState.STREAMING:
                break
            await self._deliver(event)
            delivered += 1
        return delivered

    def on_closed(self) -> float | None:
        """Far end finished the stream.

        Returns:
            Delay before reconnecting, or None if no reconnect should happen
        """
        self._response = None
        if self.stopped:
            return None
        self._state = StreamState.RECONNECTING
        logger.info(f"SSE disconnected, reconnecting in {self._reconnect_delay:g}s")
        return self._reconnect_delay

    def on_error(self, error: BaseException) -> float | None:
        """Connect or read failed. Same as on_closed with the longer delay."""
        self._response = None
        if self.stopped:
            return None
        self._state = StreamState.RECONNECTING
        logger.warning(f"SSE error: {error}, retry in {self._error_reconnect_delay:g}s")
        return self._error_reconnect_delay

    # -- Internals -------------------------------------------------------------

    async def _deliver(self, event: DecisionEvent) -> None:
        logger.info(f"SSE received: {event.raw_type}")
        try:
            result = self._subscriber(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Decision subscriber failed: {e}")

    async def _run(self) -> None:
        while self.on_connecting():
            session_id = self._context.session.session_id
            try:
                async with self._transport.stream(
                    self._context.config.server_url,
                    {SESSION_HEADER: session_id},
                ) as response:
                    response.raise_for_status()
                    self.on_connected(response)
                    async for chunk in response.aiter_bytes():
                        if self.stopped:
                            break
                        await self.on_chunk(chunk)
                delay = self.on_closed()
            except (httpx.HTTPError, httpx.StreamError, ClawpolyError) as e:
                delay = self.on_error(e)
            except Exception as e:
                logger.error(f"Unexpected push stream failure: {type(e).__name__}: {e}")
                delay = self.on_error(e)

            if delay is None:
                break
            await self._sleep(delay)
