"""External decision-maker invocation.

Runs the agent CLI (``openclaw agent --agent main --message <text>``) as a
subprocess under a hard wall-clock timeout. Output is informational; the
agent submits its action on its own through the decide operation.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from .protocol.errors import AgentInvocationError

logger = logging.getLogger(__name__)


@dataclass
class AgentInvoker:
    """Launches one agent run per call."""

    command: str = "openclaw"
    agent_id: str = "main"
    timeout: float = 25.0

    def build_argv(self, message: str) -> list[str]:
        return [self.command, "agent", "--agent", self.agent_id, "--message", message]

    async def invoke(self, message: str) -> str:
        """Run the agent and wait for it to exit.

        Returns:
            The agent's stripped stdout

        Raises:
            AgentInvocationError: If the process cannot start, exits non-zero,
                or does not finish within the timeout
        """
        argv = self.build_argv(message)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AgentInvocationError(f"Cannot launch {self.command}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError:
            await _kill(process)
            raise AgentInvocationError(
                f"{self.command} agent timed out after {self.timeout:g}s"
            ) from None
        except BaseException:
            # Cancelled by the caller: the agent must not keep running unsupervised
            await _kill(process)
            raise

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise AgentInvocationError(
                f"{self.command} agent exited with {process.returncode}: {detail}"
            )

        return stdout.decode("utf-8", errors="replace").strip()


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        logger.info(f"Agent subprocess killed (pid={process.pid})")
