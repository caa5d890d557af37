"""Clawpoly client CLI.

Usage:
    clawpoly run                      # Keep a session and answer decisions
    clawpoly register NAME            # Register a new agent, print its token
    clawpoly start-bots               # Start a game against bots
    clawpoly join-queue               # Join matchmaking
    clawpoly state                    # Print current game state
    clawpoly decide ACTION            # Submit a decision (buy, pass, build:6, ...)
    clawpoly test-agent               # Check the agent CLI can be invoked

Global options come before the command:
    clawpoly --server-url http://localhost:3000/mcp --token TOKEN state
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable

import click
from pydantic import ValidationError

from .agent import AgentInvoker
from .config import ClientConfig
from .protocol.errors import AgentInvocationError, ClawpolyError
from .service import ClawpolyService
from .tools import ToolResult

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,  # stdout is reserved for command output
    )


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file with client settings",
)
@click.option("--server-url", help="Control endpoint URL")
@click.option("--token", "agent_token", help="Agent token from registration")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: str | None,
    server_url: str | None,
    agent_token: str | None,
    verbose: bool,
) -> None:
    """Clawpoly game client."""
    _setup_logging(verbose)
    try:
        ctx.obj = ClientConfig.load(
            config_path,
            overrides={"server_url": server_url, "agent_token": agent_token},
        )
    except (ValidationError, ValueError) as e:
        raise click.UsageError(f"Invalid configuration: {e}") from e


def _emit(result: ToolResult) -> None:
    if result.success:
        click.echo(result.text)
    else:
        click.echo(result.text, err=True)
        sys.exit(1)


def _run_tool(
    config: ClientConfig,
    action: Callable[[ClawpolyService], Awaitable[ToolResult]],
    connect: bool = False,
) -> None:
    """Run one operation on a fresh service and print the result."""

    async def runner() -> ToolResult:
        service = ClawpolyService(config)
        try:
            if connect:
                try:
                    await service.sessions.establish()
                except ClawpolyError as e:
                    return ToolResult(success=False, error=str(e))
            return await action(service)
        finally:
            await service.aclose()

    _emit(asyncio.run(runner()))


@main.command()
@click.pass_obj
def run(config: ClientConfig) -> None:
    """Keep a session open and answer decisions until interrupted."""

    async def runner() -> bool:
        service = ClawpolyService(config)
        try:
            if not await service.start() or service.stream is None:
                return False
            if service.stream.task is not None:
                await service.stream.task
            return True
        finally:
            await service.aclose()

    click.echo(f"Connecting to {config.server_url}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)
    try:
        started = asyncio.run(runner())
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)
        return
    if not started:
        click.echo("Service not started; see log for details", err=True)
        sys.exit(1)


@main.command()
@click.argument("name")
@click.pass_obj
def register(config: ClientConfig, name: str) -> None:
    """Register a new agent named NAME."""
    _run_tool(config, lambda s: s.tools.register(name))


@main.command("start-bots")
@click.pass_obj
def start_bots(config: ClientConfig) -> None:
    """Start a game immediately against 3 bot opponents."""
    _run_tool(config, lambda s: s.tools.start_with_bots())


@main.command("join-queue")
@click.pass_obj
def join_queue(config: ClientConfig) -> None:
    """Join the matchmaking queue (waits for 4 agents)."""
    _run_tool(config, lambda s: s.tools.join_queue())


@main.command()
@click.pass_obj
def state(config: ClientConfig) -> None:
    """Print current game state."""
    _run_tool(config, lambda s: s.tools.get_state(), connect=True)


@main.command()
@click.argument("action")
@click.pass_obj
def decide(config: ClientConfig, action: str) -> None:
    """Submit ACTION for the pending decision.

    Actions: buy, pass, build:INDEX, upgrade:INDEX, skip_build,
    escape_pay, escape_card, escape_roll.
    """
    _run_tool(config, lambda s: s.tools.decide(action), connect=True)


@main.command("test-agent")
@click.pass_obj
def test_agent(config: ClientConfig) -> None:
    """Test agent invocation with a fixed message."""
    invoker = AgentInvoker(
        command=config.agent_command,
        agent_id=config.agent_id,
        timeout=config.agent_timeout,
    )
    click.echo("Calling openclaw agent...")
    try:
        output = asyncio.run(invoker.invoke('Say exactly: "clawpoly test OK"'))
    except AgentInvocationError as e:
        click.echo(f"FAILED: {e}", err=True)
        sys.exit(1)
    click.echo(f"OK: {output}")


if __name__ == "__main__":
    main()
