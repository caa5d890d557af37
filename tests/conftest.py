"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from clawpoly_client.config import ClientConfig
from clawpoly_client.session import ClientContext, SessionManager
from clawpoly_client.transport import HTTPTransport
from tests.fakes import SERVER_URL, FakeMcpServer, make_transport


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(server_url=SERVER_URL, agent_token="tok-123")


@pytest.fixture
def context(config: ClientConfig) -> ClientContext:
    return ClientContext.from_config(config)


@pytest.fixture
def fake_server() -> FakeMcpServer:
    return FakeMcpServer()


@pytest.fixture
def transport(fake_server: FakeMcpServer) -> HTTPTransport:
    return make_transport(fake_server)


@pytest.fixture
def sessions(context: ClientContext, transport: HTTPTransport) -> SessionManager:
    return SessionManager(context, transport)
