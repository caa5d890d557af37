"""Tests for the session handshake and correlated calls."""

from __future__ import annotations

import httpx
import pytest

from clawpoly_client.protocol.errors import (
    HandshakeError,
    NotInitializedError,
    ProtocolError,
    TransportError,
)
from clawpoly_client.protocol.messages import PROTOCOL_VERSION, JsonRpcRequest
from clawpoly_client.session import ClientContext, SessionManager
from tests.fakes import SERVER_URL, FakeMcpServer, make_transport

# =============================================================================
# JsonRpcRequest Tests
# =============================================================================


class TestJsonRpcRequest:
    """Tests for request construction."""

    def test_initialize_payload(self) -> None:
        payload = JsonRpcRequest.initialize(1).to_payload()

        assert payload["jsonrpc"] == "2.0"
        assert payload["id"] == 1
        assert payload["method"] == "initialize"
        assert payload["params"]["protocolVersion"] == PROTOCOL_VERSION
        assert payload["params"]["clientInfo"]["name"] == "openclaw-plugin-clawpoly"

    def test_notification_has_no_id(self) -> None:
        request = JsonRpcRequest.initialized()
        assert request.is_notification
        assert "id" not in request.to_payload()

    def test_tool_call_payload(self) -> None:
        payload = JsonRpcRequest.tool_call(7, "clawpoly_get_state", {"agentToken": "t"}).to_payload()
        assert payload["method"] == "tools/call"
        assert payload["params"] == {"name": "clawpoly_get_state", "arguments": {"agentToken": "t"}}


# =============================================================================
# establish() Tests
# =============================================================================


class TestEstablish:
    """Tests for the two-step handshake."""

    @pytest.mark.asyncio
    async def test_establish_records_session(
        self, sessions: SessionManager, fake_server: FakeMcpServer, context: ClientContext
    ) -> None:
        session_id = await sessions.establish()

        assert session_id == "sess-1"
        assert context.session.session_id == "sess-1"
        assert [r["method"] for r in fake_server.requests] == [
            "initialize",
            "notifications/initialized",
        ]

    @pytest.mark.asyncio
    async def test_initialized_notification_carries_session_header(
        self, sessions: SessionManager, fake_server: FakeMcpServer
    ) -> None:
        await sessions.establish()

        assert "mcp-session-id" not in fake_server.headers[0]
        assert fake_server.headers[1]["mcp-session-id"] == "sess-1"
        assert "id" not in fake_server.requests[1]

    @pytest.mark.asyncio
    async def test_request_headers(
        self, sessions: SessionManager, fake_server: FakeMcpServer
    ) -> None:
        await sessions.establish()

        headers = fake_server.headers[0]
        assert headers["content-type"] == "application/json"
        assert headers["accept"] == "application/json, text/event-stream"

    @pytest.mark.asyncio
    async def test_establish_is_skipped_when_session_exists(
        self, sessions: SessionManager, fake_server: FakeMcpServer
    ) -> None:
        await sessions.establish()
        await sessions.establish()

        assert len(fake_server.requests) == 2

    @pytest.mark.asyncio
    async def test_missing_header_raises_handshake_error(self, context: ClientContext) -> None:
        server = FakeMcpServer(session_id=None)
        sessions = SessionManager(context, make_transport(server))

        with pytest.raises(HandshakeError):
            await sessions.establish()

        assert context.session.session_id is None
        assert not sessions.has_session
        # No initialized notification without a session
        assert [r["method"] for r in server.requests] == ["initialize"]

    @pytest.mark.asyncio
    async def test_session_header_is_case_insensitive(self, context: ClientContext) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"MCP-SESSION-ID": "upper"}, json={"result": {}})

        sessions = SessionManager(context, make_transport(handler))
        assert await sessions.establish() == "upper"

    @pytest.mark.asyncio
    async def test_connection_failure_raises_transport_error(self, context: ClientContext) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        sessions = SessionManager(context, make_transport(handler))

        with pytest.raises(TransportError):
            await sessions.establish()
        assert context.session.session_id is None

    @pytest.mark.asyncio
    async def test_establish_uses_explicit_endpoint(self, context: ClientContext) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, headers={"mcp-session-id": "s"}, json={"result": {}})

        sessions = SessionManager(context, make_transport(handler))
        await sessions.establish("http://other.test/mcp")

        assert seen == ["http://other.test/mcp", "http://other.test/mcp"]


# =============================================================================
# call() Tests
# =============================================================================


class TestCall:
    """Tests for correlated tool calls."""

    @pytest.mark.asyncio
    async def test_call_without_session_makes_no_request(self, context: ClientContext) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={})

        sessions = SessionManager(context, make_transport(handler))

        with pytest.raises(NotInitializedError):
            await sessions.call("clawpoly_get_state", {})
        assert requests == []

    @pytest.mark.asyncio
    async def test_call_returns_unwrapped_result(
        self, sessions: SessionManager, fake_server: FakeMcpServer
    ) -> None:
        fake_server.tool_results["clawpoly_register"] = {"agentToken": "new-token"}
        await sessions.establish()

        result = await sessions.call("clawpoly_register", {"name": "Crab"})

        assert result == {"agentToken": "new-token"}
        assert fake_server.tool_calls == [
            {"name": "clawpoly_register", "arguments": {"name": "Crab"}}
        ]
        assert fake_server.headers[-1]["mcp-session-id"] == "sess-1"

    @pytest.mark.asyncio
    async def test_request_ids_are_unique_and_increasing(
        self, sessions: SessionManager, fake_server: FakeMcpServer
    ) -> None:
        await sessions.establish()
        for _ in range(3):
            await sessions.call("clawpoly_get_state", {})

        ids = [r["id"] for r in fake_server.requests if "id" in r]
        assert ids == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_counter_survives_teardown(
        self, sessions: SessionManager, fake_server: FakeMcpServer
    ) -> None:
        await sessions.establish()
        await sessions.call("clawpoly_get_state", {})
        sessions.teardown()
        await sessions.establish()
        await sessions.call("clawpoly_get_state", {})

        ids = [r["id"] for r in fake_server.requests if "id" in r]
        assert ids == sorted(set(ids))

    @pytest.mark.asyncio
    async def test_error_reply_raises_protocol_error(
        self, sessions: SessionManager, fake_server: FakeMcpServer
    ) -> None:
        fake_server.tool_errors["clawpoly_join_queue"] = {"code": -32000, "message": "In a game"}
        await sessions.establish()

        with pytest.raises(ProtocolError) as exc_info:
            await sessions.call("clawpoly_join_queue", {})
        assert exc_info.value.payload == {"code": -32000, "message": "In a game"}

    @pytest.mark.asyncio
    async def test_error_in_4xx_body_is_protocol_error(self, context: ClientContext) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"jsonrpc": "2.0", "error": {"message": "bad"}})

        context.session.session_id = "stale"
        sessions = SessionManager(context, make_transport(handler))

        with pytest.raises(ProtocolError):
            await sessions.call("clawpoly_get_state", {})

    @pytest.mark.asyncio
    async def test_teardown_clears_session(self, sessions: SessionManager) -> None:
        await sessions.establish()
        sessions.teardown()

        assert not sessions.has_session
        with pytest.raises(NotInitializedError):
            await sessions.call("clawpoly_get_state", {})

    def test_endpoint_comes_from_config(self, sessions: SessionManager) -> None:
        assert sessions.endpoint == SERVER_URL
