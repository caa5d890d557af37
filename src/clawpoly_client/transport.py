"""HTTP transport for the control and push channels.

One request/response exchange per `send()`; the body is fully buffered
before returning. Knows nothing about sessions or JSON-RPC.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx

from .protocol.errors import TransportError

logger = logging.getLogger(__name__)

CONTROL_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/event-stream",
}
STREAM_HEADERS = {"Accept": "text/event-stream"}


@dataclass
class TransportResponse:
    """A fully buffered reply."""

    status: int
    headers: httpx.Headers
    body: str

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name)


@dataclass
class HTTPTransport:
    """Transport over a shared httpx.AsyncClient.

    Non-2xx replies are returned, not raised: JSON-RPC servers put error
    payloads in 4xx bodies and the codec reports them as protocol errors.
    """

    timeout: float = 30.0
    _client: httpx.AsyncClient | None = field(default=None, repr=False)

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, read=None),  # No read timeout for SSE
            )
        return self._client

    async def send(
        self,
        endpoint: str,
        headers: dict[str, str],
        payload: dict[str, Any],
    ) -> TransportResponse:
        """POST a JSON payload and buffer the reply.

        Raises:
            TransportError: If no response could be obtained
        """
        client = self._ensure_client()
        try:
            response = await client.post(
                endpoint,
                json=payload,
                headers={**CONTROL_HEADERS, **headers},
                timeout=self.timeout,
            )
        except httpx.TransportError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        return TransportResponse(
            status=response.status_code,
            headers=response.headers,
            body=response.text,
        )

    @asynccontextmanager
    async def stream(
        self,
        endpoint: str,
        headers: dict[str, str],
    ) -> AsyncIterator[httpx.Response]:
        """Open a long-lived GET push connection.

        The response is closed when the context exits, whether the stream
        ended, failed, or the caller was cancelled.
        """
        client = self._ensure_client()
        request = client.build_request("GET", endpoint, headers={**STREAM_HEADERS, **headers})
        response = await client.send(request, stream=True)
        try:
            yield response
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        """Close the underlying client."""
        if self._client:
            await self._client.aclose()
            self._client = None
