"""Error taxonomy for the Clawpoly client.

Callers need to tell "could not talk to the server" apart from
"the server answered with an error", so each failure mode gets its own type.
"""

from __future__ import annotations

from typing import Any


class ClawpolyError(Exception):
    """Base class for all client errors."""


class TransportError(ClawpolyError):
    """No response was obtained (connection refused, timeout, reset)."""


class HandshakeError(ClawpolyError):
    """The initialize reply did not carry a session identifier."""


class ProtocolError(ClawpolyError):
    """The reply carried an explicit JSON-RPC error payload."""

    def __init__(self, payload: Any):
        self.payload = payload
        super().__init__(f"Server returned error: {payload!r}")


class NotInitializedError(ClawpolyError):
    """An operation needing a session was attempted before the handshake."""


class DecodeError(ClawpolyError):
    """Malformed JSON where a structured reply was required."""


class AgentInvocationError(ClawpolyError):
    """The external decision-maker failed or exceeded its deadline."""
