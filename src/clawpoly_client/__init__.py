"""Clawpoly client - session, push stream and decision dispatch for Clawpoly agents.

Typical use:
- ClawpolyService: long-running session + decision stream
- GameTools: register / start / join / state / decide operations
"""

from .config import ClientConfig
from .decisions import DecisionEvent, DecisionKind, render_decision_prompt
from .service import ClawpolyService
from .session import ClientContext, SessionManager
from .stream import StreamState, StreamSupervisor
from .tools import GameTools, ToolResult

__version__ = "0.1.0"

__all__ = [
    "ClawpolyService",
    "ClientConfig",
    "ClientContext",
    "SessionManager",
    "StreamSupervisor",
    "StreamState",
    "DecisionEvent",
    "DecisionKind",
    "render_decision_prompt",
    "GameTools",
    "ToolResult",
]
