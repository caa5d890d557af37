"""Decision events and instruction rendering.

A decision event is the server telling us a time-boxed choice is pending.
The renderer turns it, together with the last cached game snapshot, into a
plain-text instruction for the external agent.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DECISION_EVENT_TAG = "pending_decision"

# Rule thresholds, in Shells
BUY_RESERVE = 200
ESCAPE_PAY_MIN = 250

DECISION_HEADER = (
    "[CLAWPOLY] DECISION REQUIRED: 30 SECONDS. Call clawpoly_decide IMMEDIATELY. "
    "Do NOT call clawpoly_state first.\n\n"
)


class DecisionKind(str, Enum):
    """Decision categories the renderer knows about."""

    BUY = "buy"  # Property purchase
    BUILD = "build"  # Construction
    LOBSTER_POT = "lobster_pot"  # Hazard escape
    OTHER = "other"

    @classmethod
    def from_type(cls, raw_type: str) -> DecisionKind:
        try:
            kind = cls(raw_type)
        except ValueError:
            return cls.OTHER
        return kind


class DecisionEvent(BaseModel):
    """A pending decision pushed by the server.

    Example payload (the `params.data` of a push frame):
        {
            "event": "pending_decision",
            "type": "buy",
            "context": {"property": {"name": "Coral Reef", "index": 6, "price": 500}}
        }
    """

    model_config = ConfigDict(frozen=True)

    kind: DecisionKind
    raw_type: str
    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> DecisionEvent:
        """Build from the stream payload.

        Raises:
            ValueError: If the payload is not a usable decision
        """
        raw_type = data.get("type")
        if not isinstance(raw_type, str) or not raw_type:
            raise ValueError(f"Decision payload has no type: {data!r}")
        context = data.get("context") or {}
        if not isinstance(context, dict):
            raise ValueError(f"Decision context is not an object: {context!r}")
        return cls(kind=DecisionKind.from_type(raw_type), raw_type=raw_type, context=context)


def _fmt(value: Any) -> str:
    return "?" if value is None else str(value)


def _fmt_amount(value: float) -> str:
    # Whole amounts print without a decimal point or exponent
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    return None


def _as_mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _render_buy(event: DecisionEvent, money: Any) -> str:
    prop = _as_mapping(event.context.get("property"))
    price = prop.get("price")
    text = (
        "BUY DECISION\n"
        f"Property: {_fmt(prop.get('name'))} (index {_fmt(prop.get('index'))}), "
        f"Price: {_fmt(price)} Shells\n"
        f"Your money: {_fmt(money)} Shells\n\n"
        f'Rule: if (money - price >= {BUY_RESERVE}) → action="buy", else → action="pass"\n'
    )
    funds, cost = _as_number(money), _as_number(price)
    if funds is not None and cost is not None:
        margin = funds - cost
        choice = "buy" if margin >= BUY_RESERVE else "pass"
        text += f'Margin: {_fmt_amount(margin)} Shells → action="{choice}"\n'
    return text + 'Call clawpoly_decide NOW with action="buy" or action="pass".'


def _square_indices(squares: Any) -> list[str]:
    if not isinstance(squares, list):
        return []
    return [
        _fmt(square.get("index")) if isinstance(square, dict) else _fmt(square)
        for square in squares
    ]


def _render_build(event: DecisionEvent, money: Any) -> str:
    buildable = _square_indices(event.context.get("buildableSquares"))
    upgradeable = _square_indices(event.context.get("upgradeableSquares"))
    return (
        "BUILD DECISION\n"
        f"Can build outposts at indices: [{', '.join(buildable)}]\n"
        f"Can upgrade to fortress at indices: [{', '.join(upgradeable)}]\n"
        f"Your money: {_fmt(money)} Shells\n\n"
        'Call clawpoly_decide NOW with action="build:INDEX", "upgrade:INDEX", or "skip_build".'
    )


def _render_lobster_pot(money: Any, escape_cards: Any) -> str:
    text = (
        "LOBSTER POT ESCAPE\n"
        f"Escape cards: {_fmt(escape_cards)}, Money: {_fmt(money)} Shells\n\n"
        'Rule: if escapeCards > 0 → "escape_card", '
        f'elif money >= {ESCAPE_PAY_MIN} → "escape_pay", else → "escape_roll"\n'
    )
    funds, cards = _as_number(money), _as_number(escape_cards)
    if funds is not None and cards is not None:
        if cards > 0:
            choice = "escape_card"
        elif funds >= ESCAPE_PAY_MIN:
            choice = "escape_pay"
        else:
            choice = "escape_roll"
        text += f'Applies: action="{choice}"\n'
    return text + "Call clawpoly_decide NOW."


def render_decision_prompt(event: DecisionEvent, snapshot: dict[str, Any] | None) -> str:
    """Render the instruction for one decision.

    Args:
        event: The pending decision
        snapshot: Last cached game state, possibly stale or absent

    Returns:
        Instruction text, always opening with the deadline header
    """
    me = _as_mapping(_as_mapping(snapshot).get("me"))
    money = me.get("money")
    escape_cards = me.get("escapeCards", 0)

    if event.kind == DecisionKind.BUY:
        body = _render_buy(event, money)
    elif event.kind == DecisionKind.BUILD:
        body = _render_build(event, money)
    elif event.kind == DecisionKind.LOBSTER_POT:
        body = _render_lobster_pot(money, escape_cards)
    else:
        body = f"Decision type: {event.raw_type}. Call clawpoly_decide NOW."
    return DECISION_HEADER + body
