"""Reply and push-stream decoding.

Handles:
- Control channel replies, either a plain JSON object or an SSE-framed body
- Double-encoded results (JSON text inside an MCP content envelope)
- Incremental SSE frame splitting for the long-lived push connection
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any

from ..decisions import DECISION_EVENT_TAG, DecisionEvent
from .errors import DecodeError, ProtocolError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
FRAME_DELIMITER = "\n\n"


def _data_lines(raw: str) -> list[str]:
    """Content of every `data:` line, in order, prefix stripped."""
    return [
        line[len(DATA_PREFIX) :].strip()
        for line in raw.replace("\r\n", "\n").split("\n")
        if line.startswith(DATA_PREFIX)
    ]


def _unwrap_text_envelope(result: Any) -> Any:
    """Prefer the nested JSON in `result.content[0].text` when there is one."""
    if not isinstance(result, dict):
        return result
    content = result.get("content")
    if not isinstance(content, list) or not content or not isinstance(content[0], dict):
        return result
    text = content[0].get("text")
    if isinstance(text, str) and text.startswith(("{", "[")):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return result
    return result


def decode_reply(raw: str) -> Any:
    """Extract the logical result from a control channel reply body.

    Args:
        raw: Fully buffered response body

    Returns:
        The unwrapped result

    Raises:
        DecodeError: If the body holds no parseable JSON message
        ProtocolError: If the message carries an `error` field
    """
    lines = _data_lines(raw)
    text = "".join(lines) if lines else raw.strip()
    if not text:
        raise DecodeError(f"Empty reply body: {raw[:200]!r}")

    try:
        msg = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Malformed reply: {raw[:200]!r}") from e

    if isinstance(msg, dict) and msg.get("error"):
        raise ProtocolError(msg["error"])

    result = msg.get("result", msg) if isinstance(msg, dict) else msg
    if result is None:
        result = msg
    return _unwrap_text_envelope(result)


def parse_frame(frame: str) -> DecisionEvent | None:
    """Decode one SSE frame into a decision event.

    Returns None for frames that are not decision events or are malformed.
    """
    data_line = next(
        (line for line in frame.split("\n") if line.startswith(DATA_PREFIX)),
        None,
    )
    if data_line is None:
        return None

    try:
        msg = json.loads(data_line[len(DATA_PREFIX) :].strip())
    except json.JSONDecodeError:
        logger.debug(f"Skipping malformed frame: {frame[:80]!r}")
        return None

    if not isinstance(msg, dict):
        return None
    params = msg.get("params")
    data = params.get("data") if isinstance(params, dict) else None
    if not isinstance(data, dict) or data.get("event") != DECISION_EVENT_TAG:
        return None

    try:
        return DecisionEvent.from_payload(data)
    except ValueError as e:
        logger.debug(f"Skipping invalid decision payload: {e}")
        return None


class SSEFrameDecoder:
    """Incremental decoder for the push stream.

    Feed raw chunks as they arrive; complete frames are decoded and the
    trailing partial frame is held back for the next chunk. The output does
    not depend on where chunk boundaries fall.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Bytes received but not yet part of a complete frame."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[DecisionEvent]:
        """Append a chunk and return decision events from completed frames."""
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text
        # Normalise CRLF only once a full pair is buffered
        self._buffer = self._buffer.replace("\r\n", "\n")

        parts = self._buffer.split(FRAME_DELIMITER)
        self._buffer = parts.pop()

        events: list[DecisionEvent] = []
        for part in parts:
            event = parse_frame(part)
            if event is not None:
                events.append(event)
        return events

    def reset(self) -> None:
        """Drop any partial frame, e.g. when a connection is replaced."""
        self._buffer = ""
        self._decoder.reset()
