"""Client configuration.

Sources, later wins:
1. Field defaults
2. YAML file (``--config``)
3. Environment (CLAWPOLY_SERVER_URL, CLAWPOLY_AGENT_TOKEN)
4. Explicit overrides (CLI flags)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "https://server.clawpoly.fun/mcp"

ENV_SERVER_URL = "CLAWPOLY_SERVER_URL"
ENV_AGENT_TOKEN = "CLAWPOLY_AGENT_TOKEN"

# YAML keys accepted in camelCase as well, matching the plugin config format
_ALIASES = {
    "serverUrl": "server_url",
    "agentToken": "agent_token",
    "agentCommand": "agent_command",
    "agentId": "agent_id",
    "agentTimeout": "agent_timeout",
}


class ClientConfig(BaseModel):
    """Runtime settings for the client."""

    server_url: str = DEFAULT_SERVER_URL
    agent_token: str | None = None

    # External decision-maker
    agent_command: str = "openclaw"
    agent_id: str = "main"
    agent_timeout: float = Field(default=25.0, gt=0)

    # Networking
    request_timeout: float = Field(default=30.0, gt=0)
    reconnect_delay: float = Field(default=3.0, ge=0)
    error_reconnect_delay: float = Field(default=5.0, ge=0)

    @field_validator("server_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"server_url must be an http(s) URL: {value}")
        return value

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> ClientConfig:
        """Build config from file, environment and overrides."""
        values: dict[str, Any] = {}

        if path:
            values.update(_read_yaml(Path(path)))

        if server_url := os.environ.get(ENV_SERVER_URL):
            values["server_url"] = server_url
        if agent_token := os.environ.get(ENV_AGENT_TOKEN):
            values["agent_token"] = agent_token

        if overrides:
            values.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**values)


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    # Allow the settings to live under a top-level "clawpoly" key
    section = raw.get("clawpoly", raw)
    if not isinstance(section, dict):
        raise ValueError(f"'clawpoly' section in {path} must be a mapping")

    values = {_ALIASES.get(k, k): v for k, v in section.items()}
    logger.debug(f"Loaded config keys from {path}: {sorted(values)}")
    return values
