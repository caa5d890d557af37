"""Tests for client configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from clawpoly_client.config import DEFAULT_SERVER_URL, ClientConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CLAWPOLY_SERVER_URL", raising=False)
    monkeypatch.delenv("CLAWPOLY_AGENT_TOKEN", raising=False)


class TestClientConfig:
    def test_defaults(self) -> None:
        config = ClientConfig.load()

        assert config.server_url == DEFAULT_SERVER_URL
        assert config.agent_token is None
        assert config.agent_timeout == 25.0
        assert config.reconnect_delay < config.error_reconnect_delay

    def test_yaml_file_camel_case(self, tmp_path: Path) -> None:
        path = tmp_path / "clawpoly.yaml"
        path.write_text("serverUrl: http://localhost:3000/mcp\nagentToken: abc\n")

        config = ClientConfig.load(path)

        assert config.server_url == "http://localhost:3000/mcp"
        assert config.agent_token == "abc"

    def test_yaml_section(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("clawpoly:\n  agent_token: xyz\n  agent_timeout: 10\n")

        config = ClientConfig.load(path)

        assert config.agent_token == "xyz"
        assert config.agent_timeout == 10

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "clawpoly.yaml"
        path.write_text("agentToken: from-file\n")
        monkeypatch.setenv("CLAWPOLY_AGENT_TOKEN", "from-env")

        assert ClientConfig.load(path).agent_token == "from-env"

    def test_overrides_win_and_none_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLAWPOLY_SERVER_URL", "http://env.test/mcp")

        config = ClientConfig.load(
            overrides={"server_url": "http://flag.test/mcp", "agent_token": None}
        )

        assert config.server_url == "http://flag.test/mcp"
        assert config.agent_token is None

    def test_invalid_url_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(server_url="ftp://nope")

    def test_non_mapping_file_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            ClientConfig.load(path)
