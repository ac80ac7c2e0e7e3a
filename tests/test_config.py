"""
Tests for configuration loading.
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from common.config import (
    SETTINGS_ENV_VAR,
    BridgeConfig,
    ConfigError,
    load_config,
    validate_config,
    with_overrides,
)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run every test from an empty directory without settings in the environment."""
    monkeypatch.delenv(SETTINGS_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    """Test default values."""
    config = load_config()

    assert config.allow == ["*"]
    assert config.tools == []
    assert config.broker.node_id == "mcp-bridge"
    assert config.broker.log_level == "error"
    assert config.server.host == "127.0.0.1"
    assert config.server.port == 3000
    assert config.server.name == "MCP-Action-Bridge"
    assert config.logging.level == "INFO"


def test_load_yaml_file(tmp_path):
    """Test loading an explicit YAML file."""
    path = tmp_path / "bridge.yaml"
    path.write_text(
        """
allow:
  - "users.*"
tools:
  - name: get_user_list
    action: users.list
    description: Get all users
    params:
      limit: 10
server:
  port: 4000
"""
    )

    config = load_config(path)

    assert config.allow == ["users.*"]
    assert config.tools[0].name == "get_user_list"
    assert config.tools[0].params == {"limit": 10}
    assert config.server.port == 4000


def test_load_json_file(tmp_path):
    """JSON documents are valid YAML."""
    path = tmp_path / "bridge.json"
    path.write_text(json.dumps({"allow": ["$node.*"], "broker": {"node_id": "n1"}}))

    config = load_config(str(path))

    assert config.allow == ["$node.*"]
    assert config.broker.node_id == "n1"


def test_missing_file():
    with pytest.raises(ConfigError, match="Configuration file not found"):
        load_config("does-not-exist.yaml")


def test_unparsable_file(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("allow: [unclosed\n")

    with pytest.raises(ConfigError, match="Failed to parse configuration file"):
        load_config(path)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_config(path) == BridgeConfig()


def test_environment_variable(monkeypatch):
    monkeypatch.setenv(SETTINGS_ENV_VAR, json.dumps({"allow": ["users.*"]}))

    assert load_config().allow == ["users.*"]


def test_invalid_environment_variable(monkeypatch):
    monkeypatch.setenv(SETTINGS_ENV_VAR, "invalid json")

    with pytest.raises(ConfigError, match=f"Failed to parse {SETTINGS_ENV_VAR}"):
        load_config()


def test_explicit_file_wins_over_environment(tmp_path, monkeypatch):
    monkeypatch.setenv(SETTINGS_ENV_VAR, json.dumps({"allow": ["from.env"]}))
    path = tmp_path / "bridge.yaml"
    path.write_text("allow: ['from.file']\n")

    assert load_config(path).allow == ["from.file"]


def test_default_config_file(tmp_path):
    (tmp_path / "config.yaml").write_text("allow: ['from.default']\n")

    assert load_config().allow == ["from.default"]


def test_unknown_keys_are_rejected():
    with pytest.raises(ConfigError, match="Invalid configuration"):
        validate_config({"allow": ["*"], "unexpected": True})


def test_custom_tool_requires_fields():
    with pytest.raises(ConfigError):
        validate_config({"tools": [{"name": "x"}]})


def test_config_is_frozen():
    config = BridgeConfig()

    with pytest.raises(ValidationError):
        config.allow = ["other"]


def test_with_overrides():
    config = BridgeConfig()

    updated = with_overrides(config, services="my_services.py")

    assert updated.broker.services == "my_services.py"
    assert config.broker.services is None
    assert updated.server == config.server


def test_repository_config_is_valid():
    """The example config.yaml in the project root validates."""
    path = Path(__file__).parent.parent / "config.yaml"

    config = load_config(path)

    assert config.tools[0].action == "users.list"
