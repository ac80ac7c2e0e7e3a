"""
Configuration loader for the MCP bridge.

Settings come from a YAML (or JSON) document: an explicit file, the
MCP_BRIDGE_SETTINGS environment variable, or ./config.yaml, in that order.
Unknown keys are rejected so that typos in tool overrides surface at startup.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

SETTINGS_ENV_VAR = "MCP_BRIDGE_SETTINGS"
DEFAULT_CONFIG_PATH = Path("config.yaml")


class ConfigError(Exception):
    """Raised when the bridge configuration cannot be loaded or validated."""


class _FrozenModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class CustomToolSpec(_FrozenModel):
    """A hand-written tool definition targeting one broker action."""

    name: str = Field(description="Requested tool name (sanitized before use)")
    action: str = Field(description="Broker action the tool calls")
    description: str = Field(description="Tool description shown to MCP clients")
    params: Optional[Dict[str, Any]] = Field(
        default=None, description="Parameter values pinned on every call"
    )


class BrokerConfig(_FrozenModel):
    """Configuration for the action broker."""

    node_id: str = Field(default="mcp-bridge", description="Broker node identifier")
    log_level: str = Field(default="error", description="Log level for broker internals")
    services: Optional[str] = Field(
        default=None,
        description="Module path or .py file whose register(broker) adds services",
    )
    discovery_delay: float = Field(
        default=0.0, ge=0.0, description="Seconds to wait for service discovery on start"
    )


class ServerConfig(_FrozenModel):
    """Configuration for the MCP HTTP gateway."""

    host: str = Field(default="127.0.0.1", description="Host to bind to")
    port: int = Field(default=3000, description="Port to bind to")
    name: str = Field(default="MCP-Action-Bridge", description="MCP server name")
    version: str = Field(default="1.0.0", description="MCP server version")


class LoggingConfig(_FrozenModel):
    """Configuration for structured logging."""

    level: str = Field(default="INFO", description="Logging level")
    enable_pretty_print: bool = Field(
        default=False, description="Enable custom pretty print for debugging"
    )
    save_to_file: bool = Field(default=False, description="Save logs to file")
    log_file_path: str = Field(default="bridge.log", description="Log file path")
    max_log_file_size: int = Field(
        default=10485760, description="Max log file size in bytes (10MB)"
    )
    backup_count: int = Field(default=5, description="Number of backup log files to keep")


class BridgeConfig(_FrozenModel):
    """Main configuration object."""

    allow: List[str] = Field(default_factory=lambda: ["*"], description="Allowed action patterns")
    tools: List[CustomToolSpec] = Field(default_factory=list, description="Custom tool specs")
    broker: BrokerConfig = Field(default_factory=BrokerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def validate_config(data: Any) -> BridgeConfig:
    """
    Validate an already parsed configuration document.

    Raises:
        ConfigError: If the document does not match the configuration schema
    """
    if data is None:
        data = {}

    try:
        return BridgeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def with_overrides(config: BridgeConfig, **broker_fields: Any) -> BridgeConfig:
    """Return a copy of the configuration with broker settings replaced."""
    broker = config.broker.model_copy(update=broker_fields)
    return config.model_copy(update={"broker": broker})


def load_config(config_path: Optional[Union[str, Path]] = None) -> BridgeConfig:
    """
    Load the bridge configuration.

    Args:
        config_path: Path to a YAML/JSON settings file. When omitted, the
            MCP_BRIDGE_SETTINGS environment variable is used, then ./config.yaml

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If the source is missing, unparsable or invalid
    """
    config_data: Any = {}

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse configuration file: {e}") from e

    elif os.environ.get(SETTINGS_ENV_VAR):
        try:
            config_data = yaml.safe_load(os.environ[SETTINGS_ENV_VAR])
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {SETTINGS_ENV_VAR} environment variable: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigError(
                f"Failed to parse {SETTINGS_ENV_VAR} environment variable: expected a mapping"
            )

    elif DEFAULT_CONFIG_PATH.exists():
        with open(DEFAULT_CONFIG_PATH, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)

    return validate_config(config_data)
