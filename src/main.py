"""
Command line entry point for the MCP bridge.

Commands:
    start [config] [--services PATH]     Start the broker and serve MCP tools over HTTP
    validate-config <config>             Validate a configuration file
    list-actions [--config PATH]         List discovered actions and the tools they become

Legacy standalone mode: `--settings PATH` (or `--config PATH`) without a command
behaves like `start PATH`.
"""

# Standard library imports
import argparse
import asyncio
import json
import sys
from typing import List, Optional

# Third-party imports
import uvicorn
from dotenv import load_dotenv

# Local imports
from bridge.broker import BridgeBroker, BridgeError
from bridge.name_sanitizer import NamingError
from bridge.service_catalogue import ServiceCatalogue
from common.config import BridgeConfig, ConfigError, load_config, with_overrides
from common.logging import get_logger, setup_logging
from gateway.mcp_gateway import McpGateway

# Load environment variables (MCP_BRIDGE_SETTINGS) from .env file at module level
load_dotenv()

logger = get_logger(__name__)

COMMANDS = ("start", "validate-config", "list-actions")
LEGACY_FLAGS = ("--settings", "--config")


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(prog="mcp-bridge", description="Action-to-MCP bridge CLI")
    parser.add_argument("--version", action="version", version="%(prog)s 1.0.0")
    subparsers = parser.add_subparsers(dest="command", required=True)

    start = subparsers.add_parser("start", help="Start the MCP bridge server")
    start.add_argument("config", nargs="?", help="Bridge configuration file path")
    start.add_argument("-s", "--services", help="Services module or .py file to load")
    start.add_argument("--host", help="Override the host to bind to")
    start.add_argument("--port", type=int, help="Override the port to bind to")

    validate = subparsers.add_parser("validate-config", help="Validate configuration file")
    validate.add_argument("config", help="Configuration file path")

    list_actions = subparsers.add_parser("list-actions", help="List available actions")
    list_actions.add_argument("-c", "--config", help="Bridge configuration file path")
    list_actions.add_argument("-s", "--services", help="Services module or .py file to load")

    return parser


def normalize_argv(argv: List[str]) -> List[str]:
    """Translate the legacy `--settings PATH` form into `start PATH`."""
    if argv and argv[0] in COMMANDS:
        return argv

    for index, arg in enumerate(argv):
        if arg in LEGACY_FLAGS and index + 1 < len(argv):
            return ["start", argv[index + 1]]

    return argv


def resolve_config(config_path: Optional[str], services: Optional[str]) -> BridgeConfig:
    """Load configuration and apply command line broker overrides."""
    config = load_config(config_path)
    if services:
        config = with_overrides(config, services=services)
    return config


async def run_bridge(config: BridgeConfig, host: Optional[str], port: Optional[int]) -> None:
    """Start broker and gateway, then serve until interrupted."""
    broker = BridgeBroker(config.broker)
    gateway = McpGateway(config, broker)

    try:
        await broker.start()
        await gateway.start()

        server = uvicorn.Server(
            uvicorn.Config(
                gateway.app,
                host=host or config.server.host,
                port=port or config.server.port,
                log_config=None,  # Use our custom logging setup
                access_log=False,
            )
        )
        await server.serve()
    finally:
        await gateway.stop()
        await broker.stop()
        logger.info(event="application_shutdown")


async def describe_actions(config: BridgeConfig) -> None:
    """Print discovered actions and the MCP tools built from them."""
    broker = BridgeBroker(config.broker)

    try:
        print("Starting broker to discover actions...")
        await broker.start()

        actions = broker.list_actions()
        tools = ServiceCatalogue(broker, config).get_tools()
        exposed = {entry.action_name for entry in tools.values()}

        print("\nAvailable actions:")
        print(f"Total actions found: {len(actions)}")
        print(f"Tools exposed via MCP: {len(tools)}")

        print("\nMCP tools:")
        for name, entry in tools.items():
            print(f"  - {name}: {entry.description} ({entry.action_name})")

        print("\nAll actions:")
        for action in actions:
            status = "exposed" if action.name in exposed else "hidden"
            print(f"  [{status}] {action.name}")
    finally:
        await broker.stop()


def validate_config_file(config_path: str) -> int:
    """Validate a configuration file and print it normalized."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"Configuration validation failed: {e}", file=sys.stderr)
        return 1

    print("Configuration file is valid")
    print(json.dumps(config.model_dump(), indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(normalize_argv(sys.argv[1:] if argv is None else argv))

    if args.command == "validate-config":
        return validate_config_file(args.config)

    try:
        config = resolve_config(args.config, args.services)
        setup_logging(config.logging, broker_log_level=config.broker.log_level)

        if args.command == "list-actions":
            asyncio.run(describe_actions(config))
        else:
            logger.info(event="application_starting", node_id=config.broker.node_id)
            asyncio.run(run_bridge(config, args.host, args.port))

    except KeyboardInterrupt:
        logger.info(event="application_shutdown", reason="Keyboard interrupt")
    except (ConfigError, BridgeError, NamingError) as e:
        print(f"Failed to {args.command}: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
