"""
Service catalogue: broker actions to MCP tools.

Builds the tool map served by the gateway in a single synchronous pass:

1. keep the actions matched by the configured allow patterns
2. create the configured custom tools (they claim their target action)
3. create an auto-named tool for every remaining allowed action

Each tool gets a sanitized, collision-free name, a validated input schema and a
dispatch coroutine that merges pinned parameter overrides into the caller's arguments
before calling the broker.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set

from common.config import BridgeConfig, CustomToolSpec
from common.logging import TimedLogger, get_logger
from .broker import ActionDescriptor, ActionRegistry
from .name_sanitizer import NameSanitizer
from .schema_factory import ObjectSchema, build_root_schema

logger = get_logger(__name__)

SYSTEM_ACTION_PREFIX = "$node."

ToolResponse = Dict[str, List[Dict[str, str]]]
Dispatch = Callable[[Dict[str, Any]], Awaitable[ToolResponse]]


@dataclass(frozen=True)
class ToolEntry:
    """A tool ready to be served over MCP."""

    description: str
    input_schema: ObjectSchema
    dispatch: Dispatch
    action_name: str


@dataclass
class _BuildPass:
    """State owned by one catalogue build."""

    used_names: Set[str] = field(default_factory=set)
    name_map: Dict[str, str] = field(default_factory=dict)
    tools: Dict[str, ToolEntry] = field(default_factory=dict)


class ServiceCatalogue:
    """
    Catalogue of MCP tools built from broker actions.

    The catalogue is built on construction and can be rebuilt with build(); a
    rebuild replaces the tool map instead of mutating it.
    """

    def __init__(self, broker: ActionRegistry, config: BridgeConfig):
        """Initialize and build the catalogue."""
        self.broker = broker
        self.config = config
        self._tools: Dict[str, ToolEntry] = {}
        self._name_map: Dict[str, str] = {}

        self.build()

    def build(self) -> None:
        """
        Build the tool map from the current broker actions.

        Raises:
            NamingError: If a tool name cannot be sanitized or made unique
        """
        build = _BuildPass()

        with TimedLogger(logger, "catalogue_built", module=__name__) as timer:
            actions = self.broker.list_actions()
            allowed_actions = self.filter_allowed_actions(actions, self.config.allow)

            logger.info(
                event="catalogue_actions_filtered",
                total_actions=len(actions),
                allowed_actions=len(allowed_actions),
            )

            self._process_custom_tools(build, allowed_actions)
            self._process_remaining_actions(build, allowed_actions)

            timer.context["tools"] = len(build.tools)

        self._tools = build.tools
        self._name_map = build.name_map

    def get_tools(self) -> Dict[str, ToolEntry]:
        """Return a snapshot copy of the tool map."""
        return dict(self._tools)

    def get_action_name(self, tool_name: str) -> Optional[str]:
        """Return the broker action behind a tool, if the tool exists."""
        return self._name_map.get(tool_name)

    @classmethod
    def filter_allowed_actions(
        cls, actions: Sequence[ActionDescriptor], allow_patterns: Sequence[str]
    ) -> List[ActionDescriptor]:
        """Keep the actions matched by at least one allow pattern."""
        return [action for action in actions if cls.is_action_allowed(action.name, allow_patterns)]

    @staticmethod
    def is_action_allowed(action_name: str, allow_patterns: Sequence[str]) -> bool:
        """
        Check an action name against allow patterns.

        "*" matches everything, "prefix*" matches by literal prefix, anything else
        must match exactly.
        """
        for pattern in allow_patterns:
            if pattern == "*":
                return True

            if pattern.endswith("*"):
                if action_name.startswith(pattern[:-1]):
                    return True
                continue

            if action_name == pattern:
                return True

        return False

    @staticmethod
    def generate_tool_description(action_name: str) -> str:
        """Synthesize a description for an auto-generated tool."""
        if action_name.startswith(SYSTEM_ACTION_PREFIX):
            remainder = action_name[len(SYSTEM_ACTION_PREFIX) :]
            return f"Get {remainder} information from the node."

        if "." in action_name:
            parts = action_name.split(".")
            service = parts[0]
            method = parts[-1]
            if method:
                return f"{method[0].upper()}{method[1:]} operation for the {service} service."

        return f"Execute the {action_name} action."

    def create_tool_entry(
        self,
        tool_name: str,
        action: ActionDescriptor,
        description: str,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> ToolEntry:
        """
        Create the tool entry for an action.

        Args:
            tool_name: Final (sanitized, unique) tool name
            action: Broker action the tool calls
            description: Tool description
            overrides: Parameter values pinned on every call; they take precedence
                over caller arguments and are optional in the input schema

        Returns:
            ToolEntry with input schema and dispatch coroutine
        """
        input_schema = build_root_schema(action.params_schema, name=tool_name)

        if overrides:
            input_schema = input_schema.with_optional(overrides.keys())

        return ToolEntry(
            description=description,
            input_schema=input_schema,
            dispatch=self._make_dispatch(tool_name, action.name, overrides),
            action_name=action.name,
        )

    def _process_custom_tools(
        self, build: _BuildPass, allowed_actions: List[ActionDescriptor]
    ) -> None:
        actions_by_name = {action.name: action for action in allowed_actions}

        for custom_tool in self.config.tools:
            action = actions_by_name.get(custom_tool.action)
            if action is None:
                logger.warning(
                    event="custom_tool_target_missing",
                    tool_name=custom_tool.name,
                    action=custom_tool.action,
                    message="Custom tool references non-existent or not allowed action",
                )
                continue

            safe_name = NameSanitizer.strip_forbidden(custom_tool.name)
            self._add_tool(build, safe_name, action, custom_tool.description, custom_tool.params)

    def _process_remaining_actions(
        self, build: _BuildPass, allowed_actions: List[ActionDescriptor]
    ) -> None:
        claimed = self._claimed_actions(self.config.tools)

        for action in allowed_actions:
            if action.name in claimed:
                continue

            safe_name = NameSanitizer.sanitize_action_name(action.name)
            description = self.generate_tool_description(action.name)
            self._add_tool(build, safe_name, action, description)

    def _add_tool(
        self,
        build: _BuildPass,
        safe_name: str,
        action: ActionDescriptor,
        description: str,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> None:
        final_name = NameSanitizer.ensure_unique(safe_name, build.used_names)

        build.used_names.add(final_name)
        build.name_map[final_name] = action.name
        build.tools[final_name] = self.create_tool_entry(final_name, action, description, overrides)

        logger.debug(
            event="tool_registered",
            tool_name=final_name,
            action=action.name,
            overridden_keys=sorted(overrides or {}),
        )

    @staticmethod
    def _claimed_actions(custom_tools: Sequence[CustomToolSpec]) -> Set[str]:
        return {tool.action for tool in custom_tools}

    def _make_dispatch(
        self, tool_name: str, action_name: str, overrides: Optional[Dict[str, Any]]
    ) -> Dispatch:
        broker = self.broker
        pinned = dict(overrides or {})

        async def dispatch(arguments: Dict[str, Any]) -> ToolResponse:
            final_args = {**(arguments or {}), **pinned}

            logger.info(
                event="tool_dispatch",
                tool_name=tool_name,
                action=action_name,
                argument_keys=sorted(final_args),
                overridden_keys=sorted(pinned),
            )

            try:
                result = await broker.call(action_name, final_args)
            except Exception as e:
                logger.error(
                    event="tool_dispatch_failed",
                    tool_name=tool_name,
                    action=action_name,
                    error=str(e),
                )
                raise

            return {"content": [{"type": "text", "text": json.dumps(result, default=str)}]}

        return dispatch
