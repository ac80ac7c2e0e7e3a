"""
Action broker for the MCP bridge.

The catalogue only needs two things from the service side: a snapshot of the
available actions with their parameter schemas, and a way to call one of them.
ActionRegistry is that contract; BridgeBroker implements it for services hosted
in-process, loaded from a module named in the broker configuration:

    # services.py
    def register(broker):
        broker.create_service("users", {
            "list": {"params": {"limit": "number"}, "handler": list_users},
            "get": get_user,
        })
"""

import asyncio
import importlib
import importlib.util
import inspect
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from common.config import BrokerConfig
from common.logging import get_logger

logger = get_logger(__name__)

ActionHandler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]

NODE_SERVICE = "$node"


class BridgeError(Exception):
    """Raised for broker and gateway lifecycle or call failures."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class ActionDescriptor:
    """Snapshot of one callable action and its raw parameter schema."""

    name: str
    params_schema: Any = None


@dataclass(frozen=True)
class LocalAction:
    """An action hosted by this process."""

    name: str
    handler: ActionHandler
    params: Any = None


class ActionRegistry(ABC):
    """Source of actions for the service catalogue."""

    @abstractmethod
    def list_actions(self) -> List[ActionDescriptor]:
        """Return the currently available actions."""
        pass

    @abstractmethod
    async def call(self, action_name: str, params: Dict[str, Any]) -> Any:
        """Call an action by name with the given parameters."""
        pass


class BridgeBroker(ActionRegistry):
    """
    In-process action broker.

    Services register named actions; the broker answers list_actions/call once
    started and exposes a built-in "$node" service for introspection.
    """

    def __init__(self, config: Optional[BrokerConfig] = None):
        """Initialize the broker."""
        self.config = config or BrokerConfig()
        self._actions: Dict[str, LocalAction] = {}
        self._services: Dict[str, List[str]] = {}
        self._started = False
        self._started_at: Optional[float] = None

        self._register_node_service()

    def create_service(self, name: str, actions: Mapping) -> None:
        """
        Register a service and its actions.

        Args:
            name: Service name, used as the action name prefix
            actions: Mapping of action name to a handler, or to a dict with
                "handler" and optional "params" keys

        Raises:
            BridgeError: If the service is already registered or an action is invalid
        """
        if name in self._services:
            raise BridgeError(f"Service '{name}' is already registered", code="SERVICE_EXISTS")

        action_names = []
        for action_name, definition in actions.items():
            if isinstance(definition, Mapping):
                handler = definition.get("handler")
                params = definition.get("params")
            else:
                handler = definition
                params = None

            if not callable(handler):
                raise BridgeError(
                    f"Action '{name}.{action_name}' has no callable handler", code="INVALID_ACTION"
                )

            full_name = f"{name}.{action_name}"
            self._actions[full_name] = LocalAction(name=full_name, handler=handler, params=params)
            action_names.append(full_name)

        self._services[name] = action_names
        logger.debug(event="service_registered", service=name, actions=action_names)

    async def start(self) -> None:
        """Load configured services and mark the broker ready."""
        if self._started:
            raise BridgeError("Broker is already started")

        if self.config.services:
            register = self._load_services_module(self.config.services)
            register(self)

        if self.config.discovery_delay:
            await asyncio.sleep(self.config.discovery_delay)

        self._started = True
        self._started_at = time.monotonic()

        logger.info(
            event="broker_started",
            node_id=self.config.node_id,
            services=len(self._services),
            actions=len(self._actions),
        )

    async def stop(self) -> None:
        """Stop the broker. Stopping a broker that is not running is a no-op."""
        if not self._started:
            return

        self._started = False
        self._started_at = None
        logger.info(event="broker_stopped", node_id=self.config.node_id)

    def list_actions(self) -> List[ActionDescriptor]:
        """Return a snapshot of all registered actions."""
        if not self._started:
            raise BridgeError("Broker is not started")

        return [
            ActionDescriptor(name=action.name, params_schema=action.params)
            for action in self._actions.values()
        ]

    async def call(self, action_name: str, params: Dict[str, Any]) -> Any:
        """
        Call an action.

        Raises:
            BridgeError: If the broker is not started, the action is unknown,
                or the action handler fails
        """
        if not self._started:
            raise BridgeError("Broker is not started")

        action = self._actions.get(action_name)
        if action is None:
            raise BridgeError(f"Action '{action_name}' is not available", code="ACTION_NOT_FOUND")

        try:
            result = action.handler(params)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            raise BridgeError(f"Failed to call action {action_name}: {e}") from e

    @property
    def is_running(self) -> bool:
        """Whether the broker has been started."""
        return self._started

    def _load_services_module(self, target: str) -> Callable[["BridgeBroker"], None]:
        """Import the services module and return its register function."""
        try:
            module = self._import_target(target)
        except Exception as e:
            raise BridgeError(f"Failed to load services module {target}: {e}") from e

        register = getattr(module, "register", None)
        if not callable(register):
            raise BridgeError(f"Services module {target} has no register(broker) function")

        logger.info(event="services_module_loaded", module=target)
        return register

    @staticmethod
    def _import_target(target: str) -> ModuleType:
        if not target.endswith(".py"):
            return importlib.import_module(target)

        path = Path(target).resolve()
        if not path.exists():
            raise FileNotFoundError(f"Services file not found: {path}")

        spec = importlib.util.spec_from_file_location(path.stem, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot import services file: {path}")

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    def _register_node_service(self) -> None:
        self.create_service(
            NODE_SERVICE,
            {
                "health": self._node_health,
                "services": self._node_services,
                "actions": self._node_actions,
            },
        )

    def _node_health(self, params: Dict[str, Any]) -> Dict[str, Any]:
        uptime = time.monotonic() - self._started_at if self._started_at else 0.0
        return {
            "node_id": self.config.node_id,
            "status": "ok",
            "uptime": round(uptime, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def _node_services(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [
            {"name": name, "actions": list(actions)} for name, actions in self._services.items()
        ]

    def _node_actions(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [{"name": action.name, "params": action.params} for action in self._actions.values()]
