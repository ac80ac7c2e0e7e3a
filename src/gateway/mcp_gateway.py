"""
MCP HTTP gateway using FastAPI.

Serves the service catalogue as MCP tools over JSON-RPC 2.0:
- POST / and POST /v1/mcp - initialize, ping, tools/list, tools/call (single or batch)
- GET/DELETE on the same paths - 405, the gateway is stateless and has no SSE stream
- GET /health - broker and gateway status
- GET /tools - names and descriptions of the tools a fresh catalogue would expose
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from bridge.broker import BridgeBroker, BridgeError
from bridge.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    MCP_SERVER_ERROR,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JSONRPCErrorResponse,
    JSONRPCHandler,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    MCPCapabilities,
    MCPImplementation,
    MCPInitializeParams,
    MCPInitializeResult,
    MCPMethods,
    MCPTextContent,
    MCPToolDefinition,
    MCPToolsCallParams,
    MCPToolsCallResult,
    MCPToolsListResult,
)
from bridge.service_catalogue import ServiceCatalogue
from common.config import BridgeConfig
from common.logging import get_logger, log_startup_message

logger = get_logger(__name__)

MCP_PATHS = ["/", "/v1/mcp"]

# Pagination constants
DEFAULT_PAGE_SIZE = 100

RPCResponse = Union[JSONRPCResponse, JSONRPCErrorResponse]


class McpGateway:
    """
    MCP gateway in front of the action broker.

    The broker must be running before start(); start() builds the service
    catalogue once and every request is served from that snapshot.
    """

    def __init__(self, config: BridgeConfig, broker: BridgeBroker):
        """Initialize the gateway and its FastAPI app."""
        self.config = config
        self.broker = broker
        self.catalogue: Optional[ServiceCatalogue] = None
        self._started = False

        self.server_info = MCPImplementation(
            name=config.server.name, version=config.server.version
        )
        self.capabilities = MCPCapabilities(tools={"listChanged": False})

        self.app = FastAPI(title=config.server.name, version=config.server.version)
        self._setup_routes()

    async def start(self) -> None:
        """
        Build the service catalogue and start serving tools.

        Raises:
            BridgeError: If the gateway is already started or the broker is not running
        """
        if self._started:
            raise BridgeError("Gateway is already started")

        if not self.broker.is_running:
            raise BridgeError("Broker must be started before gateway")

        self.catalogue = ServiceCatalogue(self.broker, self.config)
        self._started = True

        log_startup_message(
            "mcp_gateway_started",
            endpoints=[
                f"http://{self.config.server.host}:{self.config.server.port}{path}"
                for path in MCP_PATHS
            ],
            tools=len(self.catalogue.get_tools()),
        )

    async def stop(self) -> None:
        """Stop serving tools."""
        if not self._started:
            return

        self._started = False
        self.catalogue = None
        logger.info(event="mcp_gateway_stopped")

    @property
    def is_running(self) -> bool:
        """Whether the gateway has been started."""
        return self._started

    def _setup_routes(self) -> None:
        """Setup FastAPI routes."""
        for path in MCP_PATHS:
            self.app.add_api_route(path, self._handle_mcp_post, methods=["POST"])
            self.app.add_api_route(path, self._handle_method_not_allowed, methods=["GET", "DELETE"])

        @self.app.get("/health")
        async def health_check() -> Dict[str, Any]:
            """Health check endpoint."""
            return {
                "status": "ok",
                "broker": self.broker.is_running,
                "gateway": self.is_running,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

        @self.app.get("/tools")
        async def list_tools() -> JSONResponse:
            """List the tools a freshly built catalogue exposes."""
            if not self.broker.is_running:
                return JSONResponse({"error": "Bridge broker is not running"}, status_code=503)

            catalogue = ServiceCatalogue(self.broker, self.config)
            return JSONResponse(
                [
                    {"name": name, "description": entry.description}
                    for name, entry in catalogue.get_tools().items()
                ]
            )

    async def _handle_mcp_post(self, request: Request) -> Response:
        """
        Main JSON-RPC endpoint.

        Handles both single requests and batch requests according to the
        JSON-RPC 2.0 specification.
        """
        try:
            body = await request.json()
        except ValueError as e:
            return self._error(None, PARSE_ERROR, f"Parse error: {e}", status_code=400)

        if self.catalogue is None:
            logger.error(event="mcp_request_rejected", reason="catalogue_not_initialized")
            return self._error(
                None,
                INTERNAL_ERROR,
                "Service catalogue not initialized. Call start() first.",
                status_code=500,
            )

        try:
            if JSONRPCHandler.is_batch(body):
                messages = JSONRPCHandler.validate_batch(body)
            else:
                messages = [JSONRPCHandler.parse_message(body)]
        except ValueError as e:
            return self._error(None, INVALID_REQUEST, f"Invalid request: {e}", status_code=400)

        responses: List[RPCResponse] = []
        for message in messages:
            if isinstance(message, JSONRPCRequest):
                responses.append(await self._handle_request(message))
            elif isinstance(message, JSONRPCNotification):
                await self._handle_notification(message)

        if not responses:
            # Only notifications (or client responses) were received
            return Response(status_code=202)

        if JSONRPCHandler.is_batch(body):
            return JSONResponse([self._dump(r) for r in responses])

        return JSONResponse(self._dump(responses[0]))

    async def _handle_method_not_allowed(self, request: Request) -> Response:
        return self._error(None, MCP_SERVER_ERROR, "Method not allowed", status_code=405)

    async def _handle_request(self, request: JSONRPCRequest) -> RPCResponse:
        """Route a JSON-RPC request to its handler."""
        try:
            logger.debug(event="jsonrpc_request", method=request.method, id=request.id)

            if request.method == MCPMethods.INITIALIZE:
                return self._handle_initialize(request)
            elif request.method == MCPMethods.PING:
                return JSONRPCHandler.create_response(request.id, {})
            elif request.method == MCPMethods.TOOLS_LIST:
                return self._handle_tools_list(request)
            elif request.method == MCPMethods.TOOLS_CALL:
                return await self._handle_tools_call(request)
            else:
                return JSONRPCHandler.create_error_response(
                    request.id, METHOD_NOT_FOUND, f"Method '{request.method}' not found"
                )

        except Exception as e:
            logger.error(event="request_handler_error", method=request.method, error=str(e))
            return JSONRPCHandler.create_error_response(
                request.id, INTERNAL_ERROR, f"Internal error: {e}"
            )

    async def _handle_notification(self, notification: JSONRPCNotification) -> None:
        if notification.method == MCPMethods.INITIALIZED:
            logger.debug(event="client_ready")
        elif notification.method == MCPMethods.CANCEL:
            # Dispatch runs inside the HTTP request; cancellation belongs to the transport
            logger.debug(event="cancel_notification_ignored", params=notification.params)
        else:
            logger.warning(event="unknown_notification", method=notification.method)

    def _handle_initialize(self, request: JSONRPCRequest) -> RPCResponse:
        """Handle initialize request - capability negotiation."""
        try:
            params = MCPInitializeParams.model_validate(request.params or {})
        except ValidationError as e:
            return JSONRPCHandler.create_error_response(
                request.id, INVALID_PARAMS, f"Invalid initialize params: {e}"
            )

        result = MCPInitializeResult(
            protocolVersion=JSONRPCHandler.negotiate_protocol_version(params.protocolVersion),
            capabilities=self.capabilities,
            serverInfo=self.server_info,
        )

        logger.info(
            event="client_initialized",
            client_info=params.clientInfo.model_dump() if params.clientInfo else None,
            protocol_version=result.protocolVersion,
        )

        return JSONRPCHandler.create_response(request.id, result.model_dump(exclude_none=True))

    def _handle_tools_list(self, request: JSONRPCRequest) -> RPCResponse:
        """Handle tools/list request with cursor-based pagination."""
        tools = [
            MCPToolDefinition(
                name=name,
                description=entry.description,
                inputSchema=entry.input_schema.json_schema(),
            )
            for name, entry in self.catalogue.get_tools().items()
        ]

        cursor = (request.params or {}).get("cursor")
        start_index = 0
        if cursor:
            try:
                start_index = int(cursor)
            except (TypeError, ValueError):
                return JSONRPCHandler.create_error_response(
                    request.id, INVALID_PARAMS, "Invalid cursor format"
                )

            if start_index < 0:
                return JSONRPCHandler.create_error_response(
                    request.id, INVALID_PARAMS, "Invalid cursor: must not be negative"
                )

        end_index = start_index + DEFAULT_PAGE_SIZE
        next_cursor = str(end_index) if end_index < len(tools) else None

        result = MCPToolsListResult(tools=tools[start_index:end_index], nextCursor=next_cursor)
        return JSONRPCHandler.create_response(request.id, result.model_dump(exclude_none=True))

    async def _handle_tools_call(self, request: JSONRPCRequest) -> RPCResponse:
        """Handle tools/call request."""
        try:
            params = MCPToolsCallParams.model_validate(request.params or {})
        except ValidationError as e:
            return JSONRPCHandler.create_error_response(
                request.id, INVALID_PARAMS, f"Invalid tool call params: {e}"
            )

        entry = self.catalogue.get_tools().get(params.name)
        if entry is None:
            return JSONRPCHandler.create_error_response(
                request.id, INVALID_PARAMS, f"Tool {params.name} not found"
            )

        try:
            arguments = entry.input_schema.validate(params.arguments)
        except ValidationError as e:
            return JSONRPCHandler.create_error_response(
                request.id,
                INVALID_PARAMS,
                f"Invalid arguments for tool {params.name}: {e}",
            )

        try:
            response = await entry.dispatch(arguments)
            result = MCPToolsCallResult.model_validate(response)
        except Exception as e:
            # A failed call is reported to the client; the gateway keeps serving
            result = MCPToolsCallResult(content=[MCPTextContent(text=str(e))], isError=True)

        return JSONRPCHandler.create_response(request.id, result.model_dump())

    @staticmethod
    def _error(
        id: Optional[Union[str, int]], code: int, message: str, status_code: int
    ) -> JSONResponse:
        error_response = JSONRPCHandler.create_error_response(id, code, message)
        return JSONResponse(McpGateway._dump(error_response), status_code=status_code)

    @staticmethod
    def _dump(response: RPCResponse) -> Dict[str, Any]:
        data = response.model_dump(exclude_none=True)
        if isinstance(response, JSONRPCErrorResponse):
            # JSON-RPC requires "id": null when the request id is unknown
            data.setdefault("id", None)
        return data
