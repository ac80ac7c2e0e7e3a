"""
JSON-RPC 2.0 messages for the MCP gateway.

MCP requests arrive as JSON-RPC envelopes; this module holds the envelope and
MCP payload models used by the gateway plus helpers to build and parse them.

Reference: https://www.jsonrpc.org/specification
MCP Spec: https://modelcontextprotocol.io/specification/2025-06-18/basic
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Transport level error used for unsupported HTTP methods
MCP_SERVER_ERROR = -32000

# Newest first; the first entry is offered when the client asks for an unknown version
SUPPORTED_PROTOCOL_VERSIONS = ["2025-06-18", "2025-03-26", "2024-11-05"]
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[0]


class JSONRPCError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Optional[Any] = None


class JSONRPCRequest(BaseModel):
    """JSON-RPC 2.0 request message."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Union[str, int]
    method: str
    params: Optional[Dict[str, Any]] = None


class JSONRPCResponse(BaseModel):
    """JSON-RPC 2.0 response message (success)."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Union[str, int]
    result: Any


class JSONRPCErrorResponse(BaseModel):
    """JSON-RPC 2.0 response message (error)."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Union[str, int, None]
    error: JSONRPCError


class JSONRPCNotification(BaseModel):
    """JSON-RPC 2.0 notification message (no response expected)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Optional[Dict[str, Any]] = None


JSONRPCMessage = Union[JSONRPCRequest, JSONRPCResponse, JSONRPCErrorResponse, JSONRPCNotification]
JSONRPCBatch = List[Union[JSONRPCRequest, JSONRPCNotification]]


class MCPMethods:
    """MCP method names handled by the gateway."""

    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    PING = "ping"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    CANCEL = "notifications/cancelled"


class MCPImplementation(BaseModel):
    """Name and version of an MCP client or server."""

    name: str
    version: str


class MCPCapabilities(BaseModel):
    """MCP server capabilities."""

    tools: Optional[Dict[str, Any]] = None


class MCPInitializeParams(BaseModel):
    """Parameters for initialize request."""

    model_config = ConfigDict(extra="allow")

    protocolVersion: str = LATEST_PROTOCOL_VERSION
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    clientInfo: Optional[MCPImplementation] = None


class MCPInitializeResult(BaseModel):
    """Result for initialize response."""

    protocolVersion: str
    capabilities: MCPCapabilities
    serverInfo: MCPImplementation


class MCPToolsCallParams(BaseModel):
    """Parameters for tools/call request."""

    name: str
    arguments: Optional[Dict[str, Any]] = None


class MCPToolDefinition(BaseModel):
    """One entry of a tools/list result."""

    name: str
    description: str
    inputSchema: Dict[str, Any]


class MCPToolsListResult(BaseModel):
    """Result for tools/list response."""

    tools: List[MCPToolDefinition]
    nextCursor: Optional[str] = None


class MCPTextContent(BaseModel):
    """Text content for tool results."""

    type: Literal["text"] = "text"
    text: str


class MCPToolsCallResult(BaseModel):
    """Result for tools/call response."""

    content: List[MCPTextContent]
    isError: bool = False


class JSONRPCHandler:
    """Helpers for building and parsing JSON-RPC messages."""

    @staticmethod
    def create_response(id: Union[str, int], result: Any) -> JSONRPCResponse:
        """Create a JSON-RPC success response."""
        return JSONRPCResponse(id=id, result=result)

    @staticmethod
    def create_error_response(
        id: Union[str, int, None], code: int, message: str, data: Optional[Any] = None
    ) -> JSONRPCErrorResponse:
        """Create a JSON-RPC error response."""
        return JSONRPCErrorResponse(id=id, error=JSONRPCError(code=code, message=message, data=data))

    @staticmethod
    def parse_message(data: Any) -> JSONRPCMessage:
        """
        Parse a raw JSON object into a JSON-RPC message.

        Raises:
            ValueError: If the object is not a JSON-RPC message (pydantic's
                ValidationError is a ValueError as well)
        """
        if not isinstance(data, dict):
            raise ValueError(f"Invalid JSON-RPC message: {data!r}")

        if "id" in data:
            if "method" in data:
                return JSONRPCRequest.model_validate(data)
            if "result" in data:
                return JSONRPCResponse.model_validate(data)
            if "error" in data:
                return JSONRPCErrorResponse.model_validate(data)
        elif "method" in data:
            return JSONRPCNotification.model_validate(data)

        raise ValueError(f"Invalid JSON-RPC message: {data!r}")

    @staticmethod
    def is_batch(data: Any) -> bool:
        """Check if the data represents a JSON-RPC batch."""
        return isinstance(data, list)

    @staticmethod
    def validate_batch(data: List[Any]) -> JSONRPCBatch:
        """Validate and parse a JSON-RPC batch of requests and notifications."""
        if not data:
            raise ValueError("Empty JSON-RPC batch")

        batch: JSONRPCBatch = []
        for item in data:
            message = JSONRPCHandler.parse_message(item)
            if not isinstance(message, (JSONRPCRequest, JSONRPCNotification)):
                raise ValueError(f"Invalid message in batch: {item!r}")
            batch.append(message)
        return batch

    @staticmethod
    def negotiate_protocol_version(requested: str) -> str:
        """Echo a supported client protocol version, otherwise offer the latest."""
        if requested in SUPPORTED_PROTOCOL_VERSIONS:
            return requested
        return LATEST_PROTOCOL_VERSION
