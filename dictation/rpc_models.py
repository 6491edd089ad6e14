"""JSON-RPC 2.0 request and response models for the stdio server."""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

# JSON-RPC error codes
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

RequestId = Union[int, str]


class RpcMethod(str, Enum):
    """Methods understood by the server."""

    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    PING = "ping"

    @classmethod
    def parse(cls, method: str) -> Optional["RpcMethod"]:
        """Return the matching method, or None if it is not supported."""
        try:
            return cls(method)
        except ValueError:
            return None


class JsonRpcRequest(BaseModel):
    """An incoming request or notification."""

    jsonrpc: Optional[str] = None
    id: Optional[RequestId] = None
    method: str
    params: Optional[Dict[str, Any]] = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    @property
    def params_or_empty(self) -> Dict[str, Any]:
        return self.params or {}


class ToolCallParams(BaseModel):
    """Parameters of a tools/call request."""

    name: str = ""
    arguments: Dict[str, Any] = Field(default_factory=dict)


class TextContent(BaseModel):
    """A text block in a tool result."""

    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """Result envelope of a tool call, also used for application errors."""

    model_config = ConfigDict(populate_by_name=True)

    content: List[TextContent]
    is_error: Optional[bool] = Field(default=None, alias="isError")

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "ToolResult":
        return cls(content=[TextContent(text=text)], is_error=True if is_error else None)


class ServerInfo(BaseModel):
    name: str
    version: str


class InitializeResult(BaseModel):
    """Static server metadata returned by initialize."""

    model_config = ConfigDict(populate_by_name=True)

    protocol_version: str = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    capabilities: Dict[str, Any] = Field(default_factory=lambda: {"tools": {}})
    server_info: ServerInfo = Field(alias="serverInfo")


class ToolListing(BaseModel):
    """A tool as advertised by tools/list."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    input_schema: Dict[str, Any] = Field(alias="inputSchema")


class ToolsListResult(BaseModel):
    tools: List[ToolListing]


class ErrorObject(BaseModel):
    code: int
    message: str


class JsonRpcResponse(BaseModel):
    """A response carrying exactly one of result or error."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId
    result: Optional[Any] = None
    error: Optional[ErrorObject] = None

    @classmethod
    def success(cls, request_id: RequestId, result: Any) -> "JsonRpcResponse":
        if isinstance(result, BaseModel):
            result = result.model_dump(mode="json", by_alias=True, exclude_none=True)
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: RequestId, code: int, message: str) -> "JsonRpcResponse":
        return cls(id=request_id, error=ErrorObject(code=code, message=message))

    def to_wire(self) -> Dict[str, Any]:
        """Serialize, keeping only the field that is set of result/error."""
        data: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error.model_dump()
        else:
            data["result"] = self.result
        return data
