"""JSON-RPC server over stdio exposing the dictation tools.

One JSON document per line in, one per line out. Requests are handled
strictly in order: a request, including any blocking work its tool performs,
is finished before the next line is read. Diagnostics go to the logging
handlers only, never to the protocol output stream.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from pydantic import ValidationError

from . import __version__
from .errors import ToolNotFound, UnknownMethod
from .registry import ToolRegistry
from .rpc_models import (
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
    InitializeResult,
    JsonRpcRequest,
    JsonRpcResponse,
    RpcMethod,
    ServerInfo,
    ToolCallParams,
    ToolListing,
    ToolResult,
    ToolsListResult,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "dictation"


class MCPServer:
    """Serves a tool registry over newline-delimited JSON-RPC."""

    def __init__(
        self,
        registry: ToolRegistry,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None,
        name: str = SERVER_NAME,
        version: str = __version__,
    ):
        """Initialize the server.

        Args:
            registry: Tools to expose.
            input_stream: Stream to read requests from (default: stdin).
            output_stream: Stream to write responses to (default: stdout).
            name: Server name reported by initialize.
            version: Server version reported by initialize.
        """
        self.registry = registry
        self.input_stream = input_stream if input_stream is not None else sys.stdin
        self.output_stream = output_stream if output_stream is not None else sys.stdout
        self.name = name
        self.version = version

    def serve(self) -> None:
        """Process requests until the input stream is exhausted."""
        logger.info(f"Starting v{self.version} with {len(self.registry)} tools")

        for line in self.input_stream:
            self.handle_line(line)

        logger.info("Input stream closed, shutting down")

    def handle_line(self, line: str) -> Optional[JsonRpcResponse]:
        """Handle one line of input.

        Returns:
            The response that was written, or None if nothing was written.
        """
        message = line.strip()
        if not message:
            return None

        try:
            data = json.loads(message)
        except json.JSONDecodeError as e:
            logger.debug(f"Ignoring unparseable input: {e}")
            return None

        if not isinstance(data, dict):
            logger.debug("Ignoring non-object input")
            return None

        try:
            request = JsonRpcRequest.model_validate(data)
        except ValidationError as e:
            logger.debug(f"Ignoring malformed request: {e}")
            return None

        logger.debug(
            f"Received: {request.method}"
            + (" (notification)" if request.is_notification else f" (id: {request.id})")
        )

        try:
            response = self.dispatch(request)
        except Exception as e:
            logger.exception(f"Error handling {request.method}")
            if request.is_notification:
                return None
            response = JsonRpcResponse.failure(
                request.id, INTERNAL_ERROR, f"Internal error: {e}"
            )

        if response is not None:
            self._send_response(response)
        return response

    def dispatch(self, request: JsonRpcRequest) -> Optional[JsonRpcResponse]:
        """Route a request to its handler.

        Returns:
            The response, or None for notifications and dropped requests.
        """
        method = RpcMethod.parse(request.method)

        if method is None:
            if request.is_notification:
                logger.debug(f"Dropping unknown notification: {request.method}")
                return None
            error = UnknownMethod(request.method)
            return JsonRpcResponse.failure(request.id, METHOD_NOT_FOUND, str(error))

        result: Any
        if method is RpcMethod.INITIALIZE:
            result = self._handle_initialize()
        elif method is RpcMethod.INITIALIZED:
            logger.info("Client initialized")
            return None
        elif method is RpcMethod.TOOLS_LIST:
            result = ToolsListResult(
                tools=[ToolListing.model_validate(t) for t in self.registry.listings()]
            )
        elif method is RpcMethod.TOOLS_CALL:
            result = self._handle_tools_call(request.params_or_empty)
        elif method is RpcMethod.PING:
            result = {}
        else:
            raise AssertionError(f"Unhandled method: {method}")

        if request.is_notification:
            return None
        return JsonRpcResponse.success(request.id, result)

    def _handle_initialize(self) -> InitializeResult:
        return InitializeResult(
            server_info=ServerInfo(name=self.name, version=self.version)
        )

    def _handle_tools_call(self, params: Dict[str, Any]) -> ToolResult:
        """Run a tool. Application errors become isError results."""
        try:
            call = ToolCallParams.model_validate(params)
        except ValidationError as e:
            return ToolResult.text(f"Invalid tool call parameters: {e}", is_error=True)

        logger.info(f"Calling tool: {call.name}")

        try:
            tool = self.registry.get(call.name)
        except ToolNotFound as e:
            logger.warning(str(e))
            return ToolResult.text(str(e), is_error=True)

        try:
            text = tool.handler(call.arguments)
        except Exception as e:
            logger.exception(f"Tool {call.name} failed")
            return ToolResult.text(f"Error: {str(e) or type(e).__name__}", is_error=True)

        return ToolResult.text(str(text))

    def _send_response(self, response: JsonRpcResponse) -> None:
        """Write a response as a single line and flush it."""
        line = json.dumps(response.to_wire(), ensure_ascii=False)
        self.output_stream.write(line + "\n")
        self.output_stream.flush()
        logger.debug(f"Sent response: {line}")
