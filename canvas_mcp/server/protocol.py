"""
JSON-RPC 2.0 handling for MCP tool requests.

Envelope problems are protocol errors. Anything that goes wrong inside a
tool is reported as a successful response whose result has ``isError`` set,
so the agent can read the message and carry on.

Every dispatch logs one JSON record with the tool name, request id,
duration, success flag and error code. Arguments are never logged.
"""

import json
import logging
import time
from typing import Any, Optional, Union

from starlette.concurrency import run_in_threadpool

from ..canvas.client import CanvasClient
from ..canvas.errors import CanvasError
from .tools import TOOLS, ToolError, handle_tool_call

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601

RequestId = Optional[Union[str, int]]


def jsonrpc_ok(request_id: RequestId, result: Any) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def jsonrpc_error(request_id: RequestId, code: int, message: str) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": {"code": code, "message": message}}


def error_code(error: Exception) -> str:
    """Machine-readable code for a tool failure."""
    if isinstance(error, (CanvasError, ToolError)):
        return error.code
    return "internal_error"


def tool_error_result(error: Exception) -> dict:
    """Wrap a tool failure as a recoverable MCP tool result."""
    message = str(error) or "Unknown error"
    return {
        "content": [{"type": "text", "text": f"Error [{error_code(error)}]: {message}"}],
        "isError": True,
    }


def log_dispatch(
    event: str,
    request_id: RequestId,
    started: float,
    success: bool,
    tool: Optional[str] = None,
    code: Optional[str] = None,
) -> None:
    """Emit the structured telemetry record for one dispatch."""
    record = {
        "level": "info" if success else "error",
        "event": event,
        "tool": tool,
        "request_id": request_id,
        "duration_ms": round((time.monotonic() - started) * 1000),
        "success": success,
    }
    if code is not None:
        record["code"] = code
    logger.log(logging.INFO if success else logging.ERROR, json.dumps(record))


class ProtocolHandler:
    """
    Dispatches JSON-RPC requests to the Canvas tools.

    Usage:
        handler = ProtocolHandler(client)
        status, payload = await handler.handle({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
    """

    def __init__(self, client: CanvasClient):
        self.client = client

    async def handle(self, body: Any) -> tuple[int, dict]:
        """
        Handle one JSON-RPC request body.

        Returns:
            (HTTP status, JSON-RPC response payload)
        """
        if not isinstance(body, dict):
            return 400, jsonrpc_error(None, INVALID_REQUEST, "Invalid request body")

        if body.get("jsonrpc") != JSONRPC_VERSION or not isinstance(body.get("method"), str):
            return 400, jsonrpc_error(None, INVALID_REQUEST, "Invalid JSON-RPC 2.0 request")

        method = body["method"]
        request_id = body.get("id")
        params = body.get("params")
        if not isinstance(params, dict):
            params = {}

        if method == "tools/list":
            return 200, self.list_tools(request_id)

        if method == "tools/call":
            return 200, await self.call_tool(request_id, params)

        return 200, jsonrpc_error(request_id, METHOD_NOT_FOUND, "Method not found")

    def list_tools(self, request_id: RequestId) -> dict:
        started = time.monotonic()
        result = {"tools": TOOLS}
        log_dispatch("list_tools", request_id, started, success=True)
        return jsonrpc_ok(request_id, result)

    async def call_tool(self, request_id: RequestId, params: dict) -> dict:
        name = params.get("name")
        arguments = params.get("arguments")
        tool = name if isinstance(name, str) else None
        started = time.monotonic()

        try:
            result = await run_in_threadpool(handle_tool_call, name, arguments, self.client)
        except Exception as e:
            code = error_code(e)
            log_dispatch("tool_call", request_id, started, success=False, tool=tool, code=code)
            if code == "internal_error":
                logger.error(f"Unexpected failure in tool {tool}: {e!r}")
            return jsonrpc_ok(request_id, tool_error_result(e))

        log_dispatch("tool_call", request_id, started, success=True, tool=tool)
        return jsonrpc_ok(request_id, result)
