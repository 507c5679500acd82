"""JSON-RPC 2.0 binding of an :class:`MCPServer` for HTTP transports.

One :class:`JsonRpcSession` wraps one dispatcher. It answers the MCP methods a
tools-only server needs and leaves session bookkeeping to the transport.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    LATEST_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
)

from redash_mcp.errors import MCPError
from redash_mcp.server import MCPServer

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


class MethodNotFound(Exception):
    """The request names a method this server does not implement."""


class InvalidParams(Exception):
    """The request parameters are malformed."""


def error_envelope(
    code: int, message: str, request_id: str | int | None = None
) -> dict[str, Any]:
    """Build a JSON-RPC error response."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "error": {"code": code, "message": message},
        "id": request_id,
    }


def is_initialize_request(message: object) -> bool:
    """Return True for an ``initialize`` request (not a notification)."""
    return (
        isinstance(message, dict)
        and message.get("jsonrpc") == JSONRPC_VERSION
        and message.get("method") == "initialize"
        and "id" in message
    )


def contains_initialize_request(payload: object) -> bool:
    """Check a single message or the head of a batch for ``initialize``."""
    if isinstance(payload, list):
        return bool(payload) and is_initialize_request(payload[0])
    return is_initialize_request(payload)


class JsonRpcSession:
    """Dispatch JSON-RPC messages to one :class:`MCPServer`."""

    def __init__(self, server: MCPServer) -> None:
        self.server = server
        self.initialized = False

    async def handle_payload(
        self, payload: object
    ) -> dict[str, Any] | list[dict[str, Any]] | None:
        """Handle a single message or a batch.

        Returns ``None`` when nothing needs to be sent back (notifications and
        responses only).
        """
        if isinstance(payload, list):
            if not payload:
                return error_envelope(INVALID_REQUEST, "Invalid Request: empty batch")
            responses = [await self.handle_message(message) for message in payload]
            replies = [response for response in responses if response is not None]
            return replies or None
        return await self.handle_message(payload)

    async def handle_message(self, message: object) -> dict[str, Any] | None:
        if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
            return error_envelope(INVALID_REQUEST, "Invalid Request")

        method = message.get("method")
        request_id = message.get("id")
        if method is None:
            # A response to a server-initiated request; this server sends none.
            return None
        if not isinstance(method, str):
            return error_envelope(INVALID_REQUEST, "Invalid Request", request_id)
        if "id" not in message:
            self._handle_notification(method)
            return None

        params = message.get("params") or {}
        if not isinstance(params, dict):
            return error_envelope(INVALID_PARAMS, "Invalid params", request_id)

        try:
            result = await self._dispatch(method, params)
        except MethodNotFound:
            return error_envelope(
                METHOD_NOT_FOUND, f"Method not found: {method}", request_id
            )
        except InvalidParams as error:
            return error_envelope(INVALID_PARAMS, str(error), request_id)
        except Exception:
            logger.exception("Unhandled error in %s", method)
            return error_envelope(INTERNAL_ERROR, "Internal error", request_id)
        return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

    def _handle_notification(self, method: str) -> None:
        if method == "notifications/initialized":
            self.initialized = True
        else:
            logger.debug("Ignoring notification %s", method)

    async def _dispatch(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        if method == "initialize":
            return self._initialize(params)
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": self.server.list_tools()}
        if method == "tools/call":
            return await self._call_tool(params)
        raise MethodNotFound(method)

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        if requested in SUPPORTED_PROTOCOL_VERSIONS:
            version = requested
        else:
            version = LATEST_PROTOCOL_VERSION
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": self.server.name, "version": self.server.version},
        }

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments")
        if not isinstance(name, str):
            raise InvalidParams("tools/call requires a string 'name'")
        if arguments is not None and not isinstance(arguments, dict):
            raise InvalidParams("tools/call 'arguments' must be an object")

        try:
            result = await self.server.call_tool(name, arguments)
        except MCPError as error:
            logger.info("Tool %s failed: %s", name, error.to_dict())
            return error.to_tool_result()
        return {**result.to_dict(), "isError": False}
