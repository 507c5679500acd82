"""MCP tool registry and dispatcher.

The server tracks registered tools, validates incoming arguments against each
tool's parameter model and routes calls to the tool handlers. Transport details
live elsewhere; every transport drives the same two operations,
:meth:`MCPServer.list_tools` and :meth:`MCPServer.call_tool`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from redash_mcp.errors import MCPError
from redash_mcp.tools import InvalidToolInput, ToolDefinition

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Result returned by tool execution.

    Attributes:
        content: Ordered content entries, each ``{"type": "text", "text": ...}``.

    """

    content: list[dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> ToolResult:
        """Wrap a tool payload as a single pretty-printed JSON text entry."""
        text = json.dumps(payload, indent=2, ensure_ascii=False)
        return cls(content=[{"type": "text", "text": text}])

    @property
    def text(self) -> str:
        """Concatenated text of all content entries."""
        return "".join(entry["text"] for entry in self.content)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the result to the MCP ``tools/call`` result shape."""
        return {"content": [dict(entry) for entry in self.content]}


class MCPServer:
    """In-memory registry and dispatcher for MCP tools.

    Tools are listed in registration order. A server instance holds no state
    beyond its registry, so one instance can be created per client session.
    """

    def __init__(self, name: str = "redash-mcp-server", version: str = "0.0.0") -> None:
        """Initialize an empty server registry."""
        self.name = name
        self.version = version
        self._tools: dict[str, ToolDefinition] = {}

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a tool with the server.

        Args:
            tool: Tool definition to register.

        Raises:
            ValueError: If a tool with the same name is already registered.

        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def register_tools(self, *tools: ToolDefinition) -> None:
        """Register multiple tools at once.

        Args:
            *tools: Collection of tool definitions to register.

        """
        for tool in tools:
            self.register_tool(tool)

    def available_tools(self) -> list[str]:
        """List the names of registered tools in registration order."""
        return list(self._tools)

    def list_tools(self) -> list[dict[str, Any]]:
        """Return tool descriptors for protocol discovery."""
        return [tool.metadata() for tool in self._tools.values()]

    def to_catalog(self) -> dict[str, dict[str, Any]]:
        """Produce a catalog for discovery.

        Returns:
            Mapping of tool names to their metadata.

        """
        return {name: tool.metadata() for name, tool in self._tools.items()}

    async def call_tool(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> ToolResult:
        """Execute a registered tool.

        Args:
            name: Name of the registered tool to execute.
            arguments: Raw arguments supplied by the client.

        Raises:
            MCPError: ``UnknownTool`` when no tool matches ``name``,
                ``InvalidInput`` when the arguments fail validation (the
                violation list is carried in ``details``), or whatever
                structured error the handler raised.

        Returns:
            ToolResult holding the pretty-printed JSON payload.

        """
        tool = self._tools.get(name)
        if tool is None:
            raise MCPError("UnknownTool", f"Unknown tool: {name}")

        try:
            validated = tool.validate(arguments or {})
        except InvalidToolInput as error:
            raise MCPError(
                "InvalidInput",
                f"Invalid input: {json.dumps(error.violations)}",
                error.violations,
            ) from error

        logger.debug("Calling tool %s", name)
        try:
            payload = await tool.handler(validated)
        except MCPError as error:
            logger.info("Tool %s failed: %s", name, error.error_type)
            raise
        return ToolResult.from_payload(payload)
