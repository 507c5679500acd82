"""Adapters for exposing the Redash dispatcher via FastMCP."""

from __future__ import annotations

from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent

from redash_mcp.errors import MCPError
from redash_mcp.server import MCPServer


class DispatcherToolAdapter(Tool):
    """Expose one tool of an :class:`MCPServer` as a FastMCP tool."""

    def __init__(self, server: MCPServer, descriptor: dict[str, Any]) -> None:
        """Create a FastMCP tool wrapper for the named dispatcher tool."""
        super().__init__(
            name=descriptor["name"],
            description=descriptor["description"],
            parameters=descriptor["inputSchema"],
            tags=set(),
        )
        self._server = server

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        """Route the call through the dispatcher so errors are formatted once."""
        try:
            result = await self._server.call_tool(self.name, arguments)
        except MCPError as error:
            raise ToolError(str(error)) from error
        return ToolResult(
            content=[
                TextContent(type="text", text=entry["text"]) for entry in result.content
            ]
        )


def build_fastmcp_app(server: MCPServer) -> tuple[FastMCP, MCPServer]:
    """Create a FastMCP server instance with every dispatcher tool registered."""
    app = FastMCP(
        name=server.name,
        instructions="Redash query execution and saved query lookup over MCP.",
    )
    for descriptor in server.list_tools():
        app.add_tool(DispatcherToolAdapter(server, descriptor))
    return app, server
