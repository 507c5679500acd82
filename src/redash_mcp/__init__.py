"""redash_mcp package initialization."""

from redash_mcp.errors import MCPError
from redash_mcp.server import MCPServer, ToolResult
from redash_mcp.tools import InvalidToolInput, ToolDefinition, ToolParameters

__version__ = "1.0.0"

__all__ = [
    "InvalidToolInput",
    "MCPError",
    "MCPServer",
    "ToolDefinition",
    "ToolParameters",
    "ToolResult",
]
