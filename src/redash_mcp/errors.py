"""Protocol-level error types for MCP tool calls."""

from __future__ import annotations

from typing import Any, NoReturn


class MCPError(Exception):
    """Tool failure reported back to the caller instead of crashing the call.

    ``str(error)`` is the diagnostic shown to the client.
    ``error_type`` names the failure class (``UnknownTool``, ``InvalidInput``,
    ``RedashAPIError``, ...) and ``details`` carries anything structured, such
    as validation violations or the upstream status code.
    """

    def __init__(self, error_type: str, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Return the structured form used in logs."""
        return {
            "type": self.error_type,
            "message": self.message,
            "details": self.details,
        }

    def to_tool_result(self) -> dict[str, Any]:
        """Render as an MCP ``tools/call`` result flagged with ``isError``."""
        return {"content": [{"type": "text", "text": self.message}], "isError": True}


def raise_mcp_error(error_type: str, message: str, details: Any = None) -> NoReturn:
    """Raise an :class:`MCPError`."""
    raise MCPError(error_type, message, details)
