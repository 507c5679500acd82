"""Tool definitions for the Redash MCP dispatcher."""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from pydantic import BaseModel, ConfigDict, ValidationError

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class ToolParameters(BaseModel):
    """Base parameters schema for MCP tools."""

    model_config = ConfigDict(extra="forbid")


class InvalidToolInput(ValueError):
    """Raised when tool arguments do not satisfy the parameter schema.

    Attributes:
        tool_name: Name of the tool whose arguments were rejected.
        violations: One entry per violated constraint, each carrying the field
            path (``loc``), a human-readable reason (``msg``) and the pydantic
            error ``type``.
    """

    def __init__(self, tool_name: str, violations: List[Dict[str, Any]]) -> None:
        self.tool_name = tool_name
        self.violations = violations
        super().__init__(f"Invalid parameters for tool '{tool_name}'")


def _violations(error: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": list(item["loc"]), "msg": item["msg"], "type": item["type"]}
        for item in error.errors()
    ]


@dataclass(frozen=True)
class ToolDefinition:
    """Description of a tool that can be registered with the server.

    Attributes:
        name: Unique name of the tool.
        description: Human-readable description of the tool purpose.
        parameters_model: Pydantic model used to validate input parameters.
        handler: Coroutine function that executes the tool logic.
    """

    name: str
    description: str
    parameters_model: type[ToolParameters]
    handler: ToolHandler

    def validate(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and coerce incoming tool parameters.

        Args:
            parameters: Input parameters provided for the tool.

        Raises:
            InvalidToolInput: If parameter validation fails.

        Returns:
            Validated parameter dictionary. Optional parameters the caller
            omitted are left out rather than filled with ``None``.
        """

        try:
            model = self.parameters_model.model_validate(parameters)
        except ValidationError as error:
            raise InvalidToolInput(self.name, _violations(error)) from error
        return model.model_dump(exclude_unset=True)

    def input_schema(self) -> Dict[str, Any]:
        """Return the JSON schema advertised for the tool arguments."""

        return self.parameters_model.model_json_schema()

    def metadata(self) -> Dict[str, Any]:
        """Return a discovery-friendly description of the tool."""

        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }
