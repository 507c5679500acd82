"""Constants and doubles shared by the test modules."""

from __future__ import annotations

from typing import Any

from redash_mcp.tools import ToolDefinition, ToolParameters

BASE_URL = "https://redash.example.com"


class FakeClock:
    """Manual clock whose sleep advances time instead of waiting."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class EchoParameters(ToolParameters):
    """Schema for the echo tool."""

    text: str
    repeat: int = 1


def make_echo_tool(name: str = "echo") -> ToolDefinition:
    async def handler(params: dict[str, Any]) -> dict[str, Any]:
        return {"echo": params["text"] * params.get("repeat", 1)}

    return ToolDefinition(
        name=name,
        description="Echo text back.",
        parameters_model=EchoParameters,
        handler=handler,
    )
