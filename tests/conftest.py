"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from redash_mcp.tools import ToolDefinition
from redash_mcp_server import config
from redash_mcp_server.client import RedashClient
from redash_mcp_server.config import Settings
from tests.helpers import BASE_URL, FakeClock, make_echo_tool


@pytest.fixture(autouse=True)
def reset_settings() -> Iterator[None]:
    """Keep the process-wide settings cell isolated between tests."""
    config.settings.reset()
    yield
    config.settings.reset()


@pytest.fixture()
def settings() -> Settings:
    """Settings pointing at a fake Redash host with a default data source."""
    return Settings(
        api_key="test-key",
        base_url=BASE_URL,
        default_data_source_id=1,
        poll_interval_ms=0,
    )


@pytest.fixture()
def client(settings: Settings) -> RedashClient:
    """Client bound to the fake host."""
    return RedashClient(settings)


@pytest.fixture()
def fake_clock() -> FakeClock:
    """Manual clock for driving the job poller."""
    return FakeClock()


@pytest.fixture()
def echo_tool() -> ToolDefinition:
    """Minimal tool for exercising registries without a backend."""
    return make_echo_tool()


@pytest.fixture()
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio only; the project does not target trio."""
    return "asyncio"
