"""HTTP client for the Redash REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from redash_mcp_server import config
from redash_mcp_server.config import Settings
from redash_mcp_server.errors import RedashError

logger = logging.getLogger(__name__)


class RedashClient:
    """Typed GET/POST access to the Redash API.

    Every request carries the ``Authorization: Key <api-key>`` header. Success
    responses are returned as parsed JSON without further validation; any other
    status raises :class:`RedashError` tagged with the matching kind.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Bind the client to connection settings.

        Without explicit settings the process-wide configuration is resolved
        on first use.
        """
        self._settings = settings

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            return config.settings.resolve()
        return self._settings

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Key {self.settings.api_key}",
            "Content-Type": "application/json",
        }

    def url(self, path: str) -> str:
        """Join a resource path onto the configured base URL."""
        return f"{self.settings.base_url.rstrip('/')}{path}"

    async def get(self, path: str) -> Any:
        """Send a GET request and return the decoded JSON body."""
        return await self._request("GET", path)

    async def post(self, path: str, body: Any) -> Any:
        """Send a POST request with a JSON body and return the decoded response."""
        return await self._request("POST", path, body)

    async def _request(self, method: str, path: str, body: Any = None) -> Any:
        url = self.url(path)
        logger.debug("%s %s", method, url)
        async with httpx.AsyncClient(
            headers=self.headers, timeout=self.settings.request_timeout
        ) as client:
            if body is None:
                response = await client.request(method, url)
            else:
                response = await client.request(method, url, json=body)

        if response.is_success:
            return response.json()

        logger.warning("%s %s returned HTTP %s", method, url, response.status_code)
        raise RedashError.from_status(
            response.status_code, response.text, response.reason_phrase
        )
