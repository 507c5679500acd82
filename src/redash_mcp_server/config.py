"""Process-wide configuration loaded from environment variables."""

from __future__ import annotations

import os
import threading
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_PORT = 3000

# Checked in order; the first one set wins.
DATA_SOURCE_ID_VARIABLES = (
    "DEFAULT_DATA_SOURCE_ID",
    "DATA_SOURCE_ID",
    "REDASH_DEFAULT_DATA_SOURCE_ID",
)


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or malformed."""


class Settings(BaseModel):
    """Immutable connection settings for the Redash backend."""

    model_config = ConfigDict(frozen=True)

    api_key: str
    base_url: str
    default_data_source_id: int | None = None
    request_timeout: float = Field(default=30.0, gt=0)
    query_timeout_ms: int = Field(default=60_000, ge=0)
    poll_interval_ms: int = Field(default=1_000, ge=0)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables."""
        env = os.environ if environ is None else environ
        api_key = env.get("REDASH_API_KEY")
        base_url = env.get("REDASH_BASE_URL")
        if not api_key:
            raise ConfigurationError("REDASH_API_KEY environment variable is required")
        if not base_url:
            raise ConfigurationError("REDASH_BASE_URL environment variable is required")

        values: dict[str, object] = {"api_key": api_key, "base_url": base_url}
        optional = {
            "default_data_source_id": DATA_SOURCE_ID_VARIABLES,
            "request_timeout": ("REDASH_REQUEST_TIMEOUT",),
            "query_timeout_ms": ("REDASH_QUERY_TIMEOUT_MS",),
            "poll_interval_ms": ("REDASH_POLL_INTERVAL_MS",),
        }
        for field_name, variables in optional.items():
            raw = next((env[name] for name in variables if env.get(name)), None)
            if raw:
                values[field_name] = raw
        try:
            return cls.model_validate(values)
        except ValidationError as error:
            message = f"Invalid Redash configuration: {error}"
            raise ConfigurationError(message) from error


def port_from_env(environ: Mapping[str, str] | None = None) -> int:
    """Return the listening port for HTTP transports (``PORT``, default 3000)."""
    env = os.environ if environ is None else environ
    raw = env.get("PORT")
    if not raw:
        return DEFAULT_PORT
    try:
        return int(raw)
    except ValueError as error:
        raise ConfigurationError(f"PORT must be an integer, got {raw!r}") from error


class SettingsCell:
    """Memoized holder for the process settings.

    ``resolve()`` reads the environment once and returns the cached value on
    every later call until ``reset()`` clears it.
    """

    def __init__(self) -> None:
        self._settings: Settings | None = None
        self._lock = threading.Lock()

    def resolve(self) -> Settings:
        with self._lock:
            if self._settings is None:
                self._settings = Settings.from_env()
            return self._settings

    def reset(self) -> None:
        with self._lock:
            self._settings = None


settings = SettingsCell()
