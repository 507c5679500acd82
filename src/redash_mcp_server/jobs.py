"""Redash job status model and the polling loop that waits on it.

Redash reports query execution as a job. Depending on the server version the
status arrives as an integer code (1-5) or as a string; both are mapped onto
:class:`JobStatus` when the job payload is parsed, so the rest of the package
only ever sees the string enum.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import anyio
from pydantic import BaseModel, ConfigDict, Field, field_validator

from redash_mcp_server.client import RedashClient
from redash_mcp_server.errors import (
    JobNotFoundError,
    JobTimeoutError,
    RedashError,
    RedashErrorKind,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_POLL_INTERVAL_MS = 1_000


class JobStatus(str, Enum):
    """Canonical job status."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    @classmethod
    def from_wire(cls, value: object) -> JobStatus:
        """Map an integer code or status string from the API to a status."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Unknown job status: {value!r}")
        if isinstance(value, int):
            status = _WIRE_CODES.get(value)
        elif isinstance(value, str):
            key = value.strip().lower()
            if key.isdigit():
                status = _WIRE_CODES.get(int(key))
            else:
                status = _WIRE_NAMES.get(key)
        else:
            status = None
        if status is None:
            raise ValueError(f"Unknown job status: {value!r}")
        return status


_TERMINAL = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELLED})

_WIRE_CODES: dict[int, JobStatus] = {
    1: JobStatus.QUEUED,
    2: JobStatus.RUNNING,
    3: JobStatus.SUCCEEDED,
    4: JobStatus.FAILED,
    5: JobStatus.CANCELLED,
}

_WIRE_NAMES: dict[str, JobStatus] = {
    "pending": JobStatus.QUEUED,
    "queued": JobStatus.QUEUED,
    "started": JobStatus.RUNNING,
    "processing": JobStatus.RUNNING,
    "running": JobStatus.RUNNING,
    "finished": JobStatus.SUCCEEDED,
    "success": JobStatus.SUCCEEDED,
    "succeeded": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
    "failure": JobStatus.FAILED,
    "cancelled": JobStatus.CANCELLED,
    "canceled": JobStatus.CANCELLED,
}


class Job(BaseModel):
    """Snapshot of a backend job."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    status: JobStatus
    query_result_id: int | str | None = Field(default=None, alias="resultId")
    error: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value

    @field_validator("status", mode="before")
    @classmethod
    def _map_status(cls, value: object) -> JobStatus:
        return JobStatus.from_wire(value)

    @classmethod
    def from_response(cls, payload: dict[str, Any]) -> Job:
        """Parse a job payload, unwrapping the ``{"job": {...}}`` envelope."""
        return cls.model_validate(payload.get("job", payload))


class PollState(str, Enum):
    """States of a single :meth:`JobPoller.wait_for_job` run."""

    POLLING = "polling"
    TERMINAL_SUCCESS = "terminal_success"
    TERMINAL_FAILURE = "terminal_failure"
    TIMED_OUT = "timed_out"


def _state_for(job: Job) -> PollState:
    if job.status is JobStatus.SUCCEEDED:
        return PollState.TERMINAL_SUCCESS
    if job.status.is_terminal:
        return PollState.TERMINAL_FAILURE
    return PollState.POLLING


class JobPoller:
    """Wait for a Redash job to finish by polling at a fixed interval.

    The clock and sleep function are injectable so the loop can be driven
    without real timers. ``clock`` returns seconds; intervals and timeouts are
    expressed in milliseconds.
    """

    def __init__(
        self,
        client: RedashClient,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ) -> None:
        self._client = client
        self._clock = clock
        self._sleep = sleep
        self.state = PollState.POLLING
        self.checks = 0

    def _elapsed_ms(self, start: float) -> float:
        # Microsecond rounding keeps float drift from adding a check.
        return round((self._clock() - start) * 1000, 3)

    async def get_job(self, job_id: str) -> Job:
        """Fetch the current job status."""
        try:
            payload = await self._client.get(f"/api/jobs/{job_id}")
        except RedashError as error:
            if error.kind is RedashErrorKind.NOT_FOUND:
                raise JobNotFoundError(job_id) from error
            raise
        return Job.from_response(payload)

    async def wait_for_job(
        self,
        job_id: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> Job:
        """Poll until the job is terminal or ``timeout_ms`` elapses.

        Raises:
            JobTimeoutError: No terminal status was observed in time.
            JobNotFoundError: The job expired or was deleted.
            RedashError: Any other backend failure.
        """
        if timeout_ms < 0 or poll_interval_ms < 0:
            raise ValueError("timeout_ms and poll_interval_ms must be non-negative")

        self.state = PollState.POLLING
        self.checks = 0
        start = self._clock()
        elapsed_ms = 0.0
        while elapsed_ms < timeout_ms:
            job = await self.get_job(job_id)
            self.checks += 1
            self.state = _state_for(job)
            if self.state is not PollState.POLLING:
                logger.debug(
                    "Job %s reached %s after %d checks",
                    job_id,
                    job.status.value,
                    self.checks,
                )
                return job
            await self._sleep(poll_interval_ms / 1000)
            elapsed_ms = self._elapsed_ms(start)

        self.state = PollState.TIMED_OUT
        logger.warning("Job %s timed out after %dms", job_id, timeout_ms)
        raise JobTimeoutError(job_id, timeout_ms, int(elapsed_ms))
