"""Error taxonomy for Redash API calls and job polling."""

from __future__ import annotations

import json
from enum import Enum


class RedashErrorKind(str, Enum):
    """Closed set of backend failure kinds."""

    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    GENERIC = "generic"


# kind -> (status affinity, default message)
_KIND_DEFAULTS: dict[RedashErrorKind, tuple[int | None, str]] = {
    RedashErrorKind.AUTHENTICATION: (401, "Invalid API key or unauthorized access"),
    RedashErrorKind.NOT_FOUND: (404, "Resource not found"),
    RedashErrorKind.VALIDATION: (400, "Invalid request parameters"),
    RedashErrorKind.RATE_LIMIT: (429, "API rate limit exceeded"),
    RedashErrorKind.SERVER_ERROR: (500, "Redash server error"),
    RedashErrorKind.GENERIC: (None, "API request failed"),
}

_STATUS_KINDS: dict[int, RedashErrorKind] = {
    status: kind
    for kind, (status, _) in _KIND_DEFAULTS.items()
    if status is not None
}


class RedashError(Exception):
    """Failure reported by the Redash backend.

    The ``kind`` tag identifies the failure; callers dispatch on it rather
    than on subclasses.
    """

    def __init__(
        self,
        kind: RedashErrorKind,
        message: str | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        default_status, default_message = _KIND_DEFAULTS[kind]
        self.kind = kind
        self.message = message or default_message
        self.status_code = status_code if status_code is not None else default_status
        self.response_body = response_body
        super().__init__(self.message)

    @classmethod
    def from_status(
        cls, status_code: int, response_body: str | None = None, reason: str = ""
    ) -> RedashError:
        """Build the typed error for a non-success HTTP status."""
        kind = _STATUS_KINDS.get(status_code)
        if kind is None:
            return cls(
                RedashErrorKind.GENERIC,
                f"API request failed: {reason}" if reason else None,
                status_code=status_code,
                response_body=response_body,
            )
        return cls(kind, status_code=status_code, response_body=response_body)

    @classmethod
    def validation(cls, message: str) -> RedashError:
        """Build a validation error for a request rejected before sending."""
        return cls(RedashErrorKind.VALIDATION, message)


def format_redash_error(error: RedashError) -> str:
    """Render a Redash error as one human-readable diagnostic string.

    Details come from the ``message`` field when the body is JSON, otherwise
    from the raw body text.
    """
    text = f"Redash API Error: {error.message}"
    if error.status_code:
        text += f" (Status: {error.status_code})"
    if error.response_body:
        try:
            parsed = json.loads(error.response_body)
        except ValueError:
            text += f"\nDetails: {error.response_body}"
        else:
            if isinstance(parsed, dict) and parsed.get("message"):
                text += f"\nDetails: {parsed['message']}"
    return text


class JobError(Exception):
    """Base class for failures while waiting on a Redash job."""

    error_type = "JobError"


class JobNotFoundError(JobError):
    """The job resource no longer exists on the backend."""

    error_type = "JobNotFound"

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(
            f"Job with ID {job_id} not found. It may have expired or been deleted."
        )


class JobTimeoutError(JobError):
    """The job did not reach a terminal status before the deadline."""

    error_type = "JobTimeout"

    def __init__(self, job_id: str, timeout_ms: int, elapsed_ms: int) -> None:
        self.job_id = job_id
        self.timeout_ms = timeout_ms
        self.elapsed_ms = elapsed_ms
        super().__init__(f"Job {job_id} timed out after {timeout_ms}ms")


class QueryExecutionError(JobError):
    """A submitted query finished without a usable result."""

    error_type = "QueryExecutionError"
