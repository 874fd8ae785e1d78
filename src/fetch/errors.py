"""Upstream error types and the failure classifier.

Every failure coming out of the remote fetcher falls into one of three
kinds:

- NOT_FOUND: the resource does not exist (or is hidden from the viewer).
  This is a valid, cacheable "absent" outcome rather than something to retry.
- RATE_LIMITED: the primary or secondary rate limit was hit. The read path
  surfaces this as ``RateLimitError`` so the caller can show a wait time.
- TRANSIENT: network errors, timeouts, 5xx and anything unrecognised.
  These are retried through the job table with exponential backoff.
"""

import time
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx

from src.fetch.constants import (
    DEFAULT_RATE_LIMIT,
    DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
    HEADER_RATELIMIT_LIMIT,
    HEADER_RATELIMIT_REMAINING,
    HEADER_RATELIMIT_RESET,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_TOO_MANY_REQUESTS,
)


UNKNOWN_ERROR_MESSAGE = "Unknown sync error"


class ErrorKind(str, Enum):
    """Classification of upstream failures for retry decisions."""

    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    TRANSIENT = "TRANSIENT"


class UpstreamError(Exception):
    """Raised when an upstream GitHub call fails.

    Carries the HTTP status (None for network-level failures) and the
    response headers so the classifier can inspect rate limit metadata.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
        path: str | None = None,
    ) -> None:
        """Initialize the upstream error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code, if a response was received.
            headers: Response headers (keys are lower-cased).
            path: API path that was requested.
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.path = path


class RateLimitError(Exception):
    """GitHub API rate limit exceeded.

    Attributes:
        reset_at: Unix timestamp (seconds) when the limit resets.
        limit: Request quota for the window.
        used: Requests consumed in the window.
    """

    def __init__(self, reset_at: int, limit: int, used: int) -> None:
        """Initialize the rate limit error.

        Args:
            reset_at: Unix timestamp (seconds) when the limit resets.
            limit: Request quota for the window.
            used: Requests consumed in the window.
        """
        super().__init__("GitHub API rate limit exceeded")
        self.reset_at = reset_at
        self.limit = limit
        self.used = used

    @property
    def reset_datetime(self) -> datetime:
        """Get the reset time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.reset_at, tz=UTC)

    def to_dict(self) -> dict[str, int]:
        """Convert to a dictionary for logging and API responses."""
        return {"reset_at": self.reset_at, "limit": self.limit, "used": self.used}


def _status_of(error: BaseException) -> int | None:
    if isinstance(error, UpstreamError):
        return error.status_code
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def _headers_of(error: BaseException) -> dict[str, str]:
    if isinstance(error, UpstreamError):
        return error.headers
    if isinstance(error, httpx.HTTPStatusError):
        return {k.lower(): v for k, v in error.response.headers.items()}
    return {}


def _int_header(headers: dict[str, str], name: str, default: int) -> int:
    try:
        return int(headers.get(name, default))
    except (TypeError, ValueError):
        return default


def error_message(error: BaseException | Any) -> str:
    """Extract a non-empty message from an arbitrary failure.

    Args:
        error: The failure to describe.

    Returns:
        The error message, or a generic placeholder.
    """
    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message.strip():
        message = str(error) if isinstance(error, BaseException) else ""
    return message if message.strip() else UNKNOWN_ERROR_MESSAGE


def is_not_found(error: BaseException) -> bool:
    """Check whether a failure means the resource does not exist."""
    return _status_of(error) == HTTP_STATUS_NOT_FOUND


def rate_limit_from_error(
    error: BaseException,
    now: float | None = None,
) -> RateLimitError | None:
    """Extract rate limit details from a failure.

    Args:
        error: The failure to inspect.
        now: Current unix time, injectable for tests.

    Returns:
        RateLimitError when the failure is a rate limit, None otherwise.
    """
    if isinstance(error, RateLimitError):
        return error

    status = _status_of(error)
    if status not in (HTTP_STATUS_FORBIDDEN, HTTP_STATUS_TOO_MANY_REQUESTS):
        return None

    headers = _headers_of(error)
    mentions_limit = "rate limit" in error_message(error).lower()
    exhausted = headers.get(HEADER_RATELIMIT_REMAINING) == "0"
    if not (mentions_limit or exhausted):
        return None

    current = int(now if now is not None else time.time())
    reset_at = _int_header(headers, HEADER_RATELIMIT_RESET, 0)
    limit = _int_header(headers, HEADER_RATELIMIT_LIMIT, DEFAULT_RATE_LIMIT)
    remaining = _int_header(headers, HEADER_RATELIMIT_REMAINING, 0)

    return RateLimitError(
        reset_at=reset_at or current + DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
        limit=limit,
        used=limit - remaining,
    )


def classify_error(error: BaseException) -> ErrorKind:
    """Classify an upstream failure.

    Args:
        error: The failure raised by the remote fetcher.

    Returns:
        The error kind driving cache and retry decisions.
    """
    if is_not_found(error):
        return ErrorKind.NOT_FOUND
    if rate_limit_from_error(error) is not None:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.TRANSIENT
