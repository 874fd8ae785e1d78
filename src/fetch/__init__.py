"""Remote fetcher: GitHub API client and upstream error classification.

This module provides:
- An async httpx client with bounded timeouts and ETag conditional GETs
- Typed upstream errors and the not-found / rate-limited / transient classifier
- Header redaction for safe logging
- Metrics collection for observability
"""

from src.fetch.client import GitHubClient
from src.fetch.config import FetchConfig
from src.fetch.errors import (
    ErrorKind,
    RateLimitError,
    UpstreamError,
    classify_error,
    error_message,
    is_not_found,
    rate_limit_from_error,
)
from src.fetch.metrics import FetchMetrics
from src.fetch.models import ConditionalResult
from src.fetch.redact import redact_headers, redact_url_credentials


__all__ = [
    # Client
    "GitHubClient",
    # Config
    "FetchConfig",
    # Errors
    "ErrorKind",
    "RateLimitError",
    "UpstreamError",
    "classify_error",
    "error_message",
    "is_not_found",
    "rate_limit_from_error",
    # Metrics
    "FetchMetrics",
    # Models
    "ConditionalResult",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
]
