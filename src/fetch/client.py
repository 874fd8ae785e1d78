"""Async GitHub REST/GraphQL client used by the remote fetcher."""

import time
from typing import Any

import httpx
import structlog

from src.fetch.config import FetchConfig
from src.fetch.constants import (
    GITHUB_GRAPHQL_PATH,
    GITHUB_MEDIA_TYPE,
    HEADER_RATELIMIT_REMAINING,
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    MAX_ERROR_BODY_CHARS,
)
from src.fetch.errors import ErrorKind, UpstreamError, classify_error
from src.fetch.metrics import FetchMetrics
from src.fetch.models import ConditionalResult
from src.fetch.redact import redact_headers


logger = structlog.get_logger()


class GitHubClient:
    """GitHub API client bound to one user's token.

    Uses a long-lived ``httpx.AsyncClient`` with connection pooling. Every
    call carries a bounded timeout; callers on a request's critical path
    pass a tighter ``timeout`` than the configured default.

    Non-2xx responses raise ``UpstreamError`` with the status and headers
    attached, leaving retry decisions to the sync engine.

    Example:
        >>> async with GitHubClient("ghp_token") as client:
        ...     repo = await client.get_json("/repos/octocat/hello-world")
    """

    def __init__(
        self,
        token: str | None,
        config: FetchConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: GitHub access token (None for anonymous calls).
            config: Client configuration.
            transport: Optional transport override (used by tests).
        """
        self._config = config or FetchConfig()
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component="fetch")
        self._rate_limit_remaining: int | None = None

        headers = {
            "Accept": GITHUB_MEDIA_TYPE,
            "User-Agent": self._config.user_agent,
            "X-GitHub-Api-Version": self._config.api_version,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            headers=headers,
            timeout=httpx.Timeout(
                self._config.default_timeout_seconds,
                connect=self._config.connect_timeout_seconds,
            ),
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit; closes the connection pool."""
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._client.aclose()

    @property
    def rate_limit_remaining(self) -> int | None:
        """Remaining requests reported by the last response, if any."""
        return self._rate_limit_remaining

    async def get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """GET a REST endpoint and decode the JSON body.

        Args:
            path: API path, e.g. ``/repos/octocat/hello-world``.
            params: Query parameters.
            timeout: Per-call timeout in seconds.

        Returns:
            Decoded JSON payload.

        Raises:
            UpstreamError: On network failure or a non-2xx response.
        """
        response = await self._send("GET", path, params=params, timeout=timeout)
        return response.json()

    async def fetch_conditional(
        self,
        path: str,
        etag: str | None,
        timeout: float | None = None,
    ) -> ConditionalResult:
        """GET with ``If-None-Match`` when a previous ETag is known.

        Args:
            path: API path.
            etag: ETag stored with the cached entry, if any.
            timeout: Per-call timeout in seconds.

        Returns:
            ``ConditionalResult.unchanged()`` on 304, otherwise the fresh body
            and its ETag.

        Raises:
            UpstreamError: On network failure or a non-2xx, non-304 response.
        """
        headers = {"If-None-Match": etag} if etag else None
        response = await self._send("GET", path, headers=headers, timeout=timeout)

        if response.status_code == HTTP_STATUS_NOT_MODIFIED:
            self._metrics.record_not_modified()
            return ConditionalResult.unchanged()

        return ConditionalResult.modified(response.json(), response.headers.get("etag"))

    async def graphql(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Run a GraphQL query and return its ``data`` member.

        Raises:
            UpstreamError: On transport failure, a non-2xx response, or a
                response carrying GraphQL ``errors``.
        """
        response = await self._send(
            "POST",
            GITHUB_GRAPHQL_PATH,
            json={"query": query, "variables": variables or {}},
            timeout=timeout,
        )
        body = response.json()
        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            first = errors[0] if isinstance(errors[0], dict) else {}
            # GraphQL reports missing objects with HTTP 200 and type NOT_FOUND
            status = 404 if first.get("type") == "NOT_FOUND" else None
            raise UpstreamError(
                f"GitHub GraphQL error: {first.get('message', 'unknown error')}",
                status_code=status,
                headers=dict(response.headers),
                path=GITHUB_GRAPHQL_PATH,
            )
        return body.get("data") if isinstance(body, dict) else body

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send one request, recording metrics and normalizing failures."""
        log = self._log.bind(method=method, path=path)
        request_timeout: Any = httpx.USE_CLIENT_DEFAULT if timeout is None else timeout
        start_ns = time.perf_counter_ns()

        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=headers,
                timeout=request_timeout,
            )
        except httpx.TimeoutException as e:
            self._metrics.record_failure("timeout")
            log.warning("upstream_timeout", timeout=timeout, error=str(e))
            raise UpstreamError(f"Request timed out: {path}", path=path) from e
        except httpx.TransportError as e:
            self._metrics.record_failure("connection")
            log.warning("upstream_connection_error", error=str(e))
            raise UpstreamError(f"Connection failed: {path}: {e}", path=path) from e

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_request(response.status_code, duration_ms)
        self._track_rate_limit(response)

        log.debug(
            "upstream_response",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
            request_headers=redact_headers(dict(response.request.headers)),
        )

        if (
            HTTP_STATUS_OK_MIN <= response.status_code < HTTP_STATUS_OK_MAX
            or response.status_code == HTTP_STATUS_NOT_MODIFIED
        ):
            return response

        error = UpstreamError(
            f"GitHub API {response.status_code}: {path} - "
            f"{response.text[:MAX_ERROR_BODY_CHARS]}",
            status_code=response.status_code,
            headers=dict(response.headers),
            path=path,
        )
        kind = classify_error(error)
        self._metrics.record_failure(kind.value.lower())
        if kind == ErrorKind.RATE_LIMITED:
            log.warning(
                "rate_limited",
                status_code=response.status_code,
                remaining=self._rate_limit_remaining,
            )
        raise error

    def _track_rate_limit(self, response: httpx.Response) -> None:
        remaining = response.headers.get(HEADER_RATELIMIT_REMAINING)
        if remaining is not None and remaining.isdigit():
            self._rate_limit_remaining = int(remaining)
