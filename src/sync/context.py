"""Per-request identity and cache directives."""

from collections.abc import Mapping
from dataclasses import dataclass

from src.fetch.client import GitHubClient


@dataclass(frozen=True)
class SyncContext:
    """Who is reading, and with which upstream credentials.

    Attributes:
        user_id: Stable identifier of the authenticated user.
        client: GitHub client carrying that user's token.
        force_refresh: Bypass the cache and fetch synchronously first.
    """

    user_id: str
    client: GitHubClient
    force_refresh: bool = False


def force_refresh_requested(headers: Mapping[str, str]) -> bool:
    """Check request headers for a client-side cache bypass.

    ``Cache-Control: no-cache``, ``Cache-Control: max-age=0`` and
    ``Pragma: no-cache`` all request a forced refresh.

    Args:
        headers: Incoming request headers (any key case).

    Returns:
        True if the caller asked to bypass cached data.
    """
    lowered = {key.lower(): value.lower() for key, value in headers.items()}
    directives = {
        part.strip().replace(" ", "")
        for part in lowered.get("cache-control", "").split(",")
    }
    if "no-cache" in directives or "max-age=0" in directives:
        return True
    return "no-cache" in lowered.get("pragma", "")
