"""Read path request model."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from src.fetch.client import GitHubClient


T = TypeVar("T")


@dataclass(frozen=True)
class ReadRequest(Generic[T]):
    """One local-first read.

    Attributes:
        cache_key: Key of the item in the cache namespaces.
        cache_type: Resource type, decides shared-namespace eligibility.
        job_type: Job type enqueued for background refresh.
        job_payload: Parameters stored on the refresh job.
        fallback: Value returned when nothing better is available.
        fetch_remote: Fetches fresh data with the caller's client.
    """

    cache_key: str
    cache_type: str
    job_type: str
    fallback: T
    fetch_remote: Callable[[GitHubClient], Awaitable[T]]
    job_payload: dict[str, Any] = field(default_factory=dict)
