"""Data models for the key-value cache."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.store.timestamps import utc_now


class CacheEntry(BaseModel):
    """A cached upstream payload.

    The same shape is stored in the per-user namespace and in the shared
    namespace. ``data`` may be None, which records a not-found outcome.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    data: Any = Field(description="Cached payload (JSON-compatible)")
    synced_at: datetime = Field(
        default_factory=utc_now,
        description="When the payload was last confirmed fresh",
    )
    etag: str | None = Field(default=None, description="Upstream ETag, if known")

    def age_seconds(self, now: datetime | None = None) -> float:
        """Seconds elapsed since the entry was last synced.

        Args:
            now: Reference time (defaults to the current time).

        Returns:
            Age in seconds.
        """
        return ((now or utc_now()) - self.synced_at).total_seconds()

    def is_fresh(self, window_seconds: float, now: datetime | None = None) -> bool:
        """Check if the entry was synced within ``window_seconds``."""
        return self.age_seconds(now) < window_seconds
