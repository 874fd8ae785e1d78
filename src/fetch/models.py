"""Data models for the upstream fetch layer."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ConditionalResult(BaseModel):
    """Outcome of a conditional (ETag) GET.

    Either ``not_modified`` is True and there is no payload, or it is False
    and ``data`` carries the fresh body with the response ``etag``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    not_modified: bool = Field(description="Whether upstream answered 304")
    data: Any = Field(default=None, description="Fresh payload when modified")
    etag: str | None = Field(default=None, description="ETag of the fresh payload")

    @classmethod
    def unchanged(cls) -> "ConditionalResult":
        """Build the 304 outcome."""
        return cls(not_modified=True)

    @classmethod
    def modified(cls, data: Any, etag: str | None) -> "ConditionalResult":
        """Build the fresh-payload outcome."""
        return cls(not_modified=False, data=data, etag=etag)
