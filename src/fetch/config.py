"""Configuration model for the upstream GitHub client."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.fetch.constants import GITHUB_API_BASE_URL, GITHUB_API_VERSION


class FetchConfig(BaseModel):
    """Configuration for upstream API calls.

    The default timeout is the generous background ceiling; foreground
    reads pass a tighter per-call timeout.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: Annotated[str, Field(min_length=1)] = GITHUB_API_BASE_URL
    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = "ghsync/1.0"
    api_version: Annotated[str, Field(min_length=1)] = GITHUB_API_VERSION
    default_timeout_seconds: Annotated[float, Field(ge=1.0, le=300.0)] = 30.0
    connect_timeout_seconds: Annotated[float, Field(ge=0.1, le=60.0)] = 5.0

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended directly."""
        return v.rstrip("/")
