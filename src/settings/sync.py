"""Tuning knobs for the read path, job table and drainer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SyncConfig(BaseModel):
    """Configuration for the local-first sync engine.

    Defaults mirror the production behaviour: a five minute shared cache,
    a two minute cross-user freshness window, eight attempts per job and
    exponential backoff between five seconds and fifteen minutes.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    shared_ttl_seconds: Annotated[int, Field(ge=1, le=86400)] = 300
    user_ttl_seconds: Annotated[int | None, Field(ge=1)] = None
    shared_fresh_window_seconds: Annotated[int, Field(ge=0, le=3600)] = 120

    max_attempts: Annotated[int, Field(ge=1, le=100)] = 8
    backoff_floor_seconds: Annotated[int, Field(ge=0)] = 5
    backoff_ceiling_seconds: Annotated[int, Field(ge=1)] = 15 * 60
    running_job_timeout_seconds: Annotated[int, Field(ge=1)] = 10 * 60
    max_error_length: Annotated[int, Field(ge=1)] = 2000

    claim_limit: Annotated[int, Field(ge=1, le=100)] = 5
    drain_rounds: Annotated[int, Field(ge=1, le=50)] = 3
    drain_batch_size: Annotated[int, Field(ge=1, le=100)] = 4

    foreground_timeout_seconds: Annotated[float, Field(gt=0.0, le=120.0)] = 10.0
    background_timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = 30.0

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> "SyncConfig":
        """Ensure the backoff floor does not exceed the ceiling."""
        if self.backoff_floor_seconds > self.backoff_ceiling_seconds:
            msg = (
                f"backoff_floor_seconds ({self.backoff_floor_seconds}) must not "
                f"exceed backoff_ceiling_seconds ({self.backoff_ceiling_seconds})"
            )
            raise ValueError(msg)
        return self
