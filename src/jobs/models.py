"""Data models for background sync jobs."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    """Sync job lifecycle status.

    - PENDING: waiting for ``next_attempt_at``
    - RUNNING: claimed by a drainer (``started_at`` set)
    - FAILED: attempt ceiling reached; terminal until requeued

    Succeeded jobs are deleted rather than kept with a status.
    """

    PENDING = "pending"
    RUNNING = "running"
    FAILED = "failed"


class SyncJob(BaseModel):
    """A background refresh of one cached item for one user.

    At most one live job exists per ``(user_id, dedupe_key)``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[int, Field(ge=1, description="Row identifier")]
    user_id: Annotated[str, Field(min_length=1)]
    dedupe_key: Annotated[str, Field(min_length=1, description="<job_type>:<cache_key>")]
    job_type: Annotated[str, Field(min_length=1)]
    payload: dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = JobStatus.PENDING
    attempts: Annotated[int, Field(ge=0)] = 0
    next_attempt_at: datetime
    started_at: datetime | None = None
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime


def compute_backoff_seconds(attempts: int, floor: int = 5, ceiling: int = 900) -> int:
    """Compute the retry delay after ``attempts`` failures.

    ``min(ceiling, max(floor, 2 ** attempts))``, so the delay never
    decreases as attempts grow.

    Args:
        attempts: Number of failed attempts so far (after this failure).
        floor: Minimum delay in seconds.
        ceiling: Maximum delay in seconds.

    Returns:
        Delay in seconds.
    """
    return min(ceiling, max(floor, 2 ** max(0, attempts)))
