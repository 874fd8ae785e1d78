"""Durable job table for background cache refreshes.

This module provides:
- SyncJob model and status lifecycle
- SQLite-backed scheduling with dedupe, claim and retry backoff
- Metrics collection for observability
"""

from src.jobs.metrics import JobMetrics
from src.jobs.models import JobStatus, SyncJob, compute_backoff_seconds
from src.jobs.table import JobTable


__all__ = [
    "JobMetrics",
    "JobStatus",
    "JobTable",
    "SyncJob",
    "compute_backoff_seconds",
]
