"""Local-first sync: cached reads, background refresh and invalidation.

This module provides:
- SyncOrchestrator serving reads from the per-user and shared caches
- JobDrainer executing refresh jobs with bounded rounds per user
- CacheWriter fanning refreshed data out to the shared namespace
- Metrics collection for observability
"""

from src.sync.context import SyncContext, force_refresh_requested
from src.sync.drainer import JobDrainer, JobOutcome
from src.sync.draining import DrainRegistry
from src.sync.metrics import SyncMetrics
from src.sync.models import ReadRequest
from src.sync.orchestrator import SyncOrchestrator
from src.sync.tasks import BackgroundTasks
from src.sync.writer import CacheWriter


__all__ = [
    "BackgroundTasks",
    "CacheWriter",
    "DrainRegistry",
    "JobDrainer",
    "JobOutcome",
    "ReadRequest",
    "SyncContext",
    "SyncMetrics",
    "SyncOrchestrator",
    "force_refresh_requested",
]
