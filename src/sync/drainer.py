"""Background drain loop executing a user's refresh jobs."""

import asyncio
from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError

from src.cache.base import CacheStore, user_namespace
from src.fetch.errors import (
    ErrorKind,
    classify_error,
    error_message,
    rate_limit_from_error,
)
from src.jobs.models import JobStatus, SyncJob
from src.jobs.table import JobTable
from src.resources.registry import ResourceRegistry, ResourceSpec, UnknownJobTypeError
from src.settings.sync import SyncConfig
from src.sync.context import SyncContext
from src.sync.draining import DrainRegistry
from src.sync.metrics import SyncMetrics
from src.sync.tasks import BackgroundTasks
from src.sync.writer import CacheWriter


logger = structlog.get_logger()


class JobOutcome(str, Enum):
    """Result of processing one claimed job."""

    SUCCEEDED = "succeeded"
    NOT_FOUND = "not_found"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"
    DROPPED = "dropped"


class JobDrainer:
    """Claims and executes due jobs for one user at a time.

    A drain loop runs at most ``drain_rounds`` rounds of up to
    ``drain_batch_size`` jobs and stops early at an empty round. Only one
    loop per user runs in the process, tracked by the ``DrainRegistry``.
    """

    def __init__(
        self,
        jobs: JobTable,
        cache: CacheStore,
        resources: ResourceRegistry,
        config: SyncConfig,
        writer: CacheWriter,
        tasks: BackgroundTasks,
        draining: DrainRegistry | None = None,
    ) -> None:
        """Initialize the drainer.

        Args:
            jobs: Job table to claim from.
            cache: Cache store holding refreshed data.
            resources: Registry dispatching job types.
            config: Drain and timeout tuning.
            writer: Cache writer shared with the read path.
            tasks: Background task tracker for drain loops.
            draining: Registry of users currently draining.
        """
        self._jobs = jobs
        self._cache = cache
        self._resources = resources
        self._config = config
        self._writer = writer
        self._tasks = tasks
        self._draining = draining or DrainRegistry()
        self._metrics = SyncMetrics.get_instance()
        self._log = logger.bind(component="drainer")

    @property
    def draining(self) -> DrainRegistry:
        """Registry of users with an active drain loop."""
        return self._draining

    async def claim_due_jobs(self, user_id: str, limit: int | None = None) -> list[SyncJob]:
        """Claim up to ``limit`` due jobs for ``user_id``."""
        return await self._jobs.claim(user_id, limit)

    async def process_job(self, ctx: SyncContext, job: SyncJob) -> JobOutcome:
        """Execute one claimed job and record its outcome.

        Args:
            ctx: Context of the job's owner.
            job: Job in running state.

        Returns:
            What happened to the job.
        """
        log = self._log.bind(job_id=job.id, job_type=job.job_type, user_id=job.user_id)
        self._metrics.jobs_processed_total += 1

        try:
            spec = self._resources.get(job.job_type)
            payload = spec.parse_payload(job.payload)
        except (UnknownJobTypeError, ValidationError) as e:
            log.warning("job_dropped", error=str(e), error_type=type(e).__name__)
            await self._jobs.delete(job.id)
            return JobOutcome.DROPPED

        cache_key = spec.build_cache_key(payload)
        try:
            await asyncio.wait_for(
                self._refresh(ctx, spec, payload, cache_key),
                timeout=self._config.background_timeout_seconds,
            )
        except Exception as e:
            return await self._handle_failure(ctx, job, cache_key, e)

        await self._jobs.mark_succeeded(job.id)
        log.debug("job_succeeded", cache_key=cache_key)
        return JobOutcome.SUCCEEDED

    async def _refresh(
        self,
        ctx: SyncContext,
        spec: ResourceSpec[Any],
        payload: Any,
        cache_key: str,
    ) -> None:
        visibility_key = spec.visibility_key(payload) if spec.visibility_key else None
        if spec.conditional_path is None:
            data = await spec.fetch(ctx.client, payload)
            await self._writer.write(
                ctx.user_id, cache_key, spec.job_type, data, visibility_key=visibility_key
            )
            return

        cached = await self._cache.get(user_namespace(ctx.user_id), cache_key)
        result = await ctx.client.fetch_conditional(
            spec.conditional_path(payload),
            cached.etag if cached is not None else None,
        )
        if result.not_modified:
            await self._writer.touch(
                ctx.user_id, cache_key, spec.job_type, visibility_key=visibility_key
            )
        else:
            await self._writer.write(
                ctx.user_id,
                cache_key,
                spec.job_type,
                result.data,
                etag=result.etag,
                visibility_key=visibility_key,
            )

    async def _handle_failure(
        self,
        ctx: SyncContext,
        job: SyncJob,
        cache_key: str,
        error: Exception,
    ) -> JobOutcome:
        kind = classify_error(error)

        if kind == ErrorKind.NOT_FOUND:
            await self._writer.write_not_found(ctx.user_id, cache_key)
            await self._jobs.mark_succeeded(job.id)
            self._log.info("job_not_found", job_id=job.id, cache_key=cache_key)
            return JobOutcome.NOT_FOUND

        not_before = None
        if kind == ErrorKind.RATE_LIMITED:
            rate_limit = rate_limit_from_error(error)
            if rate_limit is not None:
                not_before = rate_limit.reset_datetime

        if isinstance(error, TimeoutError):
            message = (
                f"Timed out after {self._config.background_timeout_seconds}s: "
                f"{job.job_type}"
            )
        else:
            message = error_message(error)

        updated = await self._jobs.mark_failed(job.id, job.attempts, message, not_before)
        if updated.status == JobStatus.FAILED:
            return JobOutcome.FAILED
        return JobOutcome.RETRY_SCHEDULED

    async def drain_once(self, ctx: SyncContext, limit: int | None = None) -> int:
        """Claim one batch and process it in claim order.

        Returns:
            Number of jobs processed.
        """
        jobs = await self.claim_due_jobs(
            ctx.user_id,
            limit if limit is not None else self._config.drain_batch_size,
        )
        for job in jobs:
            await self.process_job(ctx, job)
        return len(jobs)

    async def _drain_rounds(self, ctx: SyncContext) -> int:
        total = 0
        for round_number in range(1, self._config.drain_rounds + 1):
            processed = await self.drain_once(ctx)
            total += processed
            self._log.debug(
                "drain_round_complete",
                user_id=ctx.user_id,
                round=round_number,
                processed=processed,
            )
            if processed == 0:
                break
        return total

    async def _drain_loop(self, ctx: SyncContext) -> int:
        try:
            return await self._drain_rounds(ctx)
        finally:
            self._draining.release(ctx.user_id)

    def trigger_drain(self, ctx: SyncContext) -> bool:
        """Start a background drain loop unless one is running for the user.

        Returns:
            True if a new loop was started.
        """
        started = self._draining.try_acquire(ctx.user_id)
        self._metrics.record_drain(started)
        if not started:
            return False
        try:
            self._tasks.spawn(self._drain_loop(ctx), name=f"drain:{ctx.user_id}")
        except Exception:
            self._draining.release(ctx.user_id)
            raise
        return True

    async def run_drain(self, ctx: SyncContext) -> int:
        """Run a drain loop inline.

        Returns:
            Number of jobs processed, 0 if another loop holds the user.
        """
        if not self._draining.try_acquire(ctx.user_id):
            self._metrics.record_drain(started=False)
            return 0
        self._metrics.record_drain(started=True)
        return await self._drain_loop(ctx)
