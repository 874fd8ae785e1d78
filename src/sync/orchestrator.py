"""Local-first read path over the per-user and shared caches.

A read serves cached data whenever it can and schedules a background
refresh so the next read is fresher:

1. Forced refresh: fetch synchronously, falling through to the cache on
   failure.
2. Per-user cache hit: return it and enqueue a refresh.
3. Shared cache hit (shareable types only, and for repo-scoped types only
   when the user's cached repository is public): backfill the user
   namespace, enqueue a refresh and return it.
4. Cold miss: fetch synchronously and write through. Rate limits
   propagate; not-found is cached for the user; anything else enqueues a
   refresh and returns the fallback.

Cache store failures never reach the caller: a failed read is a miss and
a failed write still returns the fetched data.
"""

import asyncio
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel

from src.cache import keys
from src.cache.base import SHARED_NAMESPACE, CacheStore, user_namespace
from src.cache.models import CacheEntry
from src.fetch.errors import ErrorKind, classify_error, error_message, rate_limit_from_error
from src.jobs.table import JobTable
from src.resources.registry import ResourceRegistry
from src.settings.sync import SyncConfig
from src.store.timestamps import utc_now
from src.sync.context import SyncContext
from src.sync.draining import DrainRegistry
from src.sync.drainer import JobDrainer
from src.sync.metrics import SyncMetrics
from src.sync.models import ReadRequest
from src.sync.tasks import BackgroundTasks
from src.sync.writer import CacheWriter


logger = structlog.get_logger()

T = TypeVar("T")


class SyncOrchestrator:
    """Entry point for reads, refresh scheduling and invalidation."""

    def __init__(
        self,
        cache: CacheStore,
        jobs: JobTable,
        resources: ResourceRegistry,
        config: SyncConfig | None = None,
        tasks: BackgroundTasks | None = None,
        draining: DrainRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            cache: Cache store for both namespaces.
            jobs: Durable job table.
            resources: Registry of resource types.
            config: Tuning knobs.
            tasks: Tracker for detached work.
            draining: Process-wide registry of users currently draining.
            clock: Wall clock for freshness checks, injectable for tests.
        """
        self._cache = cache
        self._jobs = jobs
        self._resources = resources
        self._config = config or SyncConfig()
        self._clock = clock
        self._tasks = tasks or BackgroundTasks()
        self._writer = CacheWriter(cache, resources, self._config, self._tasks)
        self._drainer = JobDrainer(
            jobs,
            cache,
            resources,
            self._config,
            self._writer,
            self._tasks,
            draining,
        )
        self._metrics = SyncMetrics.get_instance()
        self._log = logger.bind(component="sync")

    @property
    def drainer(self) -> JobDrainer:
        """Drainer executing this orchestrator's refresh jobs."""
        return self._drainer

    @property
    def tasks(self) -> BackgroundTasks:
        """Tracker for detached writes and drain loops."""
        return self._tasks

    async def close(self, timeout: float | None = None) -> None:
        """Wait for detached work to finish."""
        await self._tasks.close(timeout)

    # ===== Read path =====

    async def read(self, ctx: SyncContext | None, request: ReadRequest[T]) -> T:
        """Serve one item local-first.

        Args:
            ctx: Caller identity, or None for anonymous callers.
            request: What to read and how to refresh it.

        Returns:
            Cached data, fresh data, or ``request.fallback``.

        Raises:
            RateLimitError: When a cold miss hits the upstream rate limit.
        """
        self._metrics.reads_total += 1
        if ctx is None:
            self._metrics.anonymous_reads_total += 1
            return request.fallback

        log = self._log.bind(user_id=ctx.user_id, cache_key=request.cache_key)
        visibility_key = self._resources.visibility_key_for(
            request.job_type, request.job_payload
        )

        if ctx.force_refresh:
            try:
                data = await self._fetch_foreground(ctx, request)
            except Exception as e:
                self._metrics.forced_refresh_failures_total += 1
                log.warning("forced_refresh_failed", error=error_message(e))
            else:
                self._metrics.remote_fetches_total += 1
                await self._write_through(ctx, request, data, visibility_key)
                return data

        cached = await self._get_entry(ctx, user_namespace(ctx.user_id), request.cache_key)
        if cached is not None:
            self._metrics.user_cache_hits_total += 1
            log.debug(
                "cache_hit",
                namespace="user",
                age_seconds=round(cached.age_seconds(self._clock()), 1),
            )
            await self._schedule_refresh(ctx, request)
            if cached.data is None:
                self._metrics.fallbacks_total += 1
                return request.fallback
            return cached.data

        if await self._writer.can_share(ctx.user_id, request.cache_type, visibility_key):
            shared = await self._get_entry(ctx, SHARED_NAMESPACE, request.cache_key)
            if shared is not None:
                self._metrics.shared_cache_hits_total += 1
                log.debug("cache_hit", namespace="shared")
                self._writer.backfill_user(ctx.user_id, request.cache_key, shared)
                await self._schedule_refresh(ctx, request)
                return shared.data

        try:
            data = await self._fetch_foreground(ctx, request)
        except Exception as e:
            return await self._handle_cold_miss_failure(ctx, request, e)

        self._metrics.remote_fetches_total += 1
        await self._write_through(ctx, request, data, visibility_key)
        log.debug("cache_miss_filled")
        return data

    async def read_resource(
        self,
        ctx: SyncContext | None,
        job_type: str,
        payload: BaseModel | Mapping[str, Any],
        fallback: Any = None,
    ) -> Any:
        """Read a registered resource by job type and payload.

        Args:
            ctx: Caller identity, or None for anonymous callers.
            job_type: Registered resource type.
            payload: Payload model instance or its mapping form.
            fallback: Overrides the resource's default fallback.

        Returns:
            Same as ``read``.

        Raises:
            UnknownJobTypeError: If ``job_type`` is not registered.
            pydantic.ValidationError: If ``payload`` is invalid.
        """
        spec = self._resources.get(job_type)
        parsed = spec.parse_payload(payload)

        async def fetch_remote(client: Any) -> Any:
            return await spec.fetch(client, parsed)

        request = ReadRequest(
            cache_key=spec.build_cache_key(parsed),
            cache_type=spec.job_type,
            job_type=spec.job_type,
            job_payload=spec.dump_payload(parsed),
            fallback=fallback if fallback is not None else spec.fallback,
            fetch_remote=fetch_remote,
        )
        return await self.read(ctx, request)

    async def _fetch_foreground(self, ctx: SyncContext, request: ReadRequest[T]) -> T:
        return await asyncio.wait_for(
            request.fetch_remote(ctx.client),
            timeout=self._config.foreground_timeout_seconds,
        )

    async def _get_entry(
        self, ctx: SyncContext, namespace: str, cache_key: str
    ) -> CacheEntry | None:
        # An unreadable cache is a miss
        try:
            return await self._cache.get(namespace, cache_key)
        except Exception as e:
            self._metrics.cache_errors_total += 1
            self._log.warning(
                "cache_read_failed",
                user_id=ctx.user_id,
                namespace=namespace,
                cache_key=cache_key,
                error=error_message(e),
            )
            return None

    async def _write_through(
        self,
        ctx: SyncContext,
        request: ReadRequest[Any],
        data: Any,
        visibility_key: str | None,
    ) -> None:
        # Fetched data is returned even when it cannot be cached
        try:
            await self._writer.write(
                ctx.user_id,
                request.cache_key,
                request.cache_type,
                data,
                visibility_key=visibility_key,
            )
        except Exception as e:
            self._metrics.cache_errors_total += 1
            self._log.warning(
                "cache_write_failed",
                user_id=ctx.user_id,
                cache_key=request.cache_key,
                error=error_message(e),
            )

    async def _handle_cold_miss_failure(
        self,
        ctx: SyncContext,
        request: ReadRequest[T],
        error: Exception,
    ) -> T:
        kind = classify_error(error)
        log = self._log.bind(user_id=ctx.user_id, cache_key=request.cache_key)

        if kind == ErrorKind.RATE_LIMITED:
            self._metrics.rate_limited_total += 1
            rate_limit = rate_limit_from_error(error)
            log.warning("rate_limited", **(rate_limit.to_dict() if rate_limit else {}))
            if rate_limit is None or rate_limit is error:
                raise error
            raise rate_limit from error

        if kind == ErrorKind.NOT_FOUND:
            self._metrics.not_found_total += 1
            log.info("remote_not_found")
            try:
                await self._writer.write_not_found(ctx.user_id, request.cache_key)
            except Exception as e:
                self._metrics.cache_errors_total += 1
                log.warning("cache_write_failed", error=error_message(e))
            return request.fallback

        self._metrics.fallbacks_total += 1
        log.warning("remote_fetch_failed", error=error_message(error))
        await self._schedule_refresh(ctx, request)
        return request.fallback

    async def _schedule_refresh(self, ctx: SyncContext, request: ReadRequest[Any]) -> None:
        # Reads never fail because the job table is unavailable
        try:
            await self.enqueue_refresh(
                ctx, request.job_type, request.cache_key, request.job_payload
            )
        except Exception as e:
            self._log.warning(
                "enqueue_refresh_failed",
                user_id=ctx.user_id,
                job_type=request.job_type,
                error=error_message(e),
            )

    # ===== Refresh scheduling =====

    async def enqueue_refresh(
        self,
        ctx: SyncContext,
        job_type: str,
        cache_key: str,
        payload: Mapping[str, Any],
    ) -> bool:
        """Schedule a background refresh of one item and kick the drainer.

        Items the user may read from the shared namespace are skipped when
        their shared copy was synced within ``shared_fresh_window_seconds``:
        another user just refreshed them.

        Args:
            ctx: Owner of the job.
            job_type: Registered resource type.
            cache_key: Key of the item to refresh.
            payload: Job parameters.

        Returns:
            True if a new job row was created.
        """
        visibility_key = self._resources.visibility_key_for(job_type, payload)
        if await self._writer.can_share(ctx.user_id, job_type, visibility_key):
            shared = await self._get_entry(ctx, SHARED_NAMESPACE, cache_key)
            if shared is not None and shared.is_fresh(
                self._config.shared_fresh_window_seconds, now=self._clock()
            ):
                self._metrics.enqueues_skipped_fresh_total += 1
                return False

        created = await self._jobs.upsert_pending(
            ctx.user_id,
            keys.dedupe_key(job_type, cache_key),
            job_type,
            dict(payload),
        )
        self._drainer.trigger_drain(ctx)
        return created

    # ===== Invalidation =====

    async def invalidate_by_prefix(self, user_id: str, prefix: str) -> int:
        """Delete a user's cached entries whose key starts with ``prefix``.

        Returns:
            Number of entries deleted.
        """
        deleted = await self._cache.delete_by_prefix(user_namespace(user_id), prefix)
        self._log.info("cache_invalidated", user_id=user_id, prefix=prefix, count=deleted)
        return deleted

    async def _invalidate_prefixes(self, user_id: str, prefixes: list[str]) -> int:
        total = 0
        for prefix in prefixes:
            total += await self.invalidate_by_prefix(user_id, prefix)
        return total

    async def invalidate_issue(
        self, user_id: str, owner: str, repo: str, issue_number: int
    ) -> int:
        """Invalidate after commenting on, editing or closing an issue."""
        return await self._invalidate_prefixes(
            user_id, keys.issue_invalidation_prefixes(owner, repo, issue_number)
        )

    async def invalidate_repo_issues(self, user_id: str, owner: str, repo: str) -> int:
        """Invalidate after creating an issue."""
        return await self._invalidate_prefixes(
            user_id, keys.repo_issues_invalidation_prefixes(owner, repo)
        )

    async def invalidate_pull_request(
        self, user_id: str, owner: str, repo: str, pull_number: int
    ) -> int:
        """Invalidate after reviewing, merging or closing a pull request."""
        return await self._invalidate_prefixes(
            user_id, keys.pull_request_invalidation_prefixes(owner, repo, pull_number)
        )

    async def invalidate_repo_pull_requests(
        self, user_id: str, owner: str, repo: str
    ) -> int:
        """Invalidate after opening a pull request."""
        return await self._invalidate_prefixes(
            user_id, keys.repo_pull_requests_invalidation_prefixes(owner, repo)
        )

    async def invalidate_file_content(
        self,
        user_id: str,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
    ) -> int:
        """Invalidate after committing a file edit."""
        return await self._invalidate_prefixes(
            user_id,
            [
                keys.file_content_key(owner, repo, path, ref),
                f"repo_contents:{keys.normalize_repo_key(owner, repo)}:",
            ],
        )
