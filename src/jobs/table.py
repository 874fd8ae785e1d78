"""Durable per-user job table for background cache refreshes.

Jobs live in the ``sync_jobs`` table of the shared SQLite database. The
uniqueness constraint on ``(user_id, dedupe_key)`` guarantees at most one
live job per cached item, and claiming uses a compare-and-swap on
``status`` so concurrent drainers never run the same job twice.
"""

import json
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import structlog

from src.jobs.metrics import JobMetrics
from src.jobs.models import JobStatus, SyncJob, compute_backoff_seconds
from src.settings.sync import SyncConfig
from src.store.database import Database
from src.store.errors import JobNotFoundError
from src.store.metrics import TransactionContext
from src.store.timestamps import from_db, to_db, utc_now


logger = structlog.get_logger()

JOB_COLUMNS = """
    id, user_id, dedupe_key, job_type, payload_json, status, attempts,
    next_attempt_at, started_at, last_error, created_at, updated_at
"""


def _row_to_job(row: sqlite3.Row) -> SyncJob:
    """Convert a database row to a SyncJob.

    Args:
        row: Database row selected with ``JOB_COLUMNS``.

    Returns:
        SyncJob instance with the payload decoded.
    """
    return SyncJob(
        id=row["id"],
        user_id=row["user_id"],
        dedupe_key=row["dedupe_key"],
        job_type=row["job_type"],
        payload=json.loads(row["payload_json"]),
        status=JobStatus(row["status"]),
        attempts=row["attempts"],
        next_attempt_at=from_db(row["next_attempt_at"]),
        started_at=from_db(row["started_at"]),
        last_error=row["last_error"],
        created_at=from_db(row["created_at"]),
        updated_at=from_db(row["updated_at"]),
    )


class JobTable:
    """Scheduling, claiming and retry bookkeeping for sync jobs."""

    def __init__(
        self,
        database: Database,
        config: SyncConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the job table.

        Args:
            database: Connected database handle.
            config: Retry and timeout tuning.
            clock: Wall clock, injectable for tests.
        """
        self._db = database
        self._config = config or SyncConfig()
        self._clock = clock
        self._metrics = JobMetrics.get_instance()
        self._log = logger.bind(component="jobs")

    async def upsert_pending(
        self,
        user_id: str,
        dedupe_key: str,
        job_type: str,
        payload: dict[str, Any],
    ) -> bool:
        """Insert a pending job unless a live one already exists.

        A job already present for ``(user_id, dedupe_key)`` is left
        untouched whatever its status.

        Args:
            user_id: Owner of the job.
            dedupe_key: ``<job_type>:<cache_key>``.
            job_type: Registered resource type.
            payload: JSON-serializable job parameters.

        Returns:
            True if a new row was created.
        """
        now = to_db(self._clock())
        payload_json = json.dumps(payload, separators=(",", ":"), sort_keys=True)

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> bool:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO sync_jobs (
                        user_id, dedupe_key, job_type, payload_json, status,
                        attempts, next_attempt_at, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, 'pending', 0, ?, ?, ?)
                    ON CONFLICT (user_id, dedupe_key) DO NOTHING
                    """,
                    (user_id, dedupe_key, job_type, payload_json, now, now, now),
                )
            except sqlite3.IntegrityError:
                # Raced with another writer on the dedupe key
                return False
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount > 0

        created = await self._db.run("job_upsert_pending", op)
        self._metrics.record_enqueue(created)
        self._log.debug(
            "job_enqueued" if created else "job_deduplicated",
            user_id=user_id,
            dedupe_key=dedupe_key,
        )
        return created

    async def recover_timed_out_running(
        self,
        user_id: str,
        timeout_seconds: int | None = None,
    ) -> int:
        """Return abandoned running jobs to pending.

        Args:
            user_id: Owner whose jobs are recovered.
            timeout_seconds: Age of ``started_at`` after which a running job
                is considered abandoned. Defaults to the configured value.

        Returns:
            Number of jobs recovered.
        """
        timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else self._config.running_job_timeout_seconds
        )
        now = self._clock()
        cutoff = to_db(now - timedelta(seconds=timeout))

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> int:
            cursor = conn.execute(
                """
                UPDATE sync_jobs
                SET status = 'pending', started_at = NULL, updated_at = ?
                WHERE user_id = ? AND status = 'running'
                  AND started_at IS NOT NULL AND started_at <= ?
                """,
                (to_db(now), user_id, cutoff),
            )
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount

        recovered = await self._db.run("job_recover_running", op)
        if recovered:
            self._metrics.record_recovered(recovered)
            self._log.warning("jobs_recovered", user_id=user_id, count=recovered)
        return recovered

    async def claim(self, user_id: str, limit: int | None = None) -> list[SyncJob]:
        """Claim due pending jobs for ``user_id``.

        Recovery of abandoned running jobs runs first. Candidates are
        ordered by ``(next_attempt_at, id)`` and each is moved to running
        with its own compare-and-swap, so a job taken by a concurrent
        claimer in between is skipped.

        Args:
            user_id: Owner whose jobs are claimed.
            limit: Maximum number of jobs. Defaults to ``claim_limit``.

        Returns:
            Claimed jobs, in claim order, with status running.
        """
        await self.recover_timed_out_running(user_id)

        limit = limit if limit is not None else self._config.claim_limit
        if limit <= 0:
            return []
        now = to_db(self._clock())

        def select(conn: sqlite3.Connection, ctx: TransactionContext) -> list[int]:
            rows = conn.execute(
                """
                SELECT id FROM sync_jobs
                WHERE user_id = ? AND status = 'pending' AND next_attempt_at <= ?
                ORDER BY next_attempt_at ASC, id ASC
                LIMIT ?
                """,
                (user_id, now, limit),
            ).fetchall()
            return [row["id"] for row in rows]

        candidates = await self._db.run("job_select_due", select)

        claimed: list[SyncJob] = []
        conflicts = 0
        for job_id in candidates:
            job = await self._try_claim(job_id)
            if job is None:
                conflicts += 1
            else:
                claimed.append(job)

        self._metrics.record_claim(len(claimed), conflicts)
        if claimed or conflicts:
            self._log.info(
                "jobs_claimed",
                user_id=user_id,
                claimed=len(claimed),
                conflicts=conflicts,
            )
        return claimed

    async def _try_claim(self, job_id: int) -> SyncJob | None:
        """Move one job from pending to running if still pending."""
        now = to_db(self._clock())

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> SyncJob | None:
            cursor = conn.execute(
                """
                UPDATE sync_jobs
                SET status = 'running', started_at = ?, updated_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (now, now, job_id),
            )
            if cursor.rowcount == 0:
                return None
            ctx.add_affected_rows(cursor.rowcount)
            row = conn.execute(
                f"SELECT {JOB_COLUMNS} FROM sync_jobs WHERE id = ?",  # noqa: S608
                (job_id,),
            ).fetchone()
            return _row_to_job(row)

        return await self._db.run("job_claim", op)

    async def mark_succeeded(self, job_id: int) -> bool:
        """Delete a job whose refresh succeeded.

        Returns:
            True if the row existed.
        """
        deleted = await self._delete(job_id, "job_mark_succeeded")
        if deleted:
            self._metrics.record_succeeded()
        return deleted

    async def mark_failed(
        self,
        job_id: int,
        attempts: int,
        error_message: str,
        not_before: datetime | None = None,
    ) -> SyncJob:
        """Record a failed attempt and schedule the retry.

        The attempt count becomes ``attempts + 1``. Reaching ``max_attempts``
        makes the job failed (terminal); otherwise it returns to pending
        after an exponential backoff, pushed out to ``not_before`` when
        that is later.

        Args:
            job_id: Job to update.
            attempts: Attempt count the job was claimed with.
            error_message: Failure description, truncated before storage.
            not_before: Earliest allowed retry (e.g. a rate-limit reset).

        Returns:
            The updated job.

        Raises:
            JobNotFoundError: If the job no longer exists.
        """
        next_attempts = attempts + 1
        terminal = next_attempts >= self._config.max_attempts
        status = JobStatus.FAILED if terminal else JobStatus.PENDING

        now = self._clock()
        delay = compute_backoff_seconds(
            next_attempts,
            floor=self._config.backoff_floor_seconds,
            ceiling=self._config.backoff_ceiling_seconds,
        )
        next_attempt_at = now + timedelta(seconds=delay)
        if not_before is not None and not_before > next_attempt_at:
            next_attempt_at = not_before
        last_error = error_message[: self._config.max_error_length]

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> SyncJob:
            cursor = conn.execute(
                """
                UPDATE sync_jobs
                SET status = ?, attempts = ?, next_attempt_at = ?,
                    started_at = NULL, last_error = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    status.value,
                    next_attempts,
                    to_db(next_attempt_at),
                    last_error,
                    to_db(now),
                    job_id,
                ),
            )
            if cursor.rowcount == 0:
                raise JobNotFoundError(job_id)
            ctx.add_affected_rows(cursor.rowcount)
            row = conn.execute(
                f"SELECT {JOB_COLUMNS} FROM sync_jobs WHERE id = ?",  # noqa: S608
                (job_id,),
            ).fetchone()
            return _row_to_job(row)

        job = await self._db.run("job_mark_failed", op)
        self._metrics.record_failure(terminal)
        self._log.warning(
            "job_failed" if terminal else "job_retry_scheduled",
            job_id=job_id,
            user_id=job.user_id,
            job_type=job.job_type,
            attempts=next_attempts,
            next_attempt_at=job.next_attempt_at.isoformat(),
            error=last_error,
        )
        return job

    async def delete(self, job_id: int) -> bool:
        """Drop a job without retry.

        Returns:
            True if the row existed.
        """
        deleted = await self._delete(job_id, "job_delete")
        if deleted:
            self._metrics.record_dropped()
        return deleted

    async def _delete(self, job_id: int, operation: str) -> bool:
        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> bool:
            cursor = conn.execute("DELETE FROM sync_jobs WHERE id = ?", (job_id,))
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount > 0

        return await self._db.run(operation, op)

    async def get(self, job_id: int) -> SyncJob | None:
        """Get a job by id.

        Args:
            job_id: Job to look up.

        Returns:
            The job, or None if not found.
        """

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> SyncJob | None:
            row = conn.execute(
                f"SELECT {JOB_COLUMNS} FROM sync_jobs WHERE id = ?",  # noqa: S608
                (job_id,),
            ).fetchone()
            return _row_to_job(row) if row is not None else None

        return await self._db.run("job_get", op)

    async def list_jobs(
        self,
        user_id: str,
        status: JobStatus | None = None,
    ) -> list[SyncJob]:
        """List a user's jobs, optionally filtered by status.

        Args:
            user_id: Owner of the jobs.
            status: Only return jobs in this status.

        Returns:
            Jobs ordered by ``(next_attempt_at, id)``.
        """
        query = f"SELECT {JOB_COLUMNS} FROM sync_jobs WHERE user_id = ?"  # noqa: S608
        params: list[Any] = [user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY next_attempt_at ASC, id ASC"

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> list[SyncJob]:
            return [_row_to_job(row) for row in conn.execute(query, params).fetchall()]

        return await self._db.run("job_list", op)

    async def count_by_status(self, user_id: str) -> dict[str, int]:
        """Count a user's jobs per status.

        Returns:
            Mapping of every status value to its count (zero included).
        """

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> dict[str, int]:
            rows = conn.execute(
                """
                SELECT status, COUNT(*) AS n FROM sync_jobs
                WHERE user_id = ? GROUP BY status
                """,
                (user_id,),
            ).fetchall()
            counts = {status.value: 0 for status in JobStatus}
            for row in rows:
                counts[row["status"]] = row["n"]
            return counts

        return await self._db.run("job_count_by_status", op)

    async def requeue_failed(self, user_id: str) -> int:
        """Reset a user's failed jobs to pending with a fresh attempt budget.

        Returns:
            Number of jobs requeued.
        """
        now = to_db(self._clock())

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> int:
            cursor = conn.execute(
                """
                UPDATE sync_jobs
                SET status = 'pending', attempts = 0, next_attempt_at = ?,
                    started_at = NULL, updated_at = ?
                WHERE user_id = ? AND status = 'failed'
                """,
                (now, now, user_id),
            )
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount

        requeued = await self._db.run("job_requeue_failed", op)
        self._log.info("jobs_requeued", user_id=user_id, count=requeued)
        return requeued
