"""Metrics collection for the job table."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass
class JobMetrics:
    """Counters for job scheduling and claiming.

    Attributes:
        jobs_enqueued_total: New job rows created.
        jobs_deduplicated_total: Enqueues that found a live job already.
        jobs_claimed_total: Jobs moved from pending to running.
        jobs_claim_conflicts_total: Claims lost to a concurrent drainer.
        jobs_recovered_total: Abandoned running jobs returned to pending.
        jobs_succeeded_total: Jobs deleted after success.
        jobs_retried_total: Failures rescheduled with backoff.
        jobs_failed_total: Jobs that reached the attempt ceiling.
        jobs_dropped_total: Jobs deleted without retry (contract errors).
    """

    jobs_enqueued_total: int = 0
    jobs_deduplicated_total: int = 0
    jobs_claimed_total: int = 0
    jobs_claim_conflicts_total: int = 0
    jobs_recovered_total: int = 0
    jobs_succeeded_total: int = 0
    jobs_retried_total: int = 0
    jobs_failed_total: int = 0
    jobs_dropped_total: int = 0

    _instance: ClassVar["JobMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "JobMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_enqueue(self, created: bool) -> None:
        """Record an enqueue attempt and whether it created a row."""
        if created:
            self.jobs_enqueued_total += 1
        else:
            self.jobs_deduplicated_total += 1

    def record_claim(self, claimed: int, conflicts: int) -> None:
        """Record the outcome of one claim pass."""
        self.jobs_claimed_total += claimed
        self.jobs_claim_conflicts_total += conflicts

    def record_recovered(self, count: int) -> None:
        """Record abandoned jobs returned to pending."""
        self.jobs_recovered_total += count

    def record_succeeded(self) -> None:
        """Record a successful job."""
        self.jobs_succeeded_total += 1

    def record_failure(self, terminal: bool) -> None:
        """Record a failed attempt; ``terminal`` when the job is now failed."""
        if terminal:
            self.jobs_failed_total += 1
        else:
            self.jobs_retried_total += 1

    def record_dropped(self) -> None:
        """Record a job deleted without retry."""
        self.jobs_dropped_total += 1

    def to_dict(self) -> dict[str, int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "jobs_enqueued_total": self.jobs_enqueued_total,
            "jobs_deduplicated_total": self.jobs_deduplicated_total,
            "jobs_claimed_total": self.jobs_claimed_total,
            "jobs_claim_conflicts_total": self.jobs_claim_conflicts_total,
            "jobs_recovered_total": self.jobs_recovered_total,
            "jobs_succeeded_total": self.jobs_succeeded_total,
            "jobs_retried_total": self.jobs_retried_total,
            "jobs_failed_total": self.jobs_failed_total,
            "jobs_dropped_total": self.jobs_dropped_total,
        }
