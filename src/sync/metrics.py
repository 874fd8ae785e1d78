"""Metrics collection for the read path and drainer."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass
class SyncMetrics:
    """Counters for local-first reads and drain loops.

    Singleton class shared by all orchestrators in the process.
    """

    reads_total: int = 0
    anonymous_reads_total: int = 0
    user_cache_hits_total: int = 0
    shared_cache_hits_total: int = 0
    remote_fetches_total: int = 0
    fallbacks_total: int = 0
    not_found_total: int = 0
    rate_limited_total: int = 0
    forced_refresh_failures_total: int = 0
    enqueues_skipped_fresh_total: int = 0
    cache_errors_total: int = 0
    drains_started_total: int = 0
    drains_skipped_total: int = 0
    jobs_processed_total: int = 0

    _instance: ClassVar["SyncMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "SyncMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_drain(self, started: bool) -> None:
        """Record a drain trigger and whether it started a loop."""
        if started:
            self.drains_started_total += 1
        else:
            self.drains_skipped_total += 1

    @property
    def cache_hit_rate(self) -> float:
        """Share of authenticated reads served from either namespace."""
        authenticated = self.reads_total - self.anonymous_reads_total
        if authenticated <= 0:
            return 0.0
        hits = self.user_cache_hits_total + self.shared_cache_hits_total
        return hits / authenticated

    def to_dict(self) -> dict[str, int | float]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "reads_total": self.reads_total,
            "anonymous_reads_total": self.anonymous_reads_total,
            "user_cache_hits_total": self.user_cache_hits_total,
            "shared_cache_hits_total": self.shared_cache_hits_total,
            "remote_fetches_total": self.remote_fetches_total,
            "fallbacks_total": self.fallbacks_total,
            "not_found_total": self.not_found_total,
            "rate_limited_total": self.rate_limited_total,
            "forced_refresh_failures_total": self.forced_refresh_failures_total,
            "enqueues_skipped_fresh_total": self.enqueues_skipped_fresh_total,
            "cache_errors_total": self.cache_errors_total,
            "drains_started_total": self.drains_started_total,
            "drains_skipped_total": self.drains_skipped_total,
            "jobs_processed_total": self.jobs_processed_total,
            "cache_hit_rate": round(self.cache_hit_rate, 4),
        }
