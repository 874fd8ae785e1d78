"""Metrics collection for the upstream fetch layer."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class FetchMetrics:
    """Metrics for upstream API calls.

    Singleton class that tracks request counts by status, conditional
    hits (304), failures by kind, and cumulative duration.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_not_modified_total: int = 0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_duration_ms_total: float = 0.0
    http_request_count: int = 0

    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_request(self, status_code: int, duration_ms: float) -> None:
        """Record a completed HTTP request.

        Args:
            status_code: HTTP status code.
            duration_ms: Request duration in milliseconds.
        """
        self.http_requests_total[status_code] = (
            self.http_requests_total.get(status_code, 0) + 1
        )
        self.http_duration_ms_total += duration_ms
        self.http_request_count += 1

    def record_not_modified(self) -> None:
        """Record a conditional hit (304 response)."""
        self.http_not_modified_total += 1

    def record_failure(self, kind: str) -> None:
        """Record a failed request.

        Args:
            kind: Error kind label.
        """
        self.http_failures_total[kind] = self.http_failures_total.get(kind, 0) + 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "http_requests_total": dict(self.http_requests_total),
            "http_not_modified_total": self.http_not_modified_total,
            "http_failures_total": dict(self.http_failures_total),
            "http_duration_ms_total": self.http_duration_ms_total,
            "http_request_count": self.http_request_count,
        }

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average request duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.http_request_count == 0:
            return 0.0
        return self.http_duration_ms_total / self.http_request_count
