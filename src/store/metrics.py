"""Metrics collection for the state store."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for SQLite transactions.

    Attributes:
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of committed transactions.
        db_tx_failures_total: Number of rolled back transactions.
        db_rows_affected_total: Rows written across all transactions.
    """

    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0
    db_tx_failures_total: int = 0
    db_rows_affected_total: int = 0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_tx(self, duration_ms: float, affected_rows: int) -> None:
        """Record a committed transaction.

        Args:
            duration_ms: Duration in milliseconds.
            affected_rows: Rows written by the transaction.
        """
        self.db_tx_duration_ms += duration_ms
        self.db_tx_count += 1
        self.db_rows_affected_total += affected_rows

    def record_tx_failure(self) -> None:
        """Record a rolled back transaction."""
        self.db_tx_failures_total += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "db_tx_duration_ms": self.db_tx_duration_ms,
            "db_tx_count": self.db_tx_count,
            "db_tx_failures_total": self.db_tx_failures_total,
            "db_rows_affected_total": self.db_rows_affected_total,
        }

    @property
    def avg_tx_duration_ms(self) -> float:
        """Calculate average transaction duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.db_tx_count == 0:
            return 0.0
        return self.db_tx_duration_ms / self.db_tx_count


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count.

        Args:
            rows: Number of rows affected.
        """
        self.affected_rows += rows
