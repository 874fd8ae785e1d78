"""Shared SQLite database for the job table and the persistent cache."""

import asyncio
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

import structlog

from src.store.errors import ConnectionError as StoreConnectionError
from src.store.metrics import StoreMetrics, TransactionContext
from src.store.migrations import CURRENT_VERSION, MigrationManager


logger = structlog.get_logger()

T = TypeVar("T")

# Statement executed inside one transaction on the worker thread
Operation = Callable[[sqlite3.Connection, TransactionContext], T]


class Database:
    """SQLite database shared by many concurrent request handlers.

    A single connection is opened in WAL mode and guarded by a lock.
    Async callers hand a synchronous operation to ``run``, which executes it
    on a worker thread inside one transaction, so the event loop only
    suspends at this I/O boundary.
    """

    def __init__(self, db_path: Path | str, busy_timeout_ms: int = 5000) -> None:
        """Initialize the database handle.

        Args:
            db_path: Path to SQLite database file.
            busy_timeout_ms: How long SQLite waits on a locked database.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(component="store", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        """
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._log.info("connecting_to_database")

        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")

        migration_mgr = MigrationManager(conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()
        self._conn = conn

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._log.info("database_closed")

    def __enter__(self) -> "Database":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Generator[TransactionContext]:
        """Context manager for transactions with timing and logging.

        Must be entered while holding ``self._lock``.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        conn = self._ensure_connected()
        tx_id = str(uuid.uuid4())[:8]
        start_ns = time.perf_counter_ns()
        ctx = TransactionContext(tx_id=tx_id, start_time_ns=start_ns, operation=operation)

        try:
            yield ctx
            conn.commit()
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._metrics.record_tx(duration_ms, ctx.affected_rows)
            self._log.debug(
                "transaction_complete",
                tx_id=tx_id,
                op=operation,
                affected_rows=ctx.affected_rows,
                duration_ms=round(duration_ms, 2),
            )

        except Exception:
            conn.rollback()
            self._metrics.record_tx_failure()
            self._log.error(
                "transaction_failed",
                tx_id=tx_id,
                op=operation,
                duration_ms=round((time.perf_counter_ns() - start_ns) / 1_000_000, 2),
            )
            raise

    def execute(self, operation: str, fn: Operation[T]) -> T:
        """Run ``fn`` inside a transaction on the calling thread.

        Args:
            operation: Name of the operation for logging.
            fn: Callable receiving the connection and transaction context.

        Returns:
            Whatever ``fn`` returns.
        """
        with self._lock, self._transaction(operation) as ctx:
            return fn(self._ensure_connected(), ctx)

    async def run(self, operation: str, fn: Operation[T]) -> T:
        """Run ``fn`` inside a transaction on a worker thread.

        Args:
            operation: Name of the operation for logging.
            fn: Callable receiving the connection and transaction context.

        Returns:
            Whatever ``fn`` returns.
        """
        return await asyncio.to_thread(self.execute, operation, fn)

    def get_schema_version(self) -> int:
        """Get current schema version.

        Returns:
            Current schema version number.
        """
        with self._lock:
            return MigrationManager(self._ensure_connected()).get_current_version()
