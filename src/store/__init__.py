"""SQLite substrate for the job table and the persistent cache.

This module provides:
- A lock-guarded SQLite connection usable from asyncio code
- Schema migrations for the sync_jobs and cache_entries tables
- Transaction timing metrics
"""

from src.store.database import Database
from src.store.errors import (
    ConnectionError,
    JobNotFoundError,
    MigrationError,
    StateStoreError,
)
from src.store.metrics import StoreMetrics, TransactionContext
from src.store.migrations import CURRENT_VERSION, MigrationManager


__all__ = [
    # Database
    "Database",
    # Errors
    "ConnectionError",
    "JobNotFoundError",
    "MigrationError",
    "StateStoreError",
    # Metrics
    "StoreMetrics",
    "TransactionContext",
    # Migrations
    "CURRENT_VERSION",
    "MigrationManager",
]
