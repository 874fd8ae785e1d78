"""Domain exceptions for the state store.

This module defines a hierarchy of exceptions for the SQLite layer that
backs the job table and the persistent cache, separating infrastructure
errors (database issues) from domain errors (missing rows).
"""


class StateStoreError(Exception):
    """Base exception for all state store errors.

    All exceptions raised by the state store inherit from this class
    to enable consistent error handling at the application level.
    """


class ConnectionError(StateStoreError):  # noqa: A001
    """Raised when database connection fails or is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class JobNotFoundError(StateStoreError):
    """Raised when a sync job row is not found.

    Jobs are deleted on success, so this usually means another worker
    already finished the job.
    """

    def __init__(self, job_id: int) -> None:
        """Initialize the error with the missing job ID.

        Args:
            job_id: The job ID that was not found.
        """
        self.job_id = job_id
        super().__init__(f"Sync job not found: {job_id}")


class MigrationError(StateStoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
