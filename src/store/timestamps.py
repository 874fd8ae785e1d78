"""Timestamp helpers shared by the SQLite-backed stores.

All timestamps are stored as fixed-width ISO-8601 UTC strings so that SQL
string comparison orders them chronologically.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_db(value: datetime) -> str:
    """Serialize a datetime for storage.

    Naive datetimes are assumed to already be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_db(value: str | None) -> datetime | None:
    """Parse a stored timestamp, passing None through."""
    if value is None:
        return None
    return datetime.fromisoformat(value)
