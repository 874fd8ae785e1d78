"""SQLite-backed cache store sharing the job table's database."""

import json
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import structlog

from src.cache.models import CacheEntry
from src.store.database import Database
from src.store.metrics import TransactionContext
from src.store.timestamps import from_db, to_db, utc_now


logger = structlog.get_logger()


class SqliteCacheStore:
    """Persistent cache store on the ``cache_entries`` table.

    Payloads are stored as JSON text. Expired rows are ignored on read,
    deleted lazily, and can be purged in bulk with ``purge_expired``.
    """

    def __init__(
        self,
        database: Database,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the store.

        Args:
            database: Connected database handle.
            now: Wall clock, injectable for tests.
        """
        self._db = database
        self._now = now
        self._log = logger.bind(component="cache", backend="sqlite")

    async def get(self, namespace: str, key: str) -> CacheEntry | None:
        """Return the live entry for ``key``, or None when absent or expired."""
        now = to_db(self._now())

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> CacheEntry | None:
            row = conn.execute(
                """
                SELECT data_json, synced_at, etag, expires_at FROM cache_entries
                WHERE namespace = ? AND cache_key = ?
                """,
                (namespace, key),
            ).fetchone()
            if row is None:
                return None
            if row["expires_at"] is not None and row["expires_at"] <= now:
                cursor = conn.execute(
                    "DELETE FROM cache_entries WHERE namespace = ? AND cache_key = ?",
                    (namespace, key),
                )
                ctx.add_affected_rows(cursor.rowcount)
                return None
            return CacheEntry(
                data=json.loads(row["data_json"]),
                synced_at=from_db(row["synced_at"]),
                etag=row["etag"],
            )

        return await self._db.run("cache_get", op)

    async def set(
        self,
        namespace: str,
        key: str,
        data: Any,
        etag: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        """Store ``data`` as a fresh entry, replacing any previous one."""
        now = self._now()
        expires_at = (
            to_db(now + timedelta(seconds=ttl_seconds))
            if ttl_seconds is not None
            else None
        )
        data_json = json.dumps(data, separators=(",", ":"))

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> None:
            cursor = conn.execute(
                """
                INSERT INTO cache_entries
                    (namespace, cache_key, data_json, synced_at, etag, expires_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(namespace, cache_key) DO UPDATE SET
                    data_json = excluded.data_json,
                    synced_at = excluded.synced_at,
                    etag = excluded.etag,
                    expires_at = excluded.expires_at
                """,
                (namespace, key, data_json, to_db(now), etag, expires_at),
            )
            ctx.add_affected_rows(cursor.rowcount)

        await self._db.run("cache_set", op)

    async def touch(self, namespace: str, key: str) -> None:
        """Bump ``synced_at`` keeping data, etag and expiry."""
        now = to_db(self._now())

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> None:
            cursor = conn.execute(
                """
                UPDATE cache_entries SET synced_at = ?
                WHERE namespace = ? AND cache_key = ?
                  AND (expires_at IS NULL OR expires_at > ?)
                """,
                (now, namespace, key, now),
            )
            ctx.add_affected_rows(cursor.rowcount)

        await self._db.run("cache_touch", op)

    async def delete_by_prefix(self, namespace: str, prefix: str) -> int:
        """Delete every entry in ``namespace`` whose key starts with ``prefix``."""
        # Byte-exact prefix compare, unlike LIKE
        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> int:
            cursor = conn.execute(
                """
                DELETE FROM cache_entries
                WHERE namespace = ? AND substr(cache_key, 1, ?) = ?
                """,
                (namespace, len(prefix), prefix),
            )
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount

        deleted = await self._db.run("cache_delete_prefix", op)
        self._log.debug(
            "cache_prefix_deleted", namespace=namespace, prefix=prefix, count=deleted
        )
        return deleted

    async def purge_expired(self) -> int:
        """Delete all expired rows.

        Returns:
            Number of rows deleted.
        """
        now = to_db(self._now())

        def op(conn: sqlite3.Connection, ctx: TransactionContext) -> int:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (now,),
            )
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount

        purged = await self._db.run("cache_purge_expired", op)
        self._log.info("cache_expired_purged", count=purged)
        return purged
