"""Cache store contract and namespace helpers."""

from typing import Any, Protocol

from src.cache.models import CacheEntry


# Cross-user namespace for identity-independent public data
SHARED_NAMESPACE = "ghpub"

USER_NAMESPACE_PREFIX = "gh"


def user_namespace(user_id: str) -> str:
    """Get the authoritative per-user namespace.

    Args:
        user_id: Identifier of the user.

    Returns:
        Namespace string, e.g. ``gh:42``.
    """
    return f"{USER_NAMESPACE_PREFIX}:{user_id}"


class CacheStore(Protocol):
    """Protocol for key-value cache storage with per-entry TTL.

    Entries are small and overwritten whole; concurrent writers may race
    and the last write wins. Staleness is tolerated: this is a performance
    cache, not a system of record.
    """

    async def get(self, namespace: str, key: str) -> CacheEntry | None:
        """Return the live entry for ``key``, or None when absent or expired."""
        ...

    async def set(
        self,
        namespace: str,
        key: str,
        data: Any,
        etag: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        """Store ``data`` as a fresh entry.

        Args:
            namespace: Storage namespace.
            key: Cache key.
            data: JSON-compatible payload.
            etag: Upstream ETag, if known.
            ttl_seconds: Expiry in seconds (None keeps the entry indefinitely).
        """
        ...

    async def touch(self, namespace: str, key: str) -> None:
        """Bump ``synced_at`` keeping data, etag and expiry. No-op when absent."""
        ...

    async def delete_by_prefix(self, namespace: str, prefix: str) -> int:
        """Delete every entry whose key starts with ``prefix``.

        Returns:
            Number of entries deleted.
        """
        ...

    async def purge_expired(self) -> int:
        """Delete every expired entry in all namespaces.

        Returns:
            Number of entries deleted.
        """
        ...
