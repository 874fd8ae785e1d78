"""In-process cache store with lazy TTL eviction."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.cache.models import CacheEntry
from src.store.timestamps import utc_now


@dataclass
class _Slot:
    entry: CacheEntry
    expires_at: float | None


class MemoryCacheStore:
    """Dictionary-backed cache store.

    Suitable for a single process and for tests. Expiry uses a monotonic
    clock. Expired entries are dropped when next read, and every
    ``sweep_every`` writes a sweep drops those that are never read again.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utc_now,
        sweep_every: int = 1000,
    ) -> None:
        """Initialize an empty store.

        Args:
            clock: Monotonic clock used for TTL expiry.
            now: Wall clock used for ``synced_at``.
            sweep_every: Number of writes between expiry sweeps.
        """
        self._slots: dict[tuple[str, str], _Slot] = {}
        self._clock = clock
        self._now = now
        self._sweep_every = max(1, sweep_every)
        self._writes_since_sweep = 0

    def __len__(self) -> int:
        return sum(1 for slot in self._slots.values() if not self._expired(slot))

    def _expired(self, slot: _Slot) -> bool:
        return slot.expires_at is not None and slot.expires_at <= self._clock()

    async def get(self, namespace: str, key: str) -> CacheEntry | None:
        """Return the live entry for ``key``, or None when absent or expired."""
        slot = self._slots.get((namespace, key))
        if slot is None:
            return None
        if self._expired(slot):
            del self._slots[(namespace, key)]
            return None
        return slot.entry

    async def set(
        self,
        namespace: str,
        key: str,
        data: Any,
        etag: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        """Store ``data`` as a fresh entry."""
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        entry = CacheEntry(data=data, synced_at=self._now(), etag=etag)
        self._slots[(namespace, key)] = _Slot(entry=entry, expires_at=expires_at)

        self._writes_since_sweep += 1
        if self._writes_since_sweep >= self._sweep_every:
            await self.purge_expired()

    async def touch(self, namespace: str, key: str) -> None:
        """Bump ``synced_at`` keeping data, etag and expiry."""
        slot = self._slots.get((namespace, key))
        if slot is None or self._expired(slot):
            return
        slot.entry = slot.entry.model_copy(update={"synced_at": self._now()})

    async def delete_by_prefix(self, namespace: str, prefix: str) -> int:
        """Delete every entry in ``namespace`` whose key starts with ``prefix``."""
        doomed = [
            slot_key
            for slot_key in self._slots
            if slot_key[0] == namespace and slot_key[1].startswith(prefix)
        ]
        for slot_key in doomed:
            del self._slots[slot_key]
        return len(doomed)

    async def purge_expired(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries dropped.
        """
        self._writes_since_sweep = 0
        expired = [slot_key for slot_key, slot in self._slots.items() if self._expired(slot)]
        for slot_key in expired:
            del self._slots[slot_key]
        return len(expired)
