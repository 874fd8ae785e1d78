"""Key-value cache for upstream payloads.

Two namespaces hold the same entry shape:
- a per-user namespace, authoritative and always consulted first
- a shared namespace for identity-independent public data, short-lived
"""

from src.cache.base import SHARED_NAMESPACE, CacheStore, user_namespace
from src.cache.memory import MemoryCacheStore
from src.cache.models import CacheEntry
from src.cache.sqlite import SqliteCacheStore


__all__ = [
    "SHARED_NAMESPACE",
    "CacheEntry",
    "CacheStore",
    "MemoryCacheStore",
    "SqliteCacheStore",
    "user_namespace",
]
