"""Cache writes that fan out to the shared namespace."""

from typing import Any

import structlog

from src.cache.base import SHARED_NAMESPACE, CacheStore, user_namespace
from src.cache.models import CacheEntry
from src.fetch.errors import error_message
from src.resources.registry import ResourceRegistry, is_public_repo
from src.settings.sync import SyncConfig
from src.sync.tasks import BackgroundTasks


logger = structlog.get_logger()


class CacheWriter:
    """Writes refreshed data for one user and, when shareable, for everyone.

    The per-user write is awaited and its failure propagates. The shared
    write is detached: it runs as a background task and a failure there is
    only logged.

    Repo-scoped items reach the shared namespace only while the writing
    user's cached copy of the repository says it is public. A user who can
    see a private repository never publishes its contents.
    """

    def __init__(
        self,
        cache: CacheStore,
        resources: ResourceRegistry,
        config: SyncConfig,
        tasks: BackgroundTasks,
    ) -> None:
        self._cache = cache
        self._resources = resources
        self._config = config
        self._tasks = tasks
        self._log = logger.bind(component="cache_writer")

    async def can_share(
        self, user_id: str, cache_type: str, visibility_key: str | None
    ) -> bool:
        """Whether an item may be read from or written to the shared namespace.

        Args:
            user_id: User on whose behalf the item is read or written.
            cache_type: Resource type of the item.
            visibility_key: Cache key of the item's repository, for
                repo-scoped types.

        Returns:
            True for shareable types without a repository, and for
            repo-scoped types whose repository the user has cached as public.
        """
        if not self._resources.is_shareable(cache_type):
            return False
        if self._resources.get(cache_type).visibility_key is None:
            return True
        if visibility_key is None:
            return False

        try:
            repo = await self._cache.get(user_namespace(user_id), visibility_key)
        except Exception as e:
            self._log.warning(
                "visibility_lookup_failed",
                user_id=user_id,
                cache_key=visibility_key,
                error=error_message(e),
            )
            return False
        return repo is not None and is_public_repo(repo.data)

    async def write(
        self,
        user_id: str,
        cache_key: str,
        cache_type: str,
        data: Any,
        etag: str | None = None,
        visibility_key: str | None = None,
    ) -> None:
        """Store fresh data for ``user_id`` and schedule the shared copy.

        Args:
            user_id: Owner of the user namespace.
            cache_key: Item key.
            cache_type: Resource type of the item.
            data: Payload to cache.
            etag: Upstream ETag, kept for conditional revalidation.
            visibility_key: Repository cache key gating the shared copy.
        """
        await self._cache.set(
            user_namespace(user_id),
            cache_key,
            data,
            etag=etag,
            ttl_seconds=self._config.user_ttl_seconds,
        )
        if self._resources.is_shareable(cache_type):
            self._tasks.spawn(
                self._write_shared(user_id, cache_key, cache_type, data, etag, visibility_key),
                name=f"shared_write:{cache_key}",
            )

    async def _write_shared(
        self,
        user_id: str,
        cache_key: str,
        cache_type: str,
        data: Any,
        etag: str | None,
        visibility_key: str | None,
    ) -> None:
        if not await self.can_share(user_id, cache_type, visibility_key):
            self._log.debug("shared_write_skipped", user_id=user_id, cache_key=cache_key)
            return
        await self._cache.set(
            SHARED_NAMESPACE,
            cache_key,
            self._resources.get(cache_type).shared_view(data),
            etag=etag,
            ttl_seconds=self._config.shared_ttl_seconds,
        )

    async def touch(
        self,
        user_id: str,
        cache_key: str,
        cache_type: str,
        visibility_key: str | None = None,
    ) -> None:
        """Mark an unchanged item as freshly synced in both namespaces."""
        await self._cache.touch(user_namespace(user_id), cache_key)
        if self._resources.is_shareable(cache_type):
            self._tasks.spawn(
                self._touch_shared(user_id, cache_key, cache_type, visibility_key),
                name=f"shared_touch:{cache_key}",
            )

    async def _touch_shared(
        self,
        user_id: str,
        cache_key: str,
        cache_type: str,
        visibility_key: str | None,
    ) -> None:
        if await self.can_share(user_id, cache_type, visibility_key):
            await self._cache.touch(SHARED_NAMESPACE, cache_key)

    async def write_not_found(self, user_id: str, cache_key: str) -> None:
        """Remember that the item does not exist for ``user_id``.

        Not-found outcomes stay in the user namespace: another user may
        well be able to see the object.
        """
        await self._cache.set(
            user_namespace(user_id),
            cache_key,
            None,
            ttl_seconds=self._config.user_ttl_seconds,
        )

    def backfill_user(self, user_id: str, cache_key: str, entry: CacheEntry) -> None:
        """Copy a shared hit into the user namespace in the background.

        The ETag is not copied: the shared copy may lack viewer fields, so
        the next refresh must fetch the full object rather than revalidate.
        """
        self._tasks.spawn(
            self._cache.set(
                user_namespace(user_id),
                cache_key,
                entry.data,
                ttl_seconds=self._config.user_ttl_seconds,
            ),
            name=f"shared_backfill:{cache_key}",
        )
