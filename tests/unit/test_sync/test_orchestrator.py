"""Unit tests for the local-first read path."""

import asyncio
import tempfile
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from src.cache.base import SHARED_NAMESPACE, user_namespace
from src.cache.memory import MemoryCacheStore
from src.cache.models import CacheEntry
from src.fetch.errors import RateLimitError
from src.jobs.metrics import JobMetrics
from src.jobs.table import JobTable
from src.resources.github import build_default_registry
from src.resources.registry import UnknownJobTypeError
from src.settings.sync import SyncConfig
from src.store.database import Database
from src.sync.context import SyncContext
from src.sync.metrics import SyncMetrics
from src.sync.models import ReadRequest
from src.sync.orchestrator import SyncOrchestrator
from tests.helpers.github import FakeGitHub, json_response, rate_limited_response
from tests.helpers.time import FIXED_NOW, FakeClock


ISSUE = {"owner": "o", "repo": "r", "issue_number": 1}
ISSUE_KEY = "issue:o/r:1"
ISSUE_PATH = "/repos/o/r/issues/1"
REPO = {"owner": "o", "repo": "r"}
REPO_KEY = "repo:o/r"
REPO_PATH = "/repos/o/r"


@pytest.fixture
def database() -> Generator[Database]:
    """Create a connected database in a temporary directory."""
    JobMetrics.reset()
    SyncMetrics.reset()
    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "sync.sqlite")
        db.connect()
        yield db
        db.close()


@pytest.fixture
def clock() -> FakeClock:
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> MemoryCacheStore:
    """Create an in-memory cache on the fake clock."""
    return MemoryCacheStore(clock=clock.monotonic, now=clock)


@pytest.fixture
def config() -> SyncConfig:
    """Create the sync configuration under test."""
    return SyncConfig(foreground_timeout_seconds=0.2)


@pytest.fixture
def jobs(database: Database, config: SyncConfig, clock: FakeClock) -> JobTable:
    """Create a job table on the fake clock."""
    return JobTable(database, config, clock=clock)


@pytest.fixture
async def orchestrator(
    cache: MemoryCacheStore,
    jobs: JobTable,
    config: SyncConfig,
    clock: FakeClock,
) -> AsyncGenerator[SyncOrchestrator]:
    """Create an orchestrator whose drain loop for u1 is held off.

    Holding the drain slot keeps enqueued jobs pending so tests can
    inspect them.
    """
    orch = SyncOrchestrator(cache, jobs, build_default_registry(), config, clock=clock)
    orch.drainer.draining.try_acquire("u1")
    yield orch
    await orch.close(timeout=5)


@pytest.fixture
def github() -> FakeGitHub:
    """Create a canned GitHub API."""
    return FakeGitHub()


@pytest.fixture
async def ctx(github: FakeGitHub) -> AsyncGenerator[SyncContext]:
    """Create a context for user u1."""
    async with github.client() as client:
        yield SyncContext(user_id="u1", client=client)


async def _job_keys(jobs: JobTable, user_id: str = "u1") -> list[str]:
    return [job.dedupe_key for job in await jobs.list_jobs(user_id)]


async def _cache_repo(
    cache: MemoryCacheStore, private: bool, user_id: str = "u1", key: str = REPO_KEY
) -> None:
    await cache.set(user_namespace(user_id), key, {"id": 1, "private": private})


class TestAnonymousReads:
    """Tests for reads without a user context."""

    async def test_returns_fallback_without_fetching(
        self, orchestrator: SyncOrchestrator, github: FakeGitHub
    ) -> None:
        """Test anonymous callers get the fallback and nothing is fetched."""
        result = await orchestrator.read_resource(None, "repo_issues", REPO)

        assert result == []
        assert github.requests == []
        assert SyncMetrics.get_instance().anonymous_reads_total == 1


class TestUserCacheHit:
    """Tests for reads served from the user namespace."""

    async def test_hit_returns_cached_and_enqueues_refresh(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        jobs: JobTable,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a hit serves cached data and schedules a refresh."""
        await cache.set(user_namespace("u1"), REPO_KEY, {"id": 1, "stale": True})

        result = await orchestrator.read_resource(ctx, "repo", REPO)

        assert result == {"id": 1, "stale": True}
        assert github.requests == []
        assert await _job_keys(jobs) == [f"repo:{REPO_KEY}"]

        job = (await jobs.list_jobs("u1"))[0]
        assert job.payload == REPO
        assert job.next_attempt_at == FIXED_NOW

    async def test_repeated_hits_share_one_job(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        jobs: JobTable,
        ctx: SyncContext,
    ) -> None:
        """Test refreshes for the same item are deduplicated."""
        await cache.set(user_namespace("u1"), REPO_KEY, {"id": 1})

        for _ in range(3):
            await orchestrator.read_resource(ctx, "repo", REPO)

        assert len(await jobs.list_jobs("u1")) == 1

    async def test_cached_not_found_returns_fallback(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a cached None serves the fallback without fetching."""
        await cache.set(user_namespace("u1"), "repo_issues:o/r:open", None)

        result = await orchestrator.read_resource(ctx, "repo_issues", REPO)

        assert result == []
        assert github.requests == []

    async def test_hit_skips_enqueue_when_shared_fresh(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        jobs: JobTable,
        ctx: SyncContext,
    ) -> None:
        """Test no job is created while another user's refresh is recent."""
        await _cache_repo(cache, private=False)
        await cache.set(user_namespace("u1"), ISSUE_KEY, {"number": 1})
        await cache.set(SHARED_NAMESPACE, ISSUE_KEY, {"number": 1})

        await orchestrator.read_resource(ctx, "issue", ISSUE)

        assert await jobs.list_jobs("u1") == []
        assert SyncMetrics.get_instance().enqueues_skipped_fresh_total == 1

    async def test_job_table_failure_does_not_fail_read(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        database: Database,
        ctx: SyncContext,
    ) -> None:
        """Test a broken job table only loses the refresh."""
        await cache.set(user_namespace("u1"), REPO_KEY, {"id": 1})
        database.close()

        assert await orchestrator.read_resource(ctx, "repo", REPO) == {"id": 1}


class TestSharedCacheHit:
    """Tests for reads served from the shared namespace."""

    async def test_shared_hit_backfills_user_without_etag(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        jobs: JobTable,
        ctx: SyncContext,
        clock: FakeClock,
        github: FakeGitHub,
    ) -> None:
        """Test a shared hit is served, copied to the user and refreshed."""
        await _cache_repo(cache, private=False)
        await cache.set(SHARED_NAMESPACE, ISSUE_KEY, {"number": 1}, etag='"s"')
        clock.advance(200)

        result = await orchestrator.read_resource(ctx, "issue", ISSUE)
        await orchestrator.tasks.wait_idle()

        assert result == {"number": 1}
        assert github.requests == []
        backfilled = await cache.get(user_namespace("u1"), ISSUE_KEY)
        assert backfilled is not None
        assert backfilled.data == {"number": 1}
        assert backfilled.etag is None
        assert await _job_keys(jobs) == [f"issue:{ISSUE_KEY}"]

    async def test_shared_ignored_for_viewer_scoped_types(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test non-shareable types never read the shared namespace."""
        await cache.set(SHARED_NAMESPACE, REPO_KEY, {"id": "shared"})
        github.add("GET", REPO_PATH, json_response(200, {"id": "mine"}))

        result = await orchestrator.read_resource(ctx, "repo", REPO)

        assert result == {"id": "mine"}


class TestColdMiss:
    """Tests for reads with nothing cached."""

    async def test_fetches_and_writes_both_namespaces(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        jobs: JobTable,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a miss writes through, stripping viewer fields for sharing."""
        await _cache_repo(cache, private=False)
        github.add(
            "GET",
            ISSUE_PATH,
            json_response(200, {"number": 1, "author_association": "OWNER"}),
        )

        result = await orchestrator.read_resource(ctx, "issue", ISSUE)
        await orchestrator.tasks.wait_idle()

        assert result == {"number": 1, "author_association": "OWNER"}
        user_entry = await cache.get(user_namespace("u1"), ISSUE_KEY)
        shared_entry = await cache.get(SHARED_NAMESPACE, ISSUE_KEY)
        assert user_entry is not None and user_entry.data == result
        assert shared_entry is not None and shared_entry.data == {"number": 1}
        assert await jobs.list_jobs("u1") == []

    async def test_viewer_scoped_miss_not_shared(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test non-shareable data stays in the user namespace."""
        github.add("GET", REPO_PATH, json_response(200, {"id": 1}))

        await orchestrator.read_resource(ctx, "repo", REPO)
        await orchestrator.tasks.wait_idle()

        assert await cache.get(SHARED_NAMESPACE, REPO_KEY) is None

    async def test_not_found_cached_for_user_only(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        jobs: JobTable,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a 404 caches None for the user and schedules nothing."""
        result = await orchestrator.read_resource(ctx, "issue", ISSUE)
        await orchestrator.tasks.wait_idle()

        entry = await cache.get(user_namespace("u1"), ISSUE_KEY)
        assert result is None
        assert entry is not None and entry.data is None
        assert await cache.get(SHARED_NAMESPACE, ISSUE_KEY) is None
        assert await jobs.list_jobs("u1") == []

        # Served from the cached None without another fetch
        assert await orchestrator.read_resource(ctx, "issue", ISSUE) is None
        assert github.calls(ISSUE_PATH) == 1

    async def test_rate_limit_raises(
        self,
        orchestrator: SyncOrchestrator,
        jobs: JobTable,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a rate limited cold miss propagates with reset details."""
        reset_at = int(FIXED_NOW.timestamp()) + 600
        github.add("GET", ISSUE_PATH, rate_limited_response(reset_at))

        with pytest.raises(RateLimitError) as exc_info:
            await orchestrator.read_resource(ctx, "issue", ISSUE)

        assert exc_info.value.reset_at == reset_at
        assert exc_info.value.limit == 5000
        assert await jobs.list_jobs("u1") == []

    async def test_transient_failure_returns_fallback_and_enqueues(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        jobs: JobTable,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a server error serves the fallback and retries later."""
        github.add("GET", "/repos/o/r/issues", json_response(502, {"message": "Bad"}))

        result = await orchestrator.read_resource(ctx, "repo_issues", REPO)

        assert result == []
        assert await cache.get(user_namespace("u1"), "repo_issues:o/r:open") is None
        assert await _job_keys(jobs) == ["repo_issues:repo_issues:o/r:open"]

    async def test_foreground_timeout_returns_fallback(
        self,
        orchestrator: SyncOrchestrator,
        jobs: JobTable,
        ctx: SyncContext,
    ) -> None:
        """Test a slow fetch is abandoned after the foreground timeout."""

        async def slow_fetch(client: Any) -> Any:
            await asyncio.sleep(5)
            return {"late": True}

        request = ReadRequest(
            cache_key=REPO_KEY,
            cache_type="repo",
            job_type="repo",
            job_payload=REPO,
            fallback={"placeholder": True},
            fetch_remote=slow_fetch,
        )

        assert await orchestrator.read(ctx, request) == {"placeholder": True}
        assert await _job_keys(jobs) == [f"repo:{REPO_KEY}"]

    async def test_explicit_fallback_overrides_default(
        self, orchestrator: SyncOrchestrator, ctx: SyncContext, github: FakeGitHub
    ) -> None:
        """Test a caller-supplied fallback wins over the resource default."""
        github.add("GET", "/repos/o/r/issues", json_response(500, {}))

        result = await orchestrator.read_resource(
            ctx, "repo_issues", REPO, fallback=["offline"]
        )

        assert result == ["offline"]

    async def test_unknown_job_type_raises(
        self, orchestrator: SyncOrchestrator, ctx: SyncContext
    ) -> None:
        """Test reading an unregistered type is a programming error."""
        with pytest.raises(UnknownJobTypeError):
            await orchestrator.read_resource(ctx, "mystery", {})


class TestSharedVisibility:
    """Tests keeping private repository data out of the shared namespace."""

    SECRET = {"owner": "acme", "repo": "secret", "path": "secret.txt"}
    SECRET_PATH = "/repos/acme/secret/contents/secret.txt"
    SECRET_REPO_KEY = "repo:acme/secret"

    async def test_private_repo_item_not_served_to_other_user(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a member's read of a private file never reaches another user."""
        await _cache_repo(cache, private=True, key=self.SECRET_REPO_KEY)
        github.add(
            "GET", self.SECRET_PATH, json_response(200, {"private": True, "content": "U0VDUkVU"})
        )

        member = await orchestrator.read_resource(ctx, "file_content", self.SECRET)
        await orchestrator.tasks.wait_idle()

        outsider_github = FakeGitHub()
        async with outsider_github.client() as client:
            outsider = SyncContext(user_id="u2", client=client)
            seen = await orchestrator.read_resource(outsider, "file_content", self.SECRET)
        await orchestrator.tasks.wait_idle()

        assert member == {"private": True, "content": "U0VDUkVU"}
        assert seen is None
        assert outsider_github.calls(self.SECRET_PATH) == 1
        assert await cache.get(SHARED_NAMESPACE, "file_content:acme/secret:~:secret.txt") is None

    async def test_unknown_repo_visibility_not_shared(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test repo-scoped data is kept private until the repo is known public."""
        github.add("GET", "/repos/o/r/branches", json_response(200, [{"name": "main"}]))

        await orchestrator.read_resource(ctx, "repo_branches", REPO)
        await orchestrator.tasks.wait_idle()

        assert await cache.get(user_namespace("u1"), "repo_branches:o/r") is not None
        assert await cache.get(SHARED_NAMESPACE, "repo_branches:o/r") is None

    async def test_shared_copy_ignored_for_private_repo(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a user whose repo is private fetches instead of reading the shared copy."""
        await _cache_repo(cache, private=True)
        await cache.set(SHARED_NAMESPACE, ISSUE_KEY, {"number": 1, "title": "shared"})
        github.add("GET", ISSUE_PATH, json_response(200, {"number": 1, "title": "mine"}))

        result = await orchestrator.read_resource(ctx, "issue", ISSUE)

        assert result == {"number": 1, "title": "mine"}
        assert github.calls(ISSUE_PATH) == 1

    async def test_private_repo_does_not_skip_refresh(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        jobs: JobTable,
        ctx: SyncContext,
    ) -> None:
        """Test a fresh shared copy does not suppress a private repo's refresh."""
        await _cache_repo(cache, private=True)
        await cache.set(user_namespace("u1"), ISSUE_KEY, {"number": 1})
        await cache.set(SHARED_NAMESPACE, ISSUE_KEY, {"number": 1})

        await orchestrator.read_resource(ctx, "issue", ISSUE)

        assert await _job_keys(jobs) == [f"issue:{ISSUE_KEY}"]

    async def test_org_repos_not_shared(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test organization repo listings stay with the member who fetched them."""
        github.add(
            "GET", "/orgs/acme/repos", json_response(200, [{"name": "secret", "private": True}])
        )
        await cache.set(SHARED_NAMESPACE, "org_repos:acme:updated:all:30", [{"name": "old"}])

        result = await orchestrator.read_resource(ctx, "org_repos", {"org": "acme"})
        await orchestrator.tasks.wait_idle()

        assert result == [{"name": "secret", "private": True}]
        shared = await cache.get(SHARED_NAMESPACE, "org_repos:acme:updated:all:30")
        assert shared is not None and shared.data == [{"name": "old"}]


class TestForcedRefresh:
    """Tests for cache-bypassing reads."""

    async def test_force_refresh_fetches_despite_cache(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        jobs: JobTable,
        github: FakeGitHub,
        ctx: SyncContext,
    ) -> None:
        """Test forced reads return and store fresh data."""
        await cache.set(user_namespace("u1"), REPO_KEY, {"id": 1, "v": "old"})
        github.add("GET", REPO_PATH, json_response(200, {"id": 1, "v": "new"}))
        forced = SyncContext(user_id="u1", client=ctx.client, force_refresh=True)

        result = await orchestrator.read_resource(forced, "repo", REPO)

        entry = await cache.get(user_namespace("u1"), REPO_KEY)
        assert result == {"id": 1, "v": "new"}
        assert entry is not None and entry.data == result
        assert await jobs.list_jobs("u1") == []

    async def test_force_refresh_failure_falls_back_to_cache(
        self,
        orchestrator: SyncOrchestrator,
        cache: MemoryCacheStore,
        github: FakeGitHub,
        ctx: SyncContext,
    ) -> None:
        """Test a failed forced fetch still serves cached data."""
        await cache.set(user_namespace("u1"), REPO_KEY, {"id": 1, "v": "old"})
        github.add("GET", REPO_PATH, json_response(503, {}))
        forced = SyncContext(user_id="u1", client=ctx.client, force_refresh=True)

        result = await orchestrator.read_resource(forced, "repo", REPO)

        assert result == {"id": 1, "v": "old"}
        assert SyncMetrics.get_instance().forced_refresh_failures_total == 1


class _UnreadableCache(MemoryCacheStore):
    async def get(self, namespace: str, key: str) -> CacheEntry | None:
        raise OSError("cache backend down")


class _UnwritableCache(MemoryCacheStore):
    async def set(
        self,
        namespace: str,
        key: str,
        data: Any,
        etag: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        raise OSError("cache backend down")


class TestCacheStoreFailures:
    """Tests for reads while the cache store is failing."""

    @pytest.fixture
    async def build(
        self, jobs: JobTable, config: SyncConfig, clock: FakeClock
    ) -> AsyncGenerator[Callable[[MemoryCacheStore], SyncOrchestrator]]:
        """Build orchestrators over a given store, closing them afterwards."""
        built: list[SyncOrchestrator] = []

        def factory(store: MemoryCacheStore) -> SyncOrchestrator:
            orch = SyncOrchestrator(store, jobs, build_default_registry(), config, clock=clock)
            orch.drainer.draining.try_acquire("u1")
            built.append(orch)
            return orch

        yield factory
        for orch in built:
            await orch.close(timeout=5)

    async def test_failed_read_is_a_miss(
        self,
        build: Callable[[MemoryCacheStore], SyncOrchestrator],
        clock: FakeClock,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test an unreadable cache falls through to the upstream fetch."""
        orchestrator = build(_UnreadableCache(clock=clock.monotonic, now=clock))
        github.add("GET", "/repos/o/r/branches", json_response(200, [{"name": "main"}]))

        result = await orchestrator.read_resource(ctx, "repo_branches", REPO)

        assert result == [{"name": "main"}]
        assert SyncMetrics.get_instance().cache_errors_total >= 1

    async def test_failed_write_returns_fetched_data(
        self,
        build: Callable[[MemoryCacheStore], SyncOrchestrator],
        clock: FakeClock,
        jobs: JobTable,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a cold miss keeps the fetched data when caching it fails."""
        orchestrator = build(_UnwritableCache(clock=clock.monotonic, now=clock))
        github.add("GET", "/repos/o/r/branches", json_response(200, [{"name": "main"}]))

        result = await orchestrator.read_resource(ctx, "repo_branches", REPO)

        assert result == [{"name": "main"}]
        assert github.calls("/repos/o/r/branches") == 1
        assert await jobs.list_jobs("u1") == []
        assert SyncMetrics.get_instance().cache_errors_total == 1

    async def test_forced_refresh_write_failure_returns_fetched_data(
        self,
        build: Callable[[MemoryCacheStore], SyncOrchestrator],
        clock: FakeClock,
        ctx: SyncContext,
        github: FakeGitHub,
    ) -> None:
        """Test a forced read serves fresh data even when it cannot be stored."""
        orchestrator = build(_UnwritableCache(clock=clock.monotonic, now=clock))
        github.add("GET", REPO_PATH, json_response(200, {"id": 1, "v": "new"}))
        forced = SyncContext(user_id="u1", client=ctx.client, force_refresh=True)

        result = await orchestrator.read_resource(forced, "repo", REPO)

        assert result == {"id": 1, "v": "new"}
        assert github.calls(REPO_PATH) == 1
        assert SyncMetrics.get_instance().forced_refresh_failures_total == 0

    async def test_not_found_with_failed_write_returns_fallback(
        self,
        build: Callable[[MemoryCacheStore], SyncOrchestrator],
        clock: FakeClock,
        ctx: SyncContext,
    ) -> None:
        """Test a 404 still serves the fallback when None cannot be cached."""
        orchestrator = build(_UnwritableCache(clock=clock.monotonic, now=clock))

        assert await orchestrator.read_resource(ctx, "repo_issues", REPO) == []


class TestInvalidation:
    """Tests for post-mutation invalidation."""

    async def _seed(self, cache: MemoryCacheStore, *keys: str) -> None:
        for key in keys:
            await cache.set(user_namespace("u1"), key, {"key": key})

    async def test_invalidate_issue(
        self, orchestrator: SyncOrchestrator, cache: MemoryCacheStore
    ) -> None:
        """Test an issue mutation clears the issue, its comments and lists."""
        await self._seed(
            cache,
            "issue:o/r:1",
            "issue_comments:o/r:1",
            "repo_issues:o/r:open",
            "repo_nav_counts:o/r",
            "issue:o/r:2",
            "repo:o/r",
        )

        deleted = await orchestrator.invalidate_issue("u1", "O", "R", 1)

        assert deleted == 4
        assert await cache.get(user_namespace("u1"), "issue:o/r:2") is not None
        assert await cache.get(user_namespace("u1"), "repo:o/r") is not None

    async def test_invalidate_only_touches_user_namespace(
        self, orchestrator: SyncOrchestrator, cache: MemoryCacheStore
    ) -> None:
        """Test invalidation leaves other users and the shared copy alone."""
        await self._seed(cache, "repo_issues:o/r:open")
        await cache.set(user_namespace("u2"), "repo_issues:o/r:open", [])
        await cache.set(SHARED_NAMESPACE, "repo_issues:o/r:open", [])

        deleted = await orchestrator.invalidate_repo_issues("u1", "o", "r")

        assert deleted == 1
        assert await cache.get(user_namespace("u2"), "repo_issues:o/r:open") is not None
        assert await cache.get(SHARED_NAMESPACE, "repo_issues:o/r:open") is not None

    async def test_invalidate_pull_request(
        self, orchestrator: SyncOrchestrator, cache: MemoryCacheStore
    ) -> None:
        """Test a pull request mutation clears its detail and list keys."""
        await self._seed(
            cache,
            "pull_request:o/r:5",
            "pull_request_files:o/r:5",
            "repo_pull_requests:o/r:open",
            "repo_pull_requests:o/r:closed",
        )

        assert await orchestrator.invalidate_pull_request("u1", "o", "r", 5) == 4

    async def test_invalidate_repo_pull_requests(
        self, orchestrator: SyncOrchestrator, cache: MemoryCacheStore
    ) -> None:
        """Test opening a pull request clears the list keys only."""
        await self._seed(cache, "repo_pull_requests:o/r:open", "pull_request:o/r:5")

        assert await orchestrator.invalidate_repo_pull_requests("u1", "o", "r") == 1

    async def test_invalidate_file_content(
        self, orchestrator: SyncOrchestrator, cache: MemoryCacheStore
    ) -> None:
        """Test a file edit clears the file and its directory listings."""
        await self._seed(
            cache,
            "file_content:o/r:~:docs%2Fa.md",
            "repo_contents:o/r:~:docs",
            "repo_contents:o/r:main:~",
            "file_content:o/r:~:docs%2Fb.md",
        )

        deleted = await orchestrator.invalidate_file_content("u1", "o", "r", "/docs/a.md")

        assert deleted == 3
        assert (
            await cache.get(user_namespace("u1"), "file_content:o/r:~:docs%2Fb.md")
            is not None
        )
