"""Unit tests for the ghsync CLI."""

import asyncio
import io
import json
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from src.cache.sqlite import SqliteCacheStore
from src.cli import main as cli_main
from src.cli.main import cli
from src.jobs.table import JobTable
from src.observability.logging import configure_logging
from src.settings.sync import SyncConfig
from src.store.database import Database


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep log lines out of command output."""

    def configure(**kwargs: Any) -> None:
        configure_logging(level=kwargs["level"], output=io.StringIO())

    monkeypatch.setattr(cli_main, "configure_logging", configure)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def db_path() -> Generator[Path]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "cli.sqlite"


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


def _seed_jobs(db_path: Path) -> None:
    async def seed(table: JobTable) -> None:
        await table.upsert_pending("u1", "repo:repo:o/r", "repo", {"owner": "o", "repo": "r"})
        await table.upsert_pending("u1", "org:org:x", "org", {"org": "x"})
        claimed = await table.claim("u1", limit=1)
        await table.mark_failed(claimed[0].id, claimed[0].attempts, "boom", None)

    with Database(db_path) as database:
        asyncio.run(seed(JobTable(database, SyncConfig(max_attempts=1))))


def _seed_cache(db_path: Path, *keys: str) -> None:
    async def seed(store: SqliteCacheStore) -> None:
        for key in keys:
            await store.set("gh:u1", key, {"key": key})

    with Database(db_path) as database:
        asyncio.run(seed(SqliteCacheStore(database)))


class TestStatus:
    """Tests for the status command."""

    def test_status_json(self, runner: CliRunner, db_path: Path) -> None:
        """Test job counts are reported per status."""
        _seed_jobs(db_path)

        result = runner.invoke(cli, ["status", "--db", str(db_path), "--user", "u1", "--json"])

        assert result.exit_code == 0, result.output
        output = json.loads(result.stdout)
        assert output["user_id"] == "u1"
        assert output["jobs"] == {"pending": 1, "running": 0, "failed": 1}
        assert output["schema_version"] >= 1

    def test_status_text(self, runner: CliRunner, db_path: Path) -> None:
        """Test the human-readable summary."""
        result = runner.invoke(cli, ["status", "--db", str(db_path), "--user", "u1"])

        assert result.exit_code == 0
        assert "Sync Jobs for u1" in result.stdout
        assert "pending: 0" in result.stdout


class TestJobs:
    """Tests for the jobs command."""

    def test_lists_jobs_with_errors(self, runner: CliRunner, db_path: Path) -> None:
        """Test each job line shows status and the last error."""
        _seed_jobs(db_path)

        result = runner.invoke(cli, ["jobs", "--db", str(db_path), "--user", "u1"])

        assert result.exit_code == 0
        assert "repo:repo:o/r" in result.stdout
        assert "last_error: boom" in result.stdout

    def test_status_filter_json(self, runner: CliRunner, db_path: Path) -> None:
        """Test filtering by status in JSON output."""
        _seed_jobs(db_path)

        result = runner.invoke(
            cli,
            ["jobs", "--db", str(db_path), "--user", "u1", "--status", "failed", "--json"],
        )

        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        assert [row["dedupe_key"] for row in rows] == ["repo:repo:o/r"]
        assert rows[0]["status"] == "failed"
        assert rows[0]["last_error"] == "boom"

    def test_no_jobs(self, runner: CliRunner, db_path: Path) -> None:
        """Test the empty listing message."""
        result = runner.invoke(cli, ["jobs", "--db", str(db_path), "--user", "u1"])

        assert "No jobs." in result.stdout


class TestMaintenance:
    """Tests for maintenance commands."""

    def test_requeue_failed(self, runner: CliRunner, db_path: Path) -> None:
        """Test failed jobs are counted when requeued."""
        _seed_jobs(db_path)

        result = runner.invoke(cli, ["requeue-failed", "--db", str(db_path), "--user", "u1"])

        assert result.exit_code == 0
        assert "Requeued 1 failed job(s)." in result.stdout

    def test_invalidate(self, runner: CliRunner, db_path: Path) -> None:
        """Test entries under a prefix are deleted."""
        _seed_cache(db_path, "issue:o/r:1", "issue:o/r:2", "repo:o/r")

        result = runner.invoke(
            cli,
            ["invalidate", "--db", str(db_path), "--user", "u1", "--prefix", "issue:o/r:"],
        )

        assert result.exit_code == 0
        assert "Deleted 2 cache entries." in result.stdout

    def test_purge_expired(self, runner: CliRunner, db_path: Path) -> None:
        """Test purging an empty cache."""
        result = runner.invoke(cli, ["purge-expired", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Purged 0 expired cache entries." in result.stdout

    def test_drain_requires_token(self, runner: CliRunner, db_path: Path) -> None:
        """Test drain refuses to run without GITHUB_TOKEN."""
        result = runner.invoke(cli, ["drain", "--db", str(db_path), "--user", "u1"])

        assert result.exit_code == 1
        assert "GITHUB_TOKEN is not set." in result.output
