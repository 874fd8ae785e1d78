"""CLI commands for inspecting and operating the sync engine."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
import structlog

from src.cache.sqlite import SqliteCacheStore
from src.fetch.client import GitHubClient
from src.jobs.metrics import JobMetrics
from src.jobs.models import JobStatus
from src.jobs.table import JobTable
from src.observability.logging import (
    bind_user_context,
    clear_user_context,
    configure_logging,
)
from src.resources.github import build_default_registry
from src.settings.app import AppSettings, get_settings
from src.store.database import Database
from src.store.metrics import StoreMetrics
from src.sync.context import SyncContext
from src.sync.metrics import SyncMetrics
from src.sync.orchestrator import SyncOrchestrator


logger = structlog.get_logger()

COMPONENT_CLI = "cli"


def _setup(verbose: bool, json_logs: bool | None) -> AppSettings:
    """Load settings and configure logging for a command.

    Args:
        verbose: Force debug logging.
        json_logs: Override the configured log format.

    Returns:
        Loaded application settings.
    """
    settings = get_settings()
    level = logging.DEBUG if verbose else settings.log_level_value
    configure_logging(
        level=level,
        json_format=settings.json_logs if json_logs is None else json_logs,
    )
    return settings


db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to SQLite database (default: GHSYNC_DB_PATH).",
)
user_option = click.option(
    "--user",
    "user_id",
    required=True,
    type=str,
    help="User whose jobs or cache to operate on.",
)
json_option = click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
verbose_option = click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Local-first GitHub sync engine CLI."""


@cli.command()
@db_option
@user_option
@json_option
@verbose_option
def status(db_path: Path | None, user_id: str, json_output: bool, verbose: bool) -> None:
    """Show job counts per status for a user."""
    settings = _setup(verbose, json_logs=False)

    with Database(db_path or settings.db_path) as database:
        table = JobTable(database, settings.sync_config())
        counts = asyncio.run(table.count_by_status(user_id))

        if json_output:
            output = {
                "user_id": user_id,
                "schema_version": database.get_schema_version(),
                "jobs": counts,
            }
            click.echo(json.dumps(output, indent=2))
        else:
            click.echo(f"Sync Jobs for {user_id}")
            click.echo("=" * 40)
            for name, count in counts.items():
                click.echo(f"  {name}: {count}")


@cli.command()
@db_option
@user_option
@click.option(
    "--status",
    "status_filter",
    type=click.Choice([s.value for s in JobStatus]),
    default=None,
    help="Only list jobs in this status.",
)
@json_option
@verbose_option
def jobs(
    db_path: Path | None,
    user_id: str,
    status_filter: str | None,
    json_output: bool,
    verbose: bool,
) -> None:
    """List a user's jobs in claim order."""
    settings = _setup(verbose, json_logs=False)

    with Database(db_path or settings.db_path) as database:
        table = JobTable(database, settings.sync_config())
        rows = asyncio.run(
            table.list_jobs(
                user_id, JobStatus(status_filter) if status_filter else None
            )
        )

    if json_output:
        click.echo(json.dumps([job.model_dump(mode="json") for job in rows], indent=2))
        return

    if not rows:
        click.echo("No jobs.")
        return
    for job in rows:
        line = (
            f"  #{job.id} {job.status.value:<8} attempts={job.attempts} "
            f"next={job.next_attempt_at.isoformat()} {job.dedupe_key}"
        )
        click.echo(line)
        if job.last_error:
            click.echo(f"      last_error: {job.last_error[:200]}")


@cli.command()
@db_option
@user_option
@click.option(
    "--json-logs/--no-json-logs",
    default=None,
    help="Use JSON format for logs (default: GHSYNC_JSON_LOGS).",
)
@verbose_option
def drain(
    db_path: Path | None,
    user_id: str,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """Run one drain loop for a user with GITHUB_TOKEN."""
    settings = _setup(verbose, json_logs)
    log = logger.bind(component=COMPONENT_CLI, command="drain", user_id=user_id)

    if not settings.github_token:
        click.echo("GITHUB_TOKEN is not set.", err=True)
        sys.exit(1)

    bind_user_context(user_id)

    async def _run() -> int:
        with Database(db_path or settings.db_path) as database:
            config = settings.sync_config()
            orchestrator = SyncOrchestrator(
                SqliteCacheStore(database),
                JobTable(database, config),
                build_default_registry(),
                config,
            )
            async with GitHubClient(settings.github_token, settings.fetch_config()) as client:
                processed = await orchestrator.drainer.run_drain(
                    SyncContext(user_id=user_id, client=client)
                )
                await orchestrator.close()
            return processed

    log.info("drain_started")
    try:
        processed = asyncio.run(_run())
    finally:
        clear_user_context()
    log.info(
        "drain_finished",
        processed=processed,
        jobs=JobMetrics.get_instance().to_dict(),
        sync=SyncMetrics.get_instance().to_dict(),
        store=StoreMetrics.get_instance().to_dict(),
    )
    click.echo(f"Processed {processed} job(s).")


@cli.command("requeue-failed")
@db_option
@user_option
@verbose_option
def requeue_failed(db_path: Path | None, user_id: str, verbose: bool) -> None:
    """Reset a user's failed jobs to pending with a fresh attempt budget."""
    settings = _setup(verbose, json_logs=False)

    with Database(db_path or settings.db_path) as database:
        table = JobTable(database, settings.sync_config())
        count = asyncio.run(table.requeue_failed(user_id))

    click.echo(f"Requeued {count} failed job(s).")


@cli.command()
@db_option
@user_option
@click.option(
    "--prefix",
    required=True,
    type=str,
    help="Cache key prefix to delete, e.g. 'issue:octocat/hello-world:'.",
)
@verbose_option
def invalidate(db_path: Path | None, user_id: str, prefix: str, verbose: bool) -> None:
    """Delete a user's cached entries under a key prefix."""
    settings = _setup(verbose, json_logs=False)

    with Database(db_path or settings.db_path) as database:
        config = settings.sync_config()
        orchestrator = SyncOrchestrator(
            SqliteCacheStore(database),
            JobTable(database, config),
            build_default_registry(),
            config,
        )
        count = asyncio.run(orchestrator.invalidate_by_prefix(user_id, prefix))

    click.echo(f"Deleted {count} cache entr{'y' if count == 1 else 'ies'}.")


@cli.command("purge-expired")
@db_option
@verbose_option
def purge_expired(db_path: Path | None, verbose: bool) -> None:
    """Delete expired cache rows from every namespace."""
    settings = _setup(verbose, json_logs=False)

    with Database(db_path or settings.db_path) as database:
        count = asyncio.run(SqliteCacheStore(database).purge_expired())

    click.echo(f"Purged {count} expired cache entr{'y' if count == 1 else 'ies'}.")


if __name__ == "__main__":
    cli()
