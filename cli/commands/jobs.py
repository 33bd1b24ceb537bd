"""Jobs Commands - Queue inspection and maintenance"""

import typer
from rich.console import Console

from vibereader.config.settings import Settings
from vibereader.infra.database import Database
from vibereader.v1.infra.jobs.models import JobType
from vibereader.v1.infra.jobs.schemas import CleanupItemsPayload, JobResponse
from vibereader.v1.infra.jobs.service import JobQueue

from ..utils.formatting import (
    create_job_panel,
    create_stats_table,
    print_error,
    print_info,
    print_success,
)
from ..utils.runtime import load_settings, run_with_database

console = Console()
app = typer.Typer(name="jobs", help="Background job queue commands")


def _queue(database: Database, settings: Settings) -> JobQueue:
    return JobQueue(database.SessionLocal, settings)


@app.command("stats")
def show_stats():
    """📊 Show job counts by status"""
    settings = load_settings()

    async def _stats(database: Database) -> dict[str, int]:
        return await _queue(database, settings).stats()

    stats = run_with_database(settings, _stats)
    console.print(create_stats_table(stats))


@app.command("purge")
def purge_jobs(
    days: int | None = typer.Option(
        None,
        "--days",
        "-d",
        min=1,
        help="Delete finished jobs older than N days [default: JOBS_CLEANUP_DAYS]",
    ),
):
    """🧹 Delete completed and failed jobs past the retention window"""
    settings = load_settings()
    days_old = days or settings.jobs_cleanup_days

    async def _purge(database: Database) -> int:
        return await _queue(database, settings).cleanup(days_old)

    deleted = run_with_database(settings, _purge)
    print_success(f"Deleted {deleted} job(s) older than {days_old} day(s).")


@app.command("enqueue-cleanup")
def enqueue_cleanup(
    feed_id: int | None = typer.Option(
        None, "--feed-id", "-f", min=1, help="Only clean this feed"
    ),
    retention_days: int | None = typer.Option(
        None, "--retention-days", min=1, help="Keep items newer than N days"
    ),
    retention_count: int | None = typer.Option(
        None, "--retention-count", min=1, help="Keep at most N items per feed"
    ),
):
    """🗑️ Queue a cleanup_items job"""
    settings = load_settings()
    payload = CleanupItemsPayload(
        feed_id=feed_id,
        retention_days=retention_days,
        retention_count=retention_count,
    ).model_dump(exclude_none=True)

    async def _enqueue(database: Database) -> int:
        return await _queue(database, settings).push(JobType.CLEANUP_ITEMS, payload)

    job_id = run_with_database(settings, _enqueue)
    print_success(f"Cleanup job queued (id {job_id}).")


@app.command("show")
def show_job(
    job_id: int = typer.Argument(..., help="Job ID to show"),
):
    """🔍 Show a single job with its last error"""
    settings = load_settings()

    async def _get(database: Database) -> JobResponse | None:
        job = await _queue(database, settings).get(job_id)
        return JobResponse.model_validate(job) if job is not None else None

    job = run_with_database(settings, _get)
    if job is None:
        print_error(f"Job {job_id} not found")
        raise typer.Exit(1)

    console.print(create_job_panel(job.model_dump()))
    if job.status == "pending" and job.attempts:
        print_info("The job is waiting to be retried.")
