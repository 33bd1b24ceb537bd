"""Scheduler Command - Queue refresh jobs for stale feeds"""

import typer

from vibereader.infra.database import Database
from vibereader.v1.infra.jobs.scheduler import FeedRefreshScheduler
from vibereader.v1.infra.jobs.schemas import ScheduleSummary
from vibereader.v1.infra.jobs.service import JobQueue

from ..utils.formatting import print_error, print_success
from ..utils.runtime import load_settings, run_with_database

app = typer.Typer(
    name="scheduler",
    help="🕒 Queue refresh jobs for feeds that are due",
    rich_markup_mode="rich",
)


@app.callback(invoke_without_command=True)
def run_scheduler(
    interval: int | None = typer.Option(
        None,
        "--interval",
        "-i",
        min=1,
        help="Minutes since the last fetch before a feed is due [default: JOBS_REFRESH_INTERVAL]",
    ),
):
    """🕒 Enqueue a fetch_feed job for every feed that needs refreshing"""
    settings = load_settings()

    if not settings.jobs_enabled:
        print_error(
            "Background jobs are disabled. Set JOBS_ENABLED=true to run the scheduler."
        )
        raise typer.Exit(1)

    async def _schedule(database: Database) -> ScheduleSummary:
        queue = JobQueue(database.SessionLocal, settings)
        scheduler = FeedRefreshScheduler(queue, database.SessionLocal, settings)
        return await scheduler.run(interval_minutes=interval)

    summary = run_with_database(settings, _schedule)

    print_success(
        f"Scheduled refresh: {summary.queued} feeds queued, "
        f"{summary.skipped} already queued, "
        f"{summary.total} total need refreshing"
    )


if __name__ == "__main__":
    app()
