"""Worker Command - Process queued background jobs"""

import asyncio
import signal

import typer

from vibereader.config.settings import Settings
from vibereader.infra.database import Database
from vibereader.v1.infra.jobs.registry_init import create_job_registry
from vibereader.v1.infra.jobs.service import JobQueue
from vibereader.v1.infra.jobs.worker import JobWorker

from ..utils.formatting import print_error, print_info, print_success
from ..utils.runtime import load_settings, run_with_database

app = typer.Typer(
    name="worker",
    help="⚙️ Process queued background jobs",
    rich_markup_mode="rich",
)


def build_worker(database: Database, settings: Settings) -> JobWorker:
    queue = JobQueue(database.SessionLocal, settings)
    return JobWorker(
        queue, create_job_registry(settings), database.SessionLocal, settings
    )


def _install_signal_handlers(worker: JobWorker) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.stop)
        except (NotImplementedError, RuntimeError):
            # Not available on this platform or outside the main thread
            pass


@app.callback(invoke_without_command=True)
def run_worker(
    daemon: bool = typer.Option(
        False, "--daemon", "-d", help="Keep polling until interrupted"
    ),
    max_jobs: int = typer.Option(
        0, "--max-jobs", "-n", min=0, help="Stop after N jobs (0 = no limit)"
    ),
    sleep: int | None = typer.Option(
        None,
        "--sleep",
        "-s",
        min=0,
        help="Seconds to wait on an empty queue in daemon mode [default: JOBS_WORKER_SLEEP]",
    ),
):
    """⚙️ Process pending jobs once, or continuously with --daemon"""
    settings = load_settings()

    if not settings.jobs_enabled:
        print_error("Background jobs are disabled. Set JOBS_ENABLED=true to run the worker.")
        raise typer.Exit(1)

    sleep_interval = settings.jobs_worker_sleep if sleep is None else sleep

    async def _process(database: Database) -> int:
        worker = build_worker(database, settings)
        if daemon:
            _install_signal_handlers(worker)
            return await worker.run(max_jobs=max_jobs, sleep_interval=sleep_interval)
        return await worker.drain(max_jobs=max_jobs)

    if daemon:
        print_info(f"Worker started (sleep {sleep_interval}s, Ctrl+C to stop)")

    processed = run_with_database(settings, _process)

    if processed:
        print_success(f"Processed {processed} job(s).")
    else:
        print_info("No jobs to process.")


if __name__ == "__main__":
    app()
