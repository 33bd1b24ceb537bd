"""
Job worker that claims jobs from the queue and runs their handlers.
"""

import asyncio
import os
import random
import socket
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vibereader.config.logging import bind_job_context, clear_job_context, get_logger
from vibereader.config.settings import Settings
from vibereader.v1.core.registries import JobRegistry
from vibereader.v1.infra.jobs.errors import (
    InvalidPayloadError,
    PermanentJobError,
    UnknownJobTypeError,
)
from vibereader.v1.infra.jobs.models import Job, utcnow
from vibereader.v1.infra.jobs.service import JobQueue

logger = get_logger(__name__)


class JobWorker:
    """
    Sequential job worker.

    Features:
    - Atomic claims through the queue, safe with several worker processes
    - Per-handler timeout and a failure boundary around every job
    - Permanent errors fail fast, transient ones use the retry budget
    - Optional exponential backoff with jitter for retries
    - Interruptible idle sleep for graceful shutdown
    """

    def __init__(
        self,
        queue: JobQueue,
        registry: JobRegistry,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ):
        self.queue = queue
        self.registry = registry
        self.session_factory = session_factory
        self.settings = settings
        self.worker_id = f"{socket.gethostname()}-{os.getpid()}-{id(self):x}"
        self._stop_event = asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask a running loop to exit after the current job."""
        if not self.stopping:
            logger.info("Stopping job worker", worker_id=self.worker_id)
        self._stop_event.set()

    async def process_next(self) -> bool:
        """
        Claim one job and run it.

        Returns False when no job was claimable. Handler errors are recorded
        on the job; errors from the store itself propagate.
        """
        job = await self.queue.claim(self.worker_id)
        if job is None:
            return False

        bind_job_context(job_id=job.id, job_type=job.type)
        try:
            try:
                result = await self._execute(job)
            except PermanentJobError as e:
                logger.error(
                    "Job failed with a permanent error",
                    attempts=job.attempts,
                    error=str(e),
                )
                await self.queue.fail(
                    job.id,
                    str(e),
                    max_attempts=job.attempts,
                    worker_id=self.worker_id,
                )
            except Exception as e:
                message = _describe(e)
                logger.exception(
                    "Job processing failed", attempts=job.attempts, error=message
                )
                await self.queue.fail(
                    job.id,
                    message,
                    job.max_attempts,
                    retry_at=self._retry_at(job.attempts),
                    worker_id=self.worker_id,
                )
            else:
                if await self.queue.complete(job.id, worker_id=self.worker_id):
                    logger.info("Job processed", attempts=job.attempts, result=result)
                else:
                    logger.warning(
                        "Job finished after its claim was lost",
                        attempts=job.attempts,
                        worker_id=self.worker_id,
                    )
        finally:
            clear_job_context("job_id", "job_type")

        return True

    async def _execute(self, job: Job):
        try:
            handler = self.registry.get(job.type)
        except KeyError as e:
            raise UnknownJobTypeError(f"Unknown job type: {job.type}") from e

        if not isinstance(job.payload, dict):
            raise InvalidPayloadError(
                f"Job payload must be an object, got {type(job.payload).__name__}"
            )

        async with self.session_factory() as session:
            return await asyncio.wait_for(
                handler.handle(session, job.payload),
                timeout=self.settings.jobs_handler_timeout,
            )

    def _retry_at(self, attempts: int) -> datetime | None:
        """Calculate the next claimable time with exponential backoff and jitter."""
        base_delay = self.settings.jobs_retry_backoff_seconds
        if base_delay <= 0:
            return None

        max_delay = self.settings.jobs_retry_backoff_max_seconds
        delay = min(max_delay, base_delay * (2 ** (max(attempts, 1) - 1)))

        # Add jitter (±25% random variation)
        jitter = delay * 0.25 * (2 * random.random() - 1)
        return utcnow() + timedelta(seconds=max(0.0, delay + jitter))

    async def drain(self, max_jobs: int = 0) -> int:
        """Process jobs until the queue is empty or ``max_jobs`` is reached."""
        processed = 0
        while not self.stopping and (max_jobs <= 0 or processed < max_jobs):
            if not await self.process_next():
                break
            processed += 1
        return processed

    async def run(self, max_jobs: int = 0, sleep_interval: float = 5) -> int:
        """
        Worker main loop.

        With ``max_jobs`` 0 the loop runs until ``stop()``; an empty queue
        suspends it for ``sleep_interval`` seconds, or ends it when the
        interval is 0.
        """
        logger.info(
            "Starting job worker",
            worker_id=self.worker_id,
            max_jobs=max_jobs,
            sleep_interval=sleep_interval,
        )

        processed = 0
        while not self.stopping and (max_jobs <= 0 or processed < max_jobs):
            if await self.process_next():
                processed += 1
                continue

            if sleep_interval <= 0:
                break
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=sleep_interval)
            except TimeoutError:
                pass

        logger.info(
            "Job worker stopped", worker_id=self.worker_id, processed=processed
        )
        return processed


def _describe(error: Exception) -> str:
    if isinstance(error, TimeoutError):
        return "Handler timed out"
    return str(error) or error.__class__.__name__
