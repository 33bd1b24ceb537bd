"""
Queue API over the job store.

Every state change goes through a single conditional statement so that
concurrent worker processes sharing the database never observe or produce
a job in two places at once.
"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import DateTime, and_, case, delete, func, literal, null, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vibereader.config.logging import get_logger
from vibereader.config.settings import Settings
from vibereader.v1.infra.jobs.models import (
    TERMINAL_STATUSES,
    Job,
    JobStatus,
    JobType,
    utcnow,
)

logger = get_logger(__name__)

MAX_ERROR_LENGTH = 500
LEASE_EXPIRED_MESSAGE = "Lease expired before the worker finished the job"


def truncate_error(message: str) -> str:
    """Clip an error message to what is stored on the job."""
    if len(message) > MAX_ERROR_LENGTH:
        return message[:MAX_ERROR_LENGTH] + "..."
    return message


def _type_name(job_type: JobType | str) -> str:
    return job_type.value if isinstance(job_type, JobType) else str(job_type)


def _timestamp(value: datetime):
    return literal(value, DateTime(timezone=True))


def _held_by(job_id: int, worker_id: str | None):
    """Match a processing job, optionally only while ``worker_id`` holds it."""
    condition = and_(Job.id == job_id, Job.status == JobStatus.PROCESSING.value)
    if worker_id is not None:
        condition = and_(condition, Job.locked_by == worker_id)
    return condition


def payload_feed_id(payload: dict[str, Any]) -> int | None:
    """Extract the feed referenced by a payload, if it is a usable id."""
    value = payload.get("feed_id") if isinstance(payload, dict) else None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


class JobQueue:
    """Typed facade over the ``jobs`` table."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], settings: Settings
    ):
        self.session_factory = session_factory
        self.settings = settings

    async def push(
        self,
        job_type: JobType | str,
        payload: dict[str, Any],
        *,
        max_attempts: int | None = None,
    ) -> int:
        """
        Insert a new pending job and return its id.

        The payload is stored as given; its shape is checked by the handler
        when the job runs. Duplicate work is not detected here.
        """
        job_type = _type_name(job_type)
        now = utcnow()
        job = Job(
            type=job_type,
            payload=payload,
            feed_id=payload_feed_id(payload),
            status=JobStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts or self.settings.jobs_max_attempts,
            run_at=now,
            created_at=now,
            updated_at=now,
        )

        async with self.session_factory() as session:
            session.add(job)
            await session.commit()

        logger.info(
            "Job enqueued",
            job_id=job.id,
            job_type=job_type,
            feed_id=job.feed_id,
            max_attempts=job.max_attempts,
        )
        return job.id

    async def claim(self, worker_id: str | None = None) -> Job | None:
        """
        Atomically move the oldest claimable pending job to processing.

        The candidate is picked by a locking subquery inside the UPDATE, so
        two workers racing on the same row cannot both win it.
        """
        await self.release_expired_leases()

        now = utcnow()
        lease_expires_at = (
            now + timedelta(seconds=self.settings.jobs_lease_seconds)
            if self.settings.jobs_lease_seconds > 0
            else None
        )

        candidate = (
            select(Job.id)
            .where(and_(Job.status == JobStatus.PENDING.value, Job.run_at <= now))
            .order_by(Job.created_at, Job.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .correlate(None)
            .scalar_subquery()
        )
        claim_query = (
            update(Job)
            .where(and_(Job.id == candidate, Job.status == JobStatus.PENDING.value))
            .values(
                status=JobStatus.PROCESSING.value,
                attempts=Job.attempts + 1,
                locked_by=worker_id,
                locked_at=now,
                lease_expires_at=lease_expires_at,
                updated_at=now,
            )
            .returning(Job)
            .execution_options(synchronize_session=False)
        )

        async with self.session_factory() as session:
            result = await session.execute(claim_query)
            job = result.scalar_one_or_none()
            await session.commit()

        if job is not None:
            logger.info(
                "Job claimed",
                job_id=job.id,
                job_type=job.type,
                attempts=job.attempts,
                worker_id=worker_id,
            )
        return job

    async def complete(self, job_id: int, *, worker_id: str | None = None) -> bool:
        """
        Mark a processing job as completed.

        With ``worker_id`` the update only applies while that worker still
        holds the claim, so a worker whose lease expired cannot finish a job
        another worker has since reclaimed.
        """
        now = utcnow()
        query = (
            update(Job)
            .where(_held_by(job_id, worker_id))
            .values(
                status=JobStatus.COMPLETED.value,
                error_message=None,
                completed_at=now,
                locked_by=None,
                lease_expires_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        async with self.session_factory() as session:
            result = await session.execute(query)
            await session.commit()

        completed = result.rowcount > 0
        if completed:
            logger.info("Job completed", job_id=job_id)
        else:
            logger.warning(
                "Job was not held, completion ignored",
                job_id=job_id,
                worker_id=worker_id,
            )
        return completed

    async def fail(
        self,
        job_id: int,
        error_message: str,
        max_attempts: int | None = None,
        *,
        retry_at: datetime | None = None,
        worker_id: str | None = None,
    ) -> JobStatus | None:
        """
        Record a failed attempt.

        A job with attempts left goes back to pending (claimable again from
        ``retry_at``, default now); otherwise it becomes terminally failed.
        ``max_attempts`` defaults to the ceiling stored on the job. Returns
        the new status, or None when the job was not processing. With
        ``worker_id`` the job must also still be held by that worker.
        """
        now = utcnow()
        error_message = truncate_error(error_message)
        ceiling = Job.max_attempts if max_attempts is None else max_attempts
        retryable = Job.attempts < ceiling

        query = (
            update(Job)
            .where(_held_by(job_id, worker_id))
            .values(
                status=case(
                    (retryable, JobStatus.PENDING.value),
                    else_=JobStatus.FAILED.value,
                ),
                error_message=error_message,
                run_at=case((retryable, _timestamp(retry_at or now)), else_=Job.run_at),
                completed_at=case((retryable, null()), else_=_timestamp(now)),
                locked_by=None,
                lease_expires_at=None,
                updated_at=now,
            )
            .returning(Job.status, Job.attempts)
            .execution_options(synchronize_session=False)
        )

        async with self.session_factory() as session:
            result = await session.execute(query)
            row = result.one_or_none()
            await session.commit()

        if row is None:
            logger.warning(
                "Job was not held, failure ignored",
                job_id=job_id,
                worker_id=worker_id,
            )
            return None

        status = JobStatus(row.status)
        if status == JobStatus.PENDING:
            logger.info(
                "Job scheduled for retry",
                job_id=job_id,
                attempts=row.attempts,
                error=error_message,
            )
        else:
            logger.error(
                "Job failed permanently",
                job_id=job_id,
                attempts=row.attempts,
                error=error_message,
            )
        return status

    async def release_expired_leases(self) -> int:
        """
        Recover jobs left in processing by a worker that died.

        An expired lease counts as a failed attempt: the job is retried if
        it has attempts left and failed otherwise.
        """
        now = utcnow()
        retryable = Job.attempts < Job.max_attempts
        query = (
            update(Job)
            .where(
                and_(
                    Job.status == JobStatus.PROCESSING.value,
                    Job.lease_expires_at.is_not(None),
                    Job.lease_expires_at < now,
                )
            )
            .values(
                status=case(
                    (retryable, JobStatus.PENDING.value),
                    else_=JobStatus.FAILED.value,
                ),
                error_message=LEASE_EXPIRED_MESSAGE,
                run_at=case((retryable, _timestamp(now)), else_=Job.run_at),
                completed_at=case((retryable, null()), else_=_timestamp(now)),
                locked_by=None,
                lease_expires_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        async with self.session_factory() as session:
            result = await session.execute(query)
            await session.commit()

        released = result.rowcount
        if released:
            logger.warning("Released jobs with expired leases", job_count=released)
        return released

    async def stats(self) -> dict[str, int]:
        """Count jobs in each status."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            )
            by_status = dict(result.all())

        return {status.value: by_status.get(status.value, 0) for status in JobStatus}

    async def cleanup(self, days_old: int) -> int:
        """Delete completed and failed jobs finished more than ``days_old`` days ago."""
        if isinstance(days_old, bool) or not isinstance(days_old, int) or days_old <= 0:
            raise ValueError(f"days_old must be a positive integer, got: {days_old!r}")

        cutoff = utcnow() - timedelta(days=days_old)
        query = (
            delete(Job)
            .where(
                and_(
                    Job.status.in_(TERMINAL_STATUSES),
                    Job.completed_at.is_not(None),
                    Job.completed_at < cutoff,
                )
            )
            .execution_options(synchronize_session=False)
        )

        async with self.session_factory() as session:
            result = await session.execute(query)
            await session.commit()

        deleted_count = result.rowcount
        if deleted_count > 0:
            logger.info(
                "Cleaned up old jobs", deleted_count=deleted_count, days_old=days_old
            )
        return deleted_count

    async def get(self, job_id: int) -> Job | None:
        async with self.session_factory() as session:
            return await session.get(Job, job_id)

    async def has_pending(self, job_type: JobType | str, feed_id: int) -> bool:
        """Whether a pending job of ``job_type`` already targets ``feed_id``."""
        query = (
            select(Job.id)
            .where(
                and_(
                    Job.type == _type_name(job_type),
                    Job.status == JobStatus.PENDING.value,
                    Job.feed_id == feed_id,
                )
            )
            .limit(1)
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none() is not None
