"""
Job endpoints: queue statistics and manual cleanup enqueueing.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Form, Request

from vibereader.config.logging import get_logger
from vibereader.v1.core.security import Principal, PrincipalDep
from vibereader.v1.infra.jobs.models import JobType
from vibereader.v1.infra.jobs.schemas import (
    CleanupItemsPayload,
    CleanupJobResponse,
    JobStatsResponse,
)
from vibereader.v1.infra.jobs.service import JobQueue

logger = get_logger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_queue(request: Request) -> JobQueue:
    """Return the job queue owned by the running application."""
    return request.app.state.job_queue


JobQueueDep = Depends(get_job_queue)

OptionalPositiveForm = Annotated[int | None, Form(gt=0)]


@router.get("/stats", response_model=JobStatsResponse)
async def get_job_stats(
    principal: Principal = PrincipalDep,
    queue: JobQueue = JobQueueDep,
) -> JobStatsResponse:
    """Job counts by status."""
    return JobStatsResponse(**await queue.stats())


@router.post("/cleanup", response_model=CleanupJobResponse)
async def queue_cleanup(
    feed_id: OptionalPositiveForm = None,
    retention_days: OptionalPositiveForm = None,
    retention_count: OptionalPositiveForm = None,
    principal: Principal = PrincipalDep,
    queue: JobQueue = JobQueueDep,
) -> CleanupJobResponse:
    """Queue a ``cleanup_items`` job for one feed or all feeds."""
    payload = CleanupItemsPayload(
        feed_id=feed_id,
        retention_days=retention_days,
        retention_count=retention_count,
    ).model_dump(exclude_none=True)

    job_id = await queue.push(JobType.CLEANUP_ITEMS, payload)

    logger.info(
        "Cleanup job queued via API",
        job_id=job_id,
        user_id=principal.user_id,
        feed_id=feed_id,
    )
    return CleanupJobResponse(job_id=job_id)
