"""
Job system Pydantic schemas.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt

PositiveId = Annotated[StrictInt, Field(gt=0)]


class FetchFeedPayload(BaseModel):
    """Payload of a ``fetch_feed`` job."""

    feed_id: PositiveId


class CleanupItemsPayload(BaseModel):
    """Payload of a ``cleanup_items`` job; unset fields fall back to settings."""

    feed_id: PositiveId | None = None
    retention_days: PositiveId | None = None
    retention_count: PositiveId | None = None


class JobResponse(BaseModel):
    """Schema for presenting a single job."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    payload: Any
    status: str
    attempts: int
    max_attempts: int
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class JobStatsResponse(BaseModel):
    """Job counts by status."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


class CleanupJobResponse(BaseModel):
    """Response of the cleanup enqueue endpoint."""

    job_id: int
    message: str = Field(default="Cleanup job queued")


class ScheduleSummary(BaseModel):
    """Outcome of one scheduler pass."""

    queued: int = 0
    skipped: int = 0
    total: int = 0
