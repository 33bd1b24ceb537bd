"""
Job store models for background processing.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from vibereader.infra.database import Base


class JobStatus(str, Enum):
    """Job status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETED.value, JobStatus.FAILED.value)


class JobType(str, Enum):
    """Job types the worker knows how to dispatch."""

    FETCH_FEED = "fetch_feed"
    CLEANUP_ITEMS = "cleanup_items"


def utcnow() -> datetime:
    return datetime.now(UTC)


class Job(Base):
    """
    A unit of queued work.

    Rows move pending -> processing -> completed | failed, with failed
    attempts returning to pending until ``max_attempts`` is reached.
    ``feed_id`` mirrors ``payload["feed_id"]`` so the scheduler can look
    up queued work for a feed without inspecting the serialized payload.
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(Text, nullable=False, comment="Job type identifier")
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, comment="Job-specific parameters"
    )
    feed_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Feed referenced by the payload"
    )

    # Job state
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.PENDING.value,
        comment="Job status: pending|processing|completed|failed",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Number of claims so far"
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=3, comment="Attempts before terminal failure"
    )
    error_message: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last error message"
    )
    run_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Earliest time the job may be claimed",
    )

    # Worker coordination
    locked_by: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Worker ID that claimed the job"
    )
    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="When the job was claimed"
    )
    lease_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Claim deadline after which the job is considered abandoned",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="jobs_status_check",
        ),
        CheckConstraint("attempts >= 0", name="jobs_attempts_check"),
        Index("ix_jobs_status_created_at", "status", "created_at"),
        Index("ix_jobs_type_status_feed_id", "type", "status", "feed_id"),
        Index("ix_jobs_completed_at", "completed_at"),
    )

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_retry(self) -> bool:
        """Whether another failure would send the job back to pending."""
        return self.attempts < self.max_attempts

    def __repr__(self) -> str:
        return (
            f"<Job id={self.id} type={self.type} status={self.status} "
            f"attempts={self.attempts}/{self.max_attempts}>"
        )
