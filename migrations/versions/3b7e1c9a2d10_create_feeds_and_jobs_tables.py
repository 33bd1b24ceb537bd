"""create feeds, feed_items and jobs tables

Revision ID: 3b7e1c9a2d10
Revises:
Create Date: 2026-10-18 09:12:40.118532

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7e1c9a2d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "feeds",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, nullable=False),
        sa.Column("title", sa.Text, nullable=False, server_default=""),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("feed_type", sa.Text, nullable=False, server_default="rss"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "last_fetched",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Last successful fetch",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "url", name="uq_feeds_user_url"),
    )
    op.create_index("ix_feeds_user_id", "feeds", ["user_id"])

    op.create_table(
        "feed_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "feed_id",
            sa.Integer,
            sa.ForeignKey("feeds.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text, nullable=False, server_default=""),
        sa.Column("link", sa.Text, nullable=True),
        sa.Column("content", sa.Text, nullable=True),
        sa.Column("summary", sa.Text, nullable=True),
        sa.Column("author", sa.Text, nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("guid", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("feed_id", "guid", name="uq_feed_items_feed_guid"),
    )
    op.create_index(
        "ix_feed_items_feed_id_published_at",
        "feed_items",
        ["feed_id", "published_at"],
    )

    # Job queue
    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("type", sa.Text, nullable=False, comment="Job type identifier"),
        sa.Column(
            "payload", sa.JSON, nullable=False, comment="Job-specific parameters"
        ),
        sa.Column(
            "feed_id",
            sa.Integer,
            nullable=True,
            comment="Feed referenced by the payload",
        ),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="pending",
            comment="Job status: pending|processing|completed|failed",
        ),
        sa.Column(
            "attempts",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="Number of claims so far",
        ),
        sa.Column(
            "max_attempts",
            sa.Integer,
            nullable=False,
            server_default="3",
            comment="Attempts before terminal failure",
        ),
        sa.Column(
            "error_message", sa.Text, nullable=True, comment="Last error message"
        ),
        sa.Column(
            "run_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="Earliest time the job may be claimed",
        ),
        sa.Column(
            "locked_by",
            sa.Text,
            nullable=True,
            comment="Worker ID that claimed the job",
        ),
        sa.Column(
            "locked_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="When the job was claimed",
        ),
        sa.Column(
            "lease_expires_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Claim deadline after which the job is considered abandoned",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="jobs_status_check",
        ),
        sa.CheckConstraint("attempts >= 0", name="jobs_attempts_check"),
    )

    # Claim order, scheduler dedup and retention sweep
    op.create_index("ix_jobs_status_created_at", "jobs", ["status", "created_at"])
    op.create_index(
        "ix_jobs_type_status_feed_id", "jobs", ["type", "status", "feed_id"]
    )
    op.create_index("ix_jobs_completed_at", "jobs", ["completed_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_jobs_completed_at", table_name="jobs")
    op.drop_index("ix_jobs_type_status_feed_id", table_name="jobs")
    op.drop_index("ix_jobs_status_created_at", table_name="jobs")
    op.drop_table("jobs")

    op.drop_index("ix_feed_items_feed_id_published_at", table_name="feed_items")
    op.drop_table("feed_items")

    op.drop_index("ix_feeds_user_id", table_name="feeds")
    op.drop_table("feeds")
