"""
Periodic feed refresh scheduler.

Meant to be run from cron: each invocation enqueues a ``fetch_feed`` job for
every feed whose last fetch is older than the refresh interval.
"""

from datetime import timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vibereader.config.logging import get_logger
from vibereader.config.settings import Settings
from vibereader.v1.feeds.models import Feed
from vibereader.v1.infra.jobs.errors import JobsDisabledError
from vibereader.v1.infra.jobs.models import JobType, utcnow
from vibereader.v1.infra.jobs.schemas import ScheduleSummary
from vibereader.v1.infra.jobs.service import JobQueue

logger = get_logger(__name__)


class FeedRefreshScheduler:
    def __init__(
        self,
        queue: JobQueue,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ):
        self.queue = queue
        self.session_factory = session_factory
        self.settings = settings

    async def due_feed_ids(self, interval_minutes: int) -> list[int]:
        """Feeds never fetched or fetched before the interval, oldest first."""
        cutoff = utcnow() - timedelta(minutes=interval_minutes)
        query = (
            select(Feed.id)
            .where(or_(Feed.last_fetched.is_(None), Feed.last_fetched < cutoff))
            .order_by(Feed.last_fetched.asc().nulls_first(), Feed.id)
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def run(self, interval_minutes: int | None = None) -> ScheduleSummary:
        """
        Enqueue refresh jobs for every due feed.

        Feeds that already have a pending ``fetch_feed`` job are skipped. The
        check and the push are separate statements, so two schedulers running
        at the same moment may still queue the same feed twice.
        """
        if not self.settings.jobs_enabled:
            raise JobsDisabledError()

        if interval_minutes is None:
            interval_minutes = self.settings.jobs_refresh_interval
        if (
            isinstance(interval_minutes, bool)
            or not isinstance(interval_minutes, int)
            or interval_minutes <= 0
        ):
            raise ValueError(
                f"interval_minutes must be a positive integer, got: {interval_minutes!r}"
            )

        feed_ids = await self.due_feed_ids(interval_minutes)

        queued = 0
        skipped = 0
        for feed_id in feed_ids:
            if await self.queue.has_pending(JobType.FETCH_FEED, feed_id):
                skipped += 1
                continue
            await self.queue.push(JobType.FETCH_FEED, {"feed_id": feed_id})
            queued += 1

        summary = ScheduleSummary(queued=queued, skipped=skipped, total=len(feed_ids))
        logger.info(
            "Scheduled feed refresh",
            interval_minutes=interval_minutes,
            queued=summary.queued,
            skipped=summary.skipped,
            total=summary.total,
        )
        return summary
