"""
Retention cleanup for feed items.
"""

from datetime import timedelta
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from vibereader.config.logging import get_logger
from vibereader.config.settings import Settings
from vibereader.v1.feeds.models import Feed, FeedItem
from vibereader.v1.infra.jobs.models import utcnow

logger = get_logger(__name__)


class FeedCleanupService:
    """
    Remove old feed items according to a retention policy.

    Items older than ``retention_days`` are deleted; when ``retention_count``
    is set only the newest N items of each feed are kept. Each feed is
    committed on its own, so an error part way leaves earlier feeds cleaned.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    async def cleanup_items(
        self,
        session: AsyncSession,
        feed_id: int | None = None,
        retention_days: int | None = None,
        retention_count: int | None = None,
    ) -> dict[str, Any]:
        retention_days = retention_days or self.settings.feed_retention_days
        retention_count = retention_count or self.settings.feed_retention_count

        query = select(Feed.id).order_by(Feed.id)
        if feed_id is not None:
            query = query.where(Feed.id == feed_id)
        feed_ids = list((await session.execute(query)).scalars().all())

        stats: dict[str, Any] = {
            "feeds_processed": 0,
            "items_deleted": 0,
            "feeds": [],
        }

        for current_feed_id in feed_ids:
            deleted = await self._cleanup_feed_items(
                session, current_feed_id, retention_days, retention_count
            )
            await session.commit()

            stats["feeds_processed"] += 1
            stats["items_deleted"] += deleted
            stats["feeds"].append({"feed_id": current_feed_id, "deleted": deleted})

        logger.info(
            "Feed cleanup completed",
            feeds_processed=stats["feeds_processed"],
            items_deleted=stats["items_deleted"],
            retention_days=retention_days,
            retention_count=retention_count,
        )
        return stats

    async def _cleanup_feed_items(
        self,
        session: AsyncSession,
        feed_id: int,
        retention_days: int,
        retention_count: int | None,
    ) -> int:
        cutoff = utcnow() - timedelta(days=retention_days)
        result = await session.execute(
            delete(FeedItem)
            .where(FeedItem.feed_id == feed_id, FeedItem.published_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount

        if retention_count:
            keep_ids = (
                select(FeedItem.id)
                .where(FeedItem.feed_id == feed_id)
                .order_by(
                    FeedItem.published_at.desc().nulls_last(),
                    FeedItem.created_at.desc(),
                )
                .limit(retention_count)
            )
            keep = list((await session.execute(keep_ids)).scalars().all())
            if keep:
                result = await session.execute(
                    delete(FeedItem)
                    .where(FeedItem.feed_id == feed_id, FeedItem.id.not_in(keep))
                    .execution_options(synchronize_session=False)
                )
                deleted += result.rowcount

        return deleted
