from datetime import timedelta

import pytest
from sqlalchemy import select

from vibereader.v1.feeds.cleanup import FeedCleanupService
from vibereader.v1.feeds.models import FeedItem
from vibereader.v1.infra.jobs.models import utcnow


@pytest.fixture
def add_items(session_factory):
    """Insert items for a feed, published the given number of days ago."""

    async def _add_items(feed_id: int, ages_in_days: list[int]) -> None:
        now = utcnow()
        async with session_factory() as session:
            for n, age in enumerate(ages_in_days):
                session.add(
                    FeedItem(
                        feed_id=feed_id,
                        title=f"item {n}",
                        guid=f"feed-{feed_id}-item-{n}",
                        published_at=now - timedelta(days=age),
                    )
                )
            await session.commit()

    return _add_items


async def guids(session_factory, feed_id: int) -> set[str]:
    async with session_factory() as session:
        result = await session.execute(
            select(FeedItem.guid).where(FeedItem.feed_id == feed_id)
        )
        return set(result.scalars().all())


@pytest.mark.asyncio
async def test_deletes_items_older_than_retention_days(
    settings, session_factory, make_feed, add_items
):
    feed = await make_feed()
    await add_items(feed.id, [1, 10, 100, 200])
    service = FeedCleanupService(settings)

    async with session_factory() as session:
        stats = await service.cleanup_items(session, retention_days=30)

    assert stats == {
        "feeds_processed": 1,
        "items_deleted": 2,
        "feeds": [{"feed_id": feed.id, "deleted": 2}],
    }
    assert await guids(session_factory, feed.id) == {
        f"feed-{feed.id}-item-0",
        f"feed-{feed.id}-item-1",
    }


@pytest.mark.asyncio
async def test_default_retention_days_from_settings(
    settings, session_factory, make_feed, add_items
):
    feed = await make_feed()
    await add_items(feed.id, [1, 89, 91])

    async with session_factory() as session:
        stats = await FeedCleanupService(settings).cleanup_items(session)

    assert stats["items_deleted"] == 1


@pytest.mark.asyncio
async def test_retention_count_keeps_newest(
    settings, session_factory, make_feed, add_items
):
    feed = await make_feed()
    await add_items(feed.id, [5, 1, 3, 2, 4])

    async with session_factory() as session:
        stats = await FeedCleanupService(settings).cleanup_items(
            session, retention_count=2
        )

    assert stats["items_deleted"] == 3
    assert await guids(session_factory, feed.id) == {
        f"feed-{feed.id}-item-1",
        f"feed-{feed.id}-item-3",
    }


@pytest.mark.asyncio
async def test_single_feed_cleanup_leaves_other_feeds(
    settings, session_factory, make_feed, add_items
):
    target = await make_feed(url="https://a.example/rss")
    other = await make_feed(url="https://b.example/rss")
    await add_items(target.id, [1, 400])
    await add_items(other.id, [1, 400])

    async with session_factory() as session:
        stats = await FeedCleanupService(settings).cleanup_items(
            session, feed_id=target.id
        )

    assert stats["feeds_processed"] == 1
    assert stats["items_deleted"] == 1
    assert len(await guids(session_factory, other.id)) == 2


@pytest.mark.asyncio
async def test_no_feeds(settings, session_factory):
    async with session_factory() as session:
        stats = await FeedCleanupService(settings).cleanup_items(session)

    assert stats == {"feeds_processed": 0, "items_deleted": 0, "feeds": []}
