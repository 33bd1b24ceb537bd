from unittest.mock import AsyncMock, Mock

import pytest

from vibereader.v1.feeds.errors import FeedFetchError, FeedNotFoundError
from vibereader.v1.infra.jobs.errors import InvalidPayloadError, PermanentJobError
from vibereader.v1.infra.jobs.handlers import CleanupItemsHandler, FetchFeedHandler
from vibereader.v1.infra.jobs.models import JobType
from vibereader.v1.infra.jobs.registry_init import create_job_registry


@pytest.fixture
def updater():
    updater = Mock()
    updater.update_feed = AsyncMock(return_value=3)
    return updater


@pytest.fixture
def cleaner():
    cleaner = Mock()
    cleaner.cleanup_items = AsyncMock(
        return_value={"feeds_processed": 1, "items_deleted": 5, "feeds": []}
    )
    return cleaner


@pytest.mark.asyncio
async def test_fetch_feed_handler_updates_feed(settings, updater):
    handler = FetchFeedHandler(settings, updater)
    session = Mock()

    result = await handler.handle(session, {"feed_id": 42})

    assert result == {"feed_id": 42, "new_items": 3}
    updater.update_feed.assert_awaited_once_with(session, 42)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{}, {"feed_id": "42"}, {"feed_id": True}, {"feed_id": 0}, {"feed_id": -3}],
)
async def test_fetch_feed_handler_rejects_bad_payload(settings, updater, payload):
    handler = FetchFeedHandler(settings, updater)

    with pytest.raises(InvalidPayloadError, match="Invalid fetch_feed payload"):
        await handler.handle(Mock(), payload)

    updater.update_feed.assert_not_awaited()


@pytest.mark.asyncio
async def test_fetch_feed_handler_rejects_non_object(settings, updater):
    handler = FetchFeedHandler(settings, updater)

    with pytest.raises(InvalidPayloadError, match="must be an object"):
        await handler.handle(Mock(), [42])


@pytest.mark.asyncio
async def test_missing_feed_is_permanent(settings, updater):
    updater.update_feed.side_effect = FeedNotFoundError(42)
    handler = FetchFeedHandler(settings, updater)

    with pytest.raises(PermanentJobError, match="Feed 42 does not exist"):
        await handler.handle(Mock(), {"feed_id": 42})


@pytest.mark.asyncio
async def test_fetch_errors_propagate_for_retry(settings, updater):
    updater.update_feed.side_effect = FeedFetchError(42, "HTTP 503")
    handler = FetchFeedHandler(settings, updater)

    with pytest.raises(FeedFetchError) as exc_info:
        await handler.handle(Mock(), {"feed_id": 42})

    assert not isinstance(exc_info.value, PermanentJobError)


@pytest.mark.asyncio
async def test_cleanup_handler_passes_retention(settings, cleaner):
    handler = CleanupItemsHandler(settings, cleaner)
    session = Mock()

    result = await handler.handle(
        session, {"feed_id": 7, "retention_days": 30, "retention_count": 100}
    )

    assert result["items_deleted"] == 5
    cleaner.cleanup_items.assert_awaited_once_with(
        session, feed_id=7, retention_days=30, retention_count=100
    )


@pytest.mark.asyncio
async def test_cleanup_handler_defaults_to_all_feeds(settings, cleaner):
    handler = CleanupItemsHandler(settings, cleaner)
    session = Mock()

    await handler.handle(session, {})

    cleaner.cleanup_items.assert_awaited_once_with(
        session, feed_id=None, retention_days=None, retention_count=None
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{"feed_id": "all"}, {"retention_days": 0}, {"retention_count": -1}],
)
async def test_cleanup_handler_rejects_bad_payload(settings, cleaner, payload):
    handler = CleanupItemsHandler(settings, cleaner)

    with pytest.raises(InvalidPayloadError, match="Invalid cleanup_items payload"):
        await handler.handle(Mock(), payload)


def test_registry_contains_both_job_types(settings, updater, cleaner):
    registry = create_job_registry(settings, updater=updater, cleaner=cleaner)

    assert set(registry.list()) == {
        JobType.FETCH_FEED.value,
        JobType.CLEANUP_ITEMS.value,
    }
    assert registry.is_frozen()
    assert isinstance(registry.get("fetch_feed"), FetchFeedHandler)
    assert isinstance(registry.get("cleanup_items"), CleanupItemsHandler)


def test_registry_uses_real_collaborators_by_default(settings):
    registry = create_job_registry(settings)

    assert registry.get("fetch_feed").updater is not None
    assert registry.get("cleanup_items").cleaner is not None
