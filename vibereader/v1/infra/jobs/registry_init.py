"""
Job registry initialization.

Builds a job registry with every handler the worker knows how to run.
"""

from vibereader.config.logging import get_logger
from vibereader.config.settings import Settings
from vibereader.v1.core.registries import JobRegistry
from vibereader.v1.feeds.cleanup import FeedCleanupService
from vibereader.v1.feeds.fetcher import FeedFetcher
from vibereader.v1.infra.jobs.handlers import (
    CleanupItemsHandler,
    FeedUpdater,
    FetchFeedHandler,
    ItemCleaner,
)
from vibereader.v1.infra.jobs.models import JobType

logger = get_logger(__name__)


def create_job_registry(
    settings: Settings,
    updater: FeedUpdater | None = None,
    cleaner: ItemCleaner | None = None,
) -> JobRegistry:
    """Register all job handlers and return the frozen registry."""
    registry = JobRegistry()

    registry.register(
        JobType.FETCH_FEED.value,
        FetchFeedHandler(settings, updater or FeedFetcher(settings)),
    )
    registry.register(
        JobType.CLEANUP_ITEMS.value,
        CleanupItemsHandler(settings, cleaner or FeedCleanupService(settings)),
    )

    registry.freeze()
    logger.debug("Job handlers registered", registered_handlers=registry.list())
    return registry
