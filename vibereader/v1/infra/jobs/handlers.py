"""
Job handlers for background processing.

Each handler implements the JobHandler protocol and is registered under its
job type. The actual feed work is delegated to the collaborators passed in.
"""

from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from vibereader.config.logging import get_logger
from vibereader.config.settings import Settings
from vibereader.v1.feeds.errors import FeedNotFoundError
from vibereader.v1.infra.jobs.errors import InvalidPayloadError, PermanentJobError
from vibereader.v1.infra.jobs.schemas import CleanupItemsPayload, FetchFeedPayload

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class FeedUpdater(Protocol):
    async def update_feed(self, session: AsyncSession, feed_id: int) -> int:
        """Fetch the feed, store new items and return how many were added."""
        ...


class ItemCleaner(Protocol):
    async def cleanup_items(
        self,
        session: AsyncSession,
        feed_id: int | None = None,
        retention_days: int | None = None,
        retention_count: int | None = None,
    ) -> dict[str, Any]:
        """Delete items outside the retention policy and return statistics."""
        ...


def parse_payload(model: type[M], job_type: str, payload: Any) -> M:
    """Validate a payload, turning shape errors into a permanent job failure."""
    if not isinstance(payload, dict):
        raise InvalidPayloadError(
            f"{job_type} payload must be an object, got {type(payload).__name__}"
        )
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise InvalidPayloadError(f"Invalid {job_type} payload: {problems}") from e


class FetchFeedHandler:
    """
    Refresh a single feed.

    Payload expected:
    {
        "feed_id": 42
    }
    """

    def __init__(self, settings: Settings, updater: FeedUpdater):
        self.settings = settings
        self.updater = updater

    async def handle(
        self, session: AsyncSession, payload: dict[str, Any]
    ) -> dict[str, Any] | None:
        params = parse_payload(FetchFeedPayload, "fetch_feed", payload)

        try:
            new_items = await self.updater.update_feed(session, params.feed_id)
        except FeedNotFoundError as e:
            raise PermanentJobError(str(e)) from e

        return {"feed_id": params.feed_id, "new_items": new_items}


class CleanupItemsHandler:
    """
    Apply the item retention policy to one feed or to all feeds.

    Payload expected:
    {
        "feed_id": 42,            # optional, all feeds when missing
        "retention_days": 30,     # optional, defaults to FEED_RETENTION_DAYS
        "retention_count": 200    # optional, defaults to FEED_RETENTION_COUNT
    }
    """

    def __init__(self, settings: Settings, cleaner: ItemCleaner):
        self.settings = settings
        self.cleaner = cleaner

    async def handle(
        self, session: AsyncSession, payload: dict[str, Any]
    ) -> dict[str, Any] | None:
        params = parse_payload(CleanupItemsPayload, "cleanup_items", payload)

        stats = await self.cleaner.cleanup_items(
            session,
            feed_id=params.feed_id,
            retention_days=params.retention_days,
            retention_count=params.retention_count,
        )

        logger.info(
            "Cleanup job finished",
            feed_id=params.feed_id,
            items_deleted=stats.get("items_deleted"),
        )
        return stats
