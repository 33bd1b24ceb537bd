"""
Feed updater used by ``fetch_feed`` jobs.

Downloads a feed, parses it with feedparser and stores the entries that
are new for that feed.
"""

import calendar
import hashlib
from datetime import UTC, datetime
from typing import Any

import feedparser
import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vibereader.config.logging import get_logger
from vibereader.config.settings import Settings
from vibereader.v1.feeds.errors import FeedFetchError, FeedNotFoundError
from vibereader.v1.feeds.models import Feed, FeedItem
from vibereader.v1.infra.jobs.models import utcnow

logger = get_logger(__name__)


class FeedFetcher:
    """Fetch a feed over HTTP and persist its new items."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._client = client

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.settings.feed_fetch_timeout,
                connect=self.settings.feed_fetch_connect_timeout,
            ),
            follow_redirects=True,
            max_redirects=self.settings.feed_max_redirects,
            headers={"User-Agent": self.settings.feed_user_agent},
        )

    async def fetch(self, feed_id: int, url: str) -> bytes:
        """GET the feed document, raising FeedFetchError on any transport problem."""
        client = self._client or self._build_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedFetchError(
                feed_id, f"HTTP {e.response.status_code} from {url}"
            ) from e
        except httpx.HTTPError as e:
            raise FeedFetchError(feed_id, f"{e.__class__.__name__}: {e}") from e
        finally:
            if self._client is None:
                await client.aclose()
        return response.content

    async def update_feed(self, session: AsyncSession, feed_id: int) -> int:
        """
        Refresh one feed and return how many new items were stored.

        Raises FeedNotFoundError when the feed does not exist and
        FeedFetchError when the document cannot be fetched or parsed.
        """
        feed = await session.get(Feed, feed_id)
        if feed is None:
            raise FeedNotFoundError(feed_id)

        content = await self.fetch(feed_id, feed.url)
        parsed = feedparser.parse(content)
        if parsed.bozo and not parsed.entries:
            reason = getattr(parsed, "bozo_exception", None) or "not a feed"
            raise FeedFetchError(feed_id, f"unparseable document: {reason}")

        channel = parsed.feed
        feed.title = channel.get("title") or feed.title or feed.url
        feed.description = channel.get("subtitle") or feed.description
        feed.last_fetched = utcnow()

        entries = [_entry_fields(entry) for entry in parsed.entries]
        guids = {entry["guid"] for entry in entries}
        existing = set()
        if guids:
            result = await session.execute(
                select(FeedItem.guid).where(
                    FeedItem.feed_id == feed_id, FeedItem.guid.in_(guids)
                )
            )
            existing = set(result.scalars().all())

        new_items = 0
        for entry in entries:
            if entry["guid"] in existing:
                continue
            existing.add(entry["guid"])
            session.add(FeedItem(feed_id=feed_id, **entry))
            new_items += 1

        await session.commit()

        logger.info(
            "Feed updated",
            feed_id=feed_id,
            entries=len(entries),
            new_items=new_items,
        )
        return new_items


def _entry_fields(entry: Any) -> dict[str, Any]:
    title = entry.get("title") or ""
    link = entry.get("link")
    summary = entry.get("summary")
    content = summary
    if entry.get("content"):
        content = entry.content[0].get("value") or summary

    guid = entry.get("id") or link
    if not guid:
        guid = hashlib.md5(f"{title}{summary or ''}".encode()).hexdigest()

    return {
        "title": title,
        "link": link,
        "content": content,
        "summary": summary,
        "author": entry.get("author"),
        "published_at": _entry_published(entry),
        "guid": guid,
    }


def _entry_published(entry: Any) -> datetime | None:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime.fromtimestamp(calendar.timegm(parsed), UTC)
