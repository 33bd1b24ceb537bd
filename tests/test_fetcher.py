import httpx
import pytest
from sqlalchemy import select

from vibereader.v1.feeds.errors import FeedFetchError, FeedNotFoundError
from vibereader.v1.feeds.fetcher import FeedFetcher
from vibereader.v1.feeds.models import Feed, FeedItem

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Blog</title>
    <link>https://example.com/</link>
    <description>Posts about examples</description>
    <item>
      <title>First post</title>
      <link>https://example.com/posts/1</link>
      <guid>https://example.com/posts/1</guid>
      <description>Hello</description>
      <author>ann@example.com</author>
      <pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Second post</title>
      <link>https://example.com/posts/2</link>
      <guid>https://example.com/posts/2</guid>
      <description>World</description>
      <pubDate>Tue, 07 Jan 2025 10:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def serve(body: str, status_code: int = 200):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, text=body)

    handler.requests = requests
    return handler


async def items_for(session_factory, feed_id: int) -> list[FeedItem]:
    async with session_factory() as session:
        result = await session.execute(
            select(FeedItem).where(FeedItem.feed_id == feed_id).order_by(FeedItem.id)
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_update_feed_stores_items(settings, session_factory, make_feed):
    feed = await make_feed(url="https://example.com/rss")
    handler = serve(RSS)
    fetcher = FeedFetcher(settings, client=make_client(handler))

    async with session_factory() as session:
        assert await fetcher.update_feed(session, feed.id) == 2

    assert str(handler.requests[0].url) == "https://example.com/rss"

    items = await items_for(session_factory, feed.id)
    assert [item.title for item in items] == ["First post", "Second post"]
    assert items[0].guid == "https://example.com/posts/1"
    assert items[0].summary == "Hello"
    assert items[0].published_at is not None

    async with session_factory() as session:
        refreshed = await session.get(Feed, feed.id)
    assert refreshed.title == "Example Blog"
    assert refreshed.description == "Posts about examples"
    assert refreshed.last_fetched is not None


@pytest.mark.asyncio
async def test_update_feed_only_inserts_new_guids(settings, session_factory, make_feed):
    feed = await make_feed()
    fetcher = FeedFetcher(settings, client=make_client(serve(RSS)))

    async with session_factory() as session:
        assert await fetcher.update_feed(session, feed.id) == 2
    async with session_factory() as session:
        assert await fetcher.update_feed(session, feed.id) == 0

    assert len(await items_for(session_factory, feed.id)) == 2


@pytest.mark.asyncio
async def test_update_missing_feed(settings, session_factory):
    fetcher = FeedFetcher(settings, client=make_client(serve(RSS)))

    async with session_factory() as session:
        with pytest.raises(FeedNotFoundError):
            await fetcher.update_feed(session, 999)


@pytest.mark.asyncio
async def test_http_error_raises_fetch_error(settings, session_factory, make_feed):
    feed = await make_feed()
    fetcher = FeedFetcher(settings, client=make_client(serve("gone", 503)))

    async with session_factory() as session:
        with pytest.raises(FeedFetchError, match="HTTP 503"):
            await fetcher.update_feed(session, feed.id)

    async with session_factory() as session:
        assert (await session.get(Feed, feed.id)).last_fetched is None


@pytest.mark.asyncio
async def test_transport_error_raises_fetch_error(settings, session_factory, make_feed):
    feed = await make_feed()

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = FeedFetcher(settings, client=make_client(handler))

    async with session_factory() as session:
        with pytest.raises(FeedFetchError, match="ConnectError"):
            await fetcher.update_feed(session, feed.id)


@pytest.mark.asyncio
async def test_unparseable_document_raises_fetch_error(
    settings, session_factory, make_feed
):
    feed = await make_feed()
    fetcher = FeedFetcher(settings, client=make_client(serve("<html><body>nope")))

    async with session_factory() as session:
        with pytest.raises(FeedFetchError, match="unparseable document"):
            await fetcher.update_feed(session, feed.id)


def test_client_uses_configured_limits(settings_with):
    settings = settings_with(
        feed_fetch_timeout=12, feed_max_redirects=3, feed_user_agent="TestAgent/1"
    )
    client = FeedFetcher(settings)._build_client()

    assert client.timeout.read == 12
    assert client.max_redirects == 3
    assert client.follow_redirects is True
    assert client.headers["User-Agent"] == "TestAgent/1"
