class FeedError(Exception):
    """Base class for feed collaborator failures."""


class FeedNotFoundError(FeedError):
    def __init__(self, feed_id: int):
        self.feed_id = feed_id
        super().__init__(f"Feed {feed_id} does not exist")


class FeedFetchError(FeedError):
    """The remote feed could not be fetched or parsed."""

    def __init__(self, feed_id: int, reason: str):
        self.feed_id = feed_id
        self.reason = reason
        super().__init__(f"Failed to update feed {feed_id}: {reason}")
