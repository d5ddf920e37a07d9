"""Feed retrieval and parsing."""

from placetime_fetcher.feeds.source import (
    FeedEntry,
    FeedSource,
    ParsedFeed,
    content_id,
)

__all__ = [
    "FeedEntry",
    "FeedSource",
    "ParsedFeed",
    "content_id",
]
