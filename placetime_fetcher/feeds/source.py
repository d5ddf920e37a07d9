"""Feed retrieval and parsing.

Feeds are fetched with httpx and parsed with feedparser, which handles
RSS, Atom and their many dialects. Each entry is reduced to the fields the
datastore keeps: native id, title, link and publication time.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser
import httpx

from placetime_fetcher import __version__
from placetime_fetcher.exceptions import FeedParseError, FeedTransportError
from placetime_fetcher.http_client import client_scope

logger = logging.getLogger(__name__)


def content_id(native_id: str) -> str:
    """Derive the content-addressed item ID from a feed-native ID.

    The same native ID always yields the same 32 character hex digest, so
    re-ingesting a feed updates items instead of duplicating them.
    """
    return hashlib.md5(native_id.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class FeedEntry:
    """One parsed feed item.

    Attributes:
        native_id: The feed's own identifier (guid/id, else link)
        title: Entry title
        link: Entry link
        published: Publication time (UTC) if the feed gives one
    """

    native_id: str
    title: str
    link: str
    published: Optional[datetime] = None


@dataclass(frozen=True)
class ParsedFeed:
    """A fetched and parsed feed."""

    url: str
    title: str = ""
    entries: List[FeedEntry] = field(default_factory=list)


def _entry_time(entry: Any) -> Optional[datetime]:
    """Get the publication time of a feedparser entry."""
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


class FeedSource:
    """Fetch and parse remote feeds.

    Example:
        source = FeedSource(timeout=30.0)
        feed = source.fetch("https://example.com/rss")
        for entry in feed.entries:
            print(entry.native_id, entry.title)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = f"placetime-fetcher/{__version__}",
        client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialize the feed source.

        Args:
            timeout: Request timeout in seconds
            user_agent: User-Agent header for feed requests
            client: Shared HTTP client (a new one per fetch if None)
        """
        self._timeout = timeout
        self._user_agent = user_agent
        self._client = client

    def fetch(self, url: str) -> ParsedFeed:
        """Fetch and parse the feed at ``url``.

        Raises:
            FeedTransportError: If the feed cannot be retrieved
            FeedParseError: If the content is not a usable feed
        """
        try:
            with client_scope(self._client, self._timeout, self._user_agent) as client:
                response = client.get(url)
                response.raise_for_status()
                content = response.content
        except httpx.HTTPStatusError as e:
            raise FeedTransportError(
                "Feed request failed",
                url=url,
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FeedTransportError(f"Feed request failed: {e}", url=url) from e

        return self.parse(content, url)

    def parse(self, content: bytes | str, url: str = "") -> ParsedFeed:
        """Parse feed content.

        Entries without any usable identifier are skipped.

        Raises:
            FeedParseError: If the content is malformed and yields no entries
        """
        feed = feedparser.parse(content)

        if not feed.entries and not feed.get("version"):
            if feed.bozo:
                raise FeedParseError(f"Malformed feed: {feed.get('bozo_exception')}", url=url or None)
            raise FeedParseError("Content is not a recognised feed format", url=url or None)

        if feed.bozo:
            logger.debug(f"Feed {url} is not well formed: {feed.get('bozo_exception')}")

        entries: List[FeedEntry] = []
        for entry in feed.entries:
            link = (entry.get("link") or "").strip()
            native_id = (entry.get("id") or link).strip()
            if not native_id:
                logger.debug(f"Skipping feed entry without id or link in {url}")
                continue

            entries.append(FeedEntry(
                native_id=native_id,
                title=(entry.get("title") or "").strip(),
                link=link,
                published=_entry_time(entry),
            ))

        return ParsedFeed(
            url=url,
            title=(feed.feed.get("title") or "").strip(),
            entries=entries,
        )
