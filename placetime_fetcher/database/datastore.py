"""Datastore facade used by the scheduler and jobs.

Every operation opens its own short-lived session, so no connection is
shared between the scheduler and concurrently running jobs. SQLAlchemy
failures surface as DatastoreError.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator, List, Optional, Union

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from placetime_fetcher.config import PlacetimeConfig
from placetime_fetcher.database.connection import (
    create_tables,
    get_db_session,
    get_session_maker,
    init_engine,
)
from placetime_fetcher.database.models import Item, Profile
from placetime_fetcher.database.repositories import RepositoryFactory
from placetime_fetcher.exceptions import DatastoreError, ItemNotFoundError

logger = logging.getLogger(__name__)


def to_unix(timestamp: Union[datetime, int, float, None]) -> int:
    """Convert a publication time to a unix timestamp.

    Naive datetimes are taken as UTC; a missing time means now.
    """
    if timestamp is None:
        return int(datetime.now(timezone.utc).timestamp())
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return int(timestamp.timestamp())
    return int(timestamp)


class Datastore:
    """Profile and item storage.

    Example:
        store = Datastore("sqlite:///placetime.db")
        for profile in store.feed_driven_profiles():
            ...
    """

    def __init__(
        self,
        database_url: str,
        claim_ttl: int = 86400,
        engine: Optional[Engine] = None,
    ) -> None:
        """Initialize the datastore.

        Args:
            database_url: SQLAlchemy database URL
            claim_ttl: Seconds before an image claim on an item expires
            engine: Pre-built engine (mainly for tests)
        """
        self._engine = engine or init_engine(database_url)
        self._session_maker = get_session_maker(self._engine)
        self._claim_ttl = claim_ttl

    @classmethod
    def from_config(cls, config: PlacetimeConfig) -> "Datastore":
        """Create a datastore from the fetcher configuration."""
        return cls(config.datastore.url, claim_ttl=config.image.claim_ttl)

    @contextmanager
    def _repos(self) -> Generator[RepositoryFactory, None, None]:
        try:
            with get_db_session(self._session_maker) as session:
                yield RepositoryFactory(session)
        except SQLAlchemyError as e:
            raise DatastoreError(f"Datastore operation failed: {e}") from e

    def create_tables(self) -> None:
        """Create the datastore tables if they do not exist."""
        try:
            create_tables(self._engine)
        except SQLAlchemyError as e:
            raise DatastoreError(f"Could not create tables: {e}") from e

    def dispose(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()

    def add_profile(
        self,
        pid: str,
        feed_url: Optional[str] = None,
        name: str = "",
        update_policy: str = "feed",
        follower_count: int = 0,
    ) -> Profile:
        """Create a profile."""
        with self._repos() as repos:
            return repos.profiles.create(
                pid=pid,
                name=name or pid,
                feed_url=feed_url,
                update_policy=update_policy,
                follower_count=follower_count,
            )

    def feed_driven_profiles(self) -> List[Profile]:
        """Get all profiles whose content is feed-sourced."""
        with self._repos() as repos:
            return repos.profiles.get_feed_driven()

    def items_needing_images(self, limit: int) -> List[Item]:
        """Claim and return up to ``limit`` items lacking an image.

        Fewer than ``limit`` items are returned only when the backlog is
        exhausted.
        """
        with self._repos() as repos:
            return repos.items.claim_needing_images(limit, self._claim_ttl)

    def upsert_item(
        self,
        pid: str,
        item_id: str,
        title: str,
        link: str,
        image: Optional[str] = None,
        timestamp: Union[datetime, int, None] = None,
    ) -> Item:
        """Insert or update an item; idempotent for the same ID."""
        with self._repos() as repos:
            return repos.items.upsert(
                item_id=item_id,
                pid=pid,
                text=title,
                link=link,
                event=to_unix(timestamp),
                image=image,
            )

    def get_item(self, item_id: str) -> Item:
        """Get an item by ID.

        Raises:
            ItemNotFoundError: If no such item exists
        """
        with self._repos() as repos:
            item = repos.items.get_by_id(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def update_item(self, item: Item) -> None:
        """Persist changes made to an item."""
        with self._repos() as repos:
            if repos.items.get_by_id(item.id) is None:
                raise ItemNotFoundError(item.id)
            repos.session.merge(item)
        logger.debug(f"Updated item {item.id}")

    def items_for_profile(self, pid: str, limit: int = 50) -> List[Item]:
        """Get the most recent items of a profile."""
        with self._repos() as repos:
            return repos.items.get_by_profile(pid, limit)

    def backlog_size(self) -> int:
        """Count items that still have no image."""
        with self._repos() as repos:
            return repos.items.count_needing_images()
