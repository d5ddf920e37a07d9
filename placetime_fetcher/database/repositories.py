"""Database repositories for the placetime datastore.

Provides data access patterns for profiles and items, including the
claim query that hands out items still lacking an image.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from placetime_fetcher.database.models import FEED_POLICY, Item, Profile, utcnow


class ProfileRepository:
    """
    Repository for profile database operations.
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self.session = session

    def get_by_pid(self, pid: str) -> Optional[Profile]:
        """
        Get profile by ID.

        Args:
            pid: Profile ID

        Returns:
            Profile if found, None otherwise
        """
        return self.session.get(Profile, pid)

    def get_feed_driven(self) -> List[Profile]:
        """
        Get all profiles whose content is feed-sourced.

        Returns:
            Feed-driven profiles ordered by ID
        """
        return (
            self.session.query(Profile)
            .filter(Profile.update_policy == FEED_POLICY)
            .filter(Profile.feed_url.isnot(None))
            .filter(Profile.feed_url != "")
            .order_by(Profile.pid)
            .all()
        )

    def create(self, **kwargs) -> Profile:
        """
        Create a new profile record.

        Args:
            **kwargs: Profile attributes

        Returns:
            Created profile instance
        """
        profile = Profile(**kwargs)
        self.session.add(profile)
        self.session.flush()
        return profile


class ItemRepository:
    """
    Repository for item database operations.
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self.session = session

    def get_by_id(self, item_id: str) -> Optional[Item]:
        """
        Get item by ID.

        Args:
            item_id: Content-addressed item ID

        Returns:
            Item if found, None otherwise
        """
        return self.session.get(Item, item_id)

    def get_by_profile(self, pid: str, limit: int = 50) -> List[Item]:
        """
        Get the most recent items of a profile.

        Args:
            pid: Profile ID
            limit: Maximum number of items

        Returns:
            Items ordered newest first
        """
        return (
            self.session.query(Item)
            .filter(Item.pid == pid)
            .order_by(desc(Item.event))
            .limit(limit)
            .all()
        )

    def upsert(
        self,
        item_id: str,
        pid: str,
        text: str,
        link: str,
        event: int,
        image: Optional[str] = None,
    ) -> Item:
        """
        Insert an item or update it in place if the ID already exists.

        An existing image reference is kept unless a new one is given.

        Args:
            item_id: Content-addressed item ID
            pid: Owning profile ID
            text: Item title
            link: Item link
            event: Publication time as a unix timestamp
            image: Optional image filename

        Returns:
            The inserted or updated item
        """
        item = self.get_by_id(item_id)
        if item is None:
            item = Item(id=item_id, pid=pid, text=text, link=link, event=event, image=image)
            self.session.add(item)
        else:
            item.pid = pid
            item.text = text
            item.link = link
            item.event = event
            if image:
                item.image = image

        self.session.flush()
        return item

    def claim_needing_images(
        self,
        limit: int,
        claim_ttl: int,
        now: Optional[datetime] = None,
    ) -> List[Item]:
        """
        Claim up to ``limit`` items that have no image yet.

        Items with a live claim are skipped, so repeated calls walk through
        the backlog and return an empty list once it is exhausted.

        Args:
            limit: Maximum number of items to claim
            claim_ttl: Seconds after which an earlier claim is ignored
            now: Claim time (default: current UTC time)

        Returns:
            Claimed items, newest first
        """
        if limit <= 0:
            return []

        now = now or utcnow()
        cutoff = now - timedelta(seconds=claim_ttl)

        items = (
            self.session.query(Item)
            .filter(Item.image.is_(None))
            .filter(Item.link != "")
            .filter(or_(Item.image_claimed_at.is_(None), Item.image_claimed_at < cutoff))
            .order_by(desc(Item.event), Item.id)
            .limit(limit)
            .all()
        )

        for item in items:
            item.image_claimed_at = now

        self.session.flush()
        return items

    def count_needing_images(self) -> int:
        """Count linked items that have no image yet."""
        return (
            self.session.query(Item)
            .filter(Item.image.is_(None))
            .filter(Item.link != "")
            .count()
        )


class RepositoryFactory:
    """
    Factory for creating repository instances.

    Usage:
        with get_db_session(session_maker) as session:
            repos = RepositoryFactory(session)
            profiles = repos.profiles.get_feed_driven()
    """

    def __init__(self, session: Session):
        self.session = session
        self._profiles: Optional[ProfileRepository] = None
        self._items: Optional[ItemRepository] = None

    @property
    def profiles(self) -> ProfileRepository:
        """Get profile repository."""
        if self._profiles is None:
            self._profiles = ProfileRepository(self.session)
        return self._profiles

    @property
    def items(self) -> ItemRepository:
        """Get item repository."""
        if self._items is None:
            self._items = ItemRepository(self.session)
        return self._items
