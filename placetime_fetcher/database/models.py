"""
SQLAlchemy models for the placetime datastore.

Profiles own feeds; items are the entries ingested from those feeds,
keyed by a content-addressed id.
"""

from datetime import datetime, timezone
from typing import Optional, List, Any, Dict

from sqlalchemy import (
    BigInteger,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Text,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column, declarative_base

# Create base class for all models
Base = declarative_base()

# Update policy marking profiles whose items come from a feed
FEED_POLICY = "feed"

# Media kind recorded on items once an image has been stored
MEDIA_IMAGE = "image"


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored by SQLite DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(Base):
    """
    Profile model.

    A profile owns a feed and accumulates the items derived from it.
    Only profiles with the feed update policy are polled.
    """

    __tablename__ = "profiles"

    pid: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    feed_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    update_policy: Mapped[str] = mapped_column(String, nullable=False, default="manual", index=True)
    follower_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    items: Mapped[List["Item"]] = relationship(
        "Item",
        back_populates="profile",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    @property
    def is_feed_driven(self) -> bool:
        """Whether the profile's content is feed-sourced."""
        return self.update_policy == FEED_POLICY and bool(self.feed_url)


class Item(Base):
    """
    Item model.

    One unit of content from a profile's feed. The id is derived from the
    entry's feed-native id, so re-ingesting a feed updates items in place.

    image_claimed_at is stamped when the item is handed out for image
    fetching; a claim older than the configured TTL is considered abandoned.
    """

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    pid: Mapped[str] = mapped_column(
        String,
        ForeignKey("profiles.pid"),
        nullable=False,
        index=True,
    )

    # Publication time as a unix timestamp
    event: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    link: Mapped[str] = mapped_column(String, nullable=False, default="")

    # Image filename relative to the image directory
    image: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    media: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    image_claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    added: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    profile: Mapped[Profile] = relationship("Profile", back_populates="items")

    def to_dict(self) -> Dict[str, Any]:
        """Convert item to dictionary representation."""
        return {
            "id": self.id,
            "pid": self.pid,
            "event": self.event,
            "text": self.text,
            "link": self.link,
            "image": self.image,
            "media": self.media,
            "image_claimed_at": (
                self.image_claimed_at.isoformat()
                if self.image_claimed_at else None
            ),
            "added": self.added.isoformat() if self.added else None,
        }


Index("ix_items_pid_event", Item.pid, Item.event.desc())
Index("ix_items_needing_images", Item.image, Item.image_claimed_at)
