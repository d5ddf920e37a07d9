"""Job variants handled by the worker pool.

A job carries only the parameters of one unit of work. The set of variants
is closed: the executor dispatches on the Job union with a match statement,
so adding a variant means extending both this module and the executor.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class FeedFetchJob:
    """Fetch one profile's feed and ingest its items.

    Attributes:
        feed_url: URL of the feed to fetch
        profile_id: Profile owning the ingested items
    """

    feed_url: str
    profile_id: str

    def __post_init__(self) -> None:
        if not self.feed_url:
            raise ValueError("FeedFetchJob requires a feed URL")
        if not self.profile_id:
            raise ValueError("FeedFetchJob requires a profile ID")

    def describe(self) -> str:
        return f"feed {self.feed_url} for {self.profile_id}"


@dataclass(frozen=True)
class ImageFetchJob:
    """Find, crop and store the representative image of one item.

    Attributes:
        source_url: Page the image is picked from (the item link)
        item_id: Item whose image reference is set
    """

    source_url: str
    item_id: str

    def __post_init__(self) -> None:
        if not self.source_url:
            raise ValueError("ImageFetchJob requires a source URL")
        if not self.item_id:
            raise ValueError("ImageFetchJob requires an item ID")

    def describe(self) -> str:
        return f"image for item {self.item_id} from {self.source_url}"


Job = Union[FeedFetchJob, ImageFetchJob]
