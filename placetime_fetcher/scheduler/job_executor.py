"""Job executor for feed and image jobs.

The JobExecutor performs one job to completion. Every failure a job can
meet (transport, parse, selection, write, datastore) is logged and ends
that job; nothing is retried and nothing propagates to the worker pool.

Feed jobs fetch a profile's feed and upsert each entry as an item whose
ID is the md5 of the entry's native ID. Image jobs pick a representative
image from the item's link, crop it to the configured size, write it to
the image directory as ``<item id>.png`` and record that filename on the
item.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Tuple

from PIL import Image

from placetime_fetcher.config import PlacetimeConfig
from placetime_fetcher.database.models import MEDIA_IMAGE, Item
from placetime_fetcher.exceptions import (
    DatastoreError,
    FeedParseError,
    FeedTransportError,
    ImageSelectionError,
    ImageWriteError,
    ItemNotFoundError,
)
from placetime_fetcher.feeds.source import FeedSource, ParsedFeed, content_id
from placetime_fetcher.media.crop import SaliencyCropper
from placetime_fetcher.media.picker import ImagePicker
from placetime_fetcher.scheduler.jobs import FeedFetchJob, ImageFetchJob, Job

logger = logging.getLogger(__name__)


class FeedFetcher(Protocol):
    def fetch(self, url: str) -> ParsedFeed:
        ...


class Picker(Protocol):
    def pick(self, url: str) -> Optional[Image.Image]:
        ...


class Cropper(Protocol):
    def crop(self, image: Image.Image, width: int, height: int) -> Image.Image:
        ...


class ItemStore(Protocol):
    def upsert_item(self, pid, item_id, title, link, image=None, timestamp=None) -> Item:
        ...

    def get_item(self, item_id: str) -> Item:
        ...

    def update_item(self, item: Item) -> None:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExecutionResult:
    """Result of executing one job.

    Attributes:
        job: The job that ran
        started_at: When execution started
        completed_at: When execution completed
        success: Whether the job did all of its work
        items_found: Feed entries found (feed jobs)
        items_stored: Items upserted (feed jobs)
        image_path: Image file written (image jobs)
        error: Error message if the job was abandoned
    """

    job: Job
    started_at: datetime
    completed_at: Optional[datetime] = None
    success: bool = False
    items_found: int = 0
    items_stored: int = 0
    image_path: Optional[Path] = None
    error: Optional[str] = None


class JobExecutor:
    """Executes feed and image jobs against the injected collaborators.

    Example:
        executor = JobExecutor(FeedSource(), ImagePicker(), SaliencyCropper(),
                               datastore, Path("/var/opt/timescroll/img"))
        result = executor.execute(FeedFetchJob("https://example.com/rss", "alice"))
    """

    def __init__(
        self,
        feed_source: FeedFetcher,
        image_picker: Picker,
        cropper: Cropper,
        datastore: ItemStore,
        image_dir: Path,
        image_size: Tuple[int, int] = (460, 160),
        image_format: str = "png",
    ) -> None:
        """Initialize the job executor.

        Args:
            feed_source: Fetches and parses feeds
            image_picker: Selects the representative image of a page
            cropper: Crops images to the target size
            datastore: Item storage
            image_dir: Directory image files are written to
            image_size: Target (width, height) of stored images
            image_format: Image format, also used as the file extension
        """
        self._feed_source = feed_source
        self._image_picker = image_picker
        self._cropper = cropper
        self._datastore = datastore
        self._image_dir = Path(image_dir)
        self._image_size = image_size
        self._image_format = image_format.lower()

    @classmethod
    def from_config(cls, config: PlacetimeConfig, datastore: ItemStore) -> "JobExecutor":
        """Build an executor with the standard collaborators."""
        fetcher = config.fetcher
        return cls(
            feed_source=FeedSource(timeout=fetcher.request_timeout, user_agent=fetcher.user_agent),
            image_picker=ImagePicker(timeout=fetcher.request_timeout, user_agent=fetcher.user_agent),
            cropper=SaliencyCropper(),
            datastore=datastore,
            image_dir=config.image.path,
            image_size=(config.image.width, config.image.height),
        )

    def execute(self, job: Job) -> ExecutionResult:
        """Execute a job to completion.

        Args:
            job: The job to execute

        Returns:
            Execution result with statistics

        Raises:
            TypeError: If the job is not a known job variant
        """
        match job:
            case FeedFetchJob():
                return self._fetch_feed(job)
            case ImageFetchJob():
                return self._fetch_image(job)
            case _:
                raise TypeError(f"Unknown job type: {type(job).__name__}")

    def image_filename(self, item_id: str) -> str:
        """Filename an item's image is stored under."""
        return f"{item_id}.{self._image_format}"

    def _fetch_feed(self, job: FeedFetchJob) -> ExecutionResult:
        result = ExecutionResult(job=job, started_at=_now())
        logger.info(f"Fetching feed {job.feed_url} for {job.profile_id}")

        try:
            feed = self._feed_source.fetch(job.feed_url)
        except FeedTransportError as e:
            logger.warning(f"Could not fetch feed for {job.profile_id}: {e}")
            return self._finish(result, error=str(e))
        except FeedParseError as e:
            logger.warning(f"Could not parse feed for {job.profile_id}: {e}")
            return self._finish(result, error=str(e))

        result.items_found = len(feed.entries)
        logger.info(f"Found {result.items_found} items in feed for {job.profile_id}")

        failures = 0
        for entry in feed.entries:
            item_id = content_id(entry.native_id)
            try:
                self._datastore.upsert_item(
                    job.profile_id,
                    item_id,
                    entry.title,
                    entry.link,
                    image=None,
                    timestamp=entry.published,
                )
                result.items_stored += 1
            except DatastoreError as e:
                failures += 1
                logger.error(f"Could not store item {item_id} for {job.profile_id}: {e}")

        if failures:
            return self._finish(result, error=f"{failures} items could not be stored")
        return self._finish(result, success=True)

    def _fetch_image(self, job: ImageFetchJob) -> ExecutionResult:
        result = ExecutionResult(job=job, started_at=_now())
        logger.debug(f"Picking image for item {job.item_id} from {job.source_url}")

        try:
            image = self._image_picker.pick(job.source_url)
        except ImageSelectionError as e:
            logger.warning(f"Could not select image for item {job.item_id}: {e}")
            return self._finish(result, error=str(e))

        if image is None:
            logger.info(f"No image found for item {job.item_id} at {job.source_url}")
            return self._finish(result, error="No image found")

        path = self._image_dir / self.image_filename(job.item_id)
        try:
            self._write_image(image, path)
        except ImageWriteError as e:
            logger.error(f"Could not store image for item {job.item_id}: {e}")
            return self._finish(result, error=str(e))
        result.image_path = path

        try:
            item = self._datastore.get_item(job.item_id)
            item.image = path.name
            item.media = MEDIA_IMAGE
            self._datastore.update_item(item)
        except ItemNotFoundError as e:
            logger.warning(f"Stored image {path.name} but its item is gone: {e}")
            return self._finish(result, error=str(e))
        except DatastoreError as e:
            logger.error(f"Could not record image for item {job.item_id}: {e}")
            return self._finish(result, error=str(e))

        logger.info(f"Stored image {path.name} for item {job.item_id}")
        return self._finish(result, success=True)

    def _write_image(self, image: Image.Image, path: Path) -> None:
        """Crop and write an image, leaving no partial file behind on failure.

        Raises:
            ImageWriteError: If the image cannot be cropped, encoded or written
        """
        width, height = self._image_size
        try:
            cropped = self._cropper.crop(image, width, height)
            cropped.save(path, format=self._image_format.upper())
        except (OSError, ValueError) as e:
            path.unlink(missing_ok=True)
            raise ImageWriteError(f"Could not write {path}: {e}") from e

    @staticmethod
    def _finish(
        result: ExecutionResult,
        success: bool = False,
        error: Optional[str] = None,
    ) -> ExecutionResult:
        result.completed_at = _now()
        result.success = success
        result.error = error
        return result
