"""Periodic producer of feed and image jobs.

The JobScheduler runs two pumps:

- the feed pump enqueues one FeedFetchJob per feed-driven profile;
- the image pump drains the backlog of items without an image in batches,
  enqueuing one ImageFetchJob per item.

In continuous mode APScheduler fires each pump on its own interval, with
the first run one interval after start. Pump runs never overlap: a lock
serializes them and each APScheduler job coalesces missed runs. In
single-pass mode each pump runs once, feeds first, with no timers.

Cancellation is cooperative. The shutdown signal is checked before each
pump, each batch query and each enqueue, and an enqueue blocked on a full
queue gives up as soon as shutdown is requested.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from placetime_fetcher.config import FetcherConfig
from placetime_fetcher.database.models import Item, Profile
from placetime_fetcher.exceptions import DatastoreError
from placetime_fetcher.scheduler.job_queue import JobQueue
from placetime_fetcher.scheduler.jobs import FeedFetchJob, ImageFetchJob, Job
from placetime_fetcher.scheduler.shutdown import ShutdownSignal

logger = logging.getLogger(__name__)

FEED_PUMP_ID = "feed-pump"
IMAGE_PUMP_ID = "image-pump"


class SchedulerDatastore(Protocol):
    def feed_driven_profiles(self) -> List[Profile]:
        ...

    def items_needing_images(self, limit: int) -> List[Item]:
        ...


@dataclass
class PumpSummary:
    """Jobs enqueued by one single-pass run.

    Attributes:
        feed_jobs: FeedFetchJobs enqueued
        image_jobs: ImageFetchJobs enqueued
        image_batches: Backlog queries made by the image pump
    """

    feed_jobs: int = 0
    image_jobs: int = 0
    image_batches: int = 0


class JobScheduler:
    """Turns datastore state into jobs on the job queue.

    Example:
        scheduler = JobScheduler(queue, shutdown, datastore, config.fetcher)

        # Continuous mode, returns after shutdown is triggered
        await scheduler.run()

        # Or a single pass
        summary = await scheduler.run_once()
    """

    def __init__(
        self,
        queue: JobQueue,
        shutdown: ShutdownSignal,
        datastore: SchedulerDatastore,
        config: Optional[FetcherConfig] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            queue: Queue jobs are handed to
            shutdown: Signal that stops the scheduler
            datastore: Source of profiles and image backlog
            config: Intervals and batch size

        Raises:
            ValueError: If an interval or the batch size is not positive
        """
        config = config or FetcherConfig()
        if config.feed.interval <= 0:
            raise ValueError(f"Feed interval must be positive, got {config.feed.interval}")
        if config.image.interval <= 0:
            raise ValueError(f"Image interval must be positive, got {config.image.interval}")
        if config.image.batch_size <= 0:
            raise ValueError(f"Image batch size must be positive, got {config.image.batch_size}")

        self._queue = queue
        self._shutdown = shutdown
        self._datastore = datastore
        self._config = config
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._pump_lock = asyncio.Lock()
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether continuous mode is active."""
        return self._running

    async def run(self) -> None:
        """Run in continuous mode until shutdown is requested.

        Returns once the timers are stopped and any pump in progress has
        finished.
        """
        if self._running:
            logger.warning("Scheduler already running")
            return

        if self._shutdown.is_set:
            logger.info("Shutdown already requested, not starting scheduler")
            return

        logger.info("Starting job scheduler...")
        self._scheduler = self._create_scheduler()
        self._setup_listeners()
        self._scheduler.start()
        self._add_pumps()
        self._running = True
        logger.info(
            f"Scheduler started (feeds every {self._config.feed.interval}s, "
            f"images every {self._config.image.interval}s)"
        )

        try:
            await self._shutdown.wait()
        finally:
            logger.info("Stopping job scheduler...")
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            # Let a pump in progress observe the shutdown and return
            async with self._pump_lock:
                pass
            self._running = False
            logger.info("Scheduler stopped")

    async def run_once(self) -> PumpSummary:
        """Run one feed pump followed by one image pump.

        Returns:
            Number of jobs each pump enqueued
        """
        logger.info("Running a single scheduling pass")
        summary = PumpSummary()
        async with self._pump_lock:
            summary.feed_jobs = await self.pump_feeds()
            summary.image_jobs, summary.image_batches = await self._pump_images()
        return summary

    async def pump_feeds(self) -> int:
        """Enqueue one FeedFetchJob per feed-driven profile.

        Returns:
            Number of jobs enqueued
        """
        if self._shutdown.is_set:
            return 0

        logger.info("Refreshing feeds")
        try:
            profiles = await asyncio.to_thread(self._datastore.feed_driven_profiles)
        except DatastoreError as e:
            logger.error(f"Could not list feed-driven profiles: {e}")
            return 0

        enqueued = 0
        for profile in profiles:
            try:
                job = FeedFetchJob(feed_url=profile.feed_url or "", profile_id=profile.pid)
            except ValueError as e:
                logger.warning(f"Skipping profile {profile.pid}: {e}")
                continue
            if not await self._enqueue(job):
                break
            enqueued += 1

        logger.info(f"Queued {enqueued} of {len(profiles)} feed jobs")
        return enqueued

    async def pump_images(self) -> int:
        """Enqueue one ImageFetchJob per item lacking an image.

        The backlog is queried batch by batch until it is exhausted.

        Returns:
            Number of jobs enqueued
        """
        enqueued, _ = await self._pump_images()
        return enqueued

    async def _pump_images(self) -> tuple[int, int]:
        batch_size = self._config.image.batch_size
        enqueued = 0
        batches = 0

        while not self._shutdown.is_set:
            try:
                items = await asyncio.to_thread(self._datastore.items_needing_images, batch_size)
            except DatastoreError as e:
                logger.error(f"Could not query items needing images: {e}")
                break
            batches += 1

            if not items:
                break

            for item in items:
                try:
                    job = ImageFetchJob(source_url=item.link, item_id=item.id)
                except ValueError as e:
                    logger.warning(f"Skipping item {item.id}: {e}")
                    continue
                if not await self._enqueue(job):
                    return enqueued, batches
                enqueued += 1

            if len(items) < batch_size and not self._config.image.drain_until_empty:
                break

        if enqueued:
            logger.info(f"Queued {enqueued} image jobs from {batches} batches")
        else:
            logger.debug("No items need images")
        return enqueued, batches

    async def _enqueue(self, job: Job) -> bool:
        """Hand a job to the queue unless shutdown has been requested."""
        if self._shutdown.is_set:
            return False
        return await self._queue.put(job, self._shutdown)

    async def _feed_tick(self) -> None:
        if self._shutdown.is_set:
            return
        async with self._pump_lock:
            await self.pump_feeds()

    async def _image_tick(self) -> None:
        if self._shutdown.is_set:
            return
        async with self._pump_lock:
            await self.pump_images()

    def _create_scheduler(self) -> AsyncIOScheduler:
        """Create and configure the APScheduler instance."""
        job_defaults = {
            "coalesce": True,  # Combine missed runs
            "max_instances": 1,  # A pump never overlaps itself
            "misfire_grace_time": None,
        }

        return AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults=job_defaults,
            timezone="UTC",
        )

    def _add_pumps(self) -> None:
        if not self._scheduler:
            return

        self._scheduler.add_job(
            self._feed_tick,
            trigger=IntervalTrigger(seconds=self._config.feed.interval),
            id=FEED_PUMP_ID,
            name="Feed pump",
            replace_existing=True,
        )
        self._scheduler.add_job(
            self._image_tick,
            trigger=IntervalTrigger(seconds=self._config.image.interval),
            id=IMAGE_PUMP_ID,
            name="Image pump",
            replace_existing=True,
        )

    def _setup_listeners(self) -> None:
        """Set up APScheduler event listeners."""
        if not self._scheduler:
            return

        def on_job_error(event: Any) -> None:
            exception = getattr(event, "exception", "Unknown error")
            logger.error(f"Pump {event.job_id} failed: {exception}")

        def on_job_missed(event: Any) -> None:
            logger.warning(f"Pump {event.job_id} missed scheduled run")

        self._scheduler.add_listener(on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(on_job_missed, EVENT_JOB_MISSED)
