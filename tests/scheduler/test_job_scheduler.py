"""Tests for the job scheduler."""

import asyncio
from types import SimpleNamespace

import pytest

from placetime_fetcher.config import FeedPollConfig, FetcherConfig, ImagePollConfig
from placetime_fetcher.exceptions import DatastoreError
from placetime_fetcher.scheduler.job_queue import JobQueue
from placetime_fetcher.scheduler.job_scheduler import JobScheduler
from placetime_fetcher.scheduler.jobs import FeedFetchJob, ImageFetchJob
from placetime_fetcher.scheduler.shutdown import ShutdownSignal


class FakeDatastore:
    """In-memory datastore whose image backlog is claimed batch by batch."""

    def __init__(self, profiles=(), items=()):
        self.profiles = list(profiles)
        self.backlog = list(items)
        self.queries = []
        self.on_query = None

    def feed_driven_profiles(self):
        return list(self.profiles)

    def items_needing_images(self, limit):
        self.queries.append(limit)
        if self.on_query:
            self.on_query()
        batch, self.backlog = self.backlog[:limit], self.backlog[limit:]
        return batch


def profile(pid, feed_url="https://example.com/rss"):
    return SimpleNamespace(pid=pid, feed_url=feed_url)


def item(n):
    return SimpleNamespace(id=f"item{n}", link=f"https://example.com/{n}")


def drain(queue):
    jobs = []
    while not queue.empty():
        jobs.append(queue._queue.get_nowait()[0])
    return jobs


def config(batch_size=10, interval=30, drain_until_empty=True):
    return FetcherConfig(
        feed=FeedPollConfig(interval=interval),
        image=ImagePollConfig(
            interval=interval,
            batch_size=batch_size,
            drain_until_empty=drain_until_empty,
        ),
    )


class TestSchedulerConstruction:
    """Tests for JobScheduler construction."""

    @pytest.mark.parametrize("cfg", [
        FetcherConfig(feed=FeedPollConfig(interval=0)),
        FetcherConfig(image=ImagePollConfig(interval=-5)),
        FetcherConfig(image=ImagePollConfig(batch_size=0)),
    ])
    def test_invalid_config_rejected(self, cfg):
        """Test non-positive intervals and batch sizes are rejected."""
        with pytest.raises(ValueError):
            JobScheduler(JobQueue(capacity=1), ShutdownSignal(), FakeDatastore(), cfg)

    def test_defaults(self):
        """Test the scheduler accepts the default configuration."""
        scheduler = JobScheduler(JobQueue(capacity=1), ShutdownSignal(), FakeDatastore())

        assert scheduler.is_running is False


class TestRunOnce:
    """Tests for single-pass mode."""

    @pytest.mark.asyncio
    async def test_one_profile_no_items(self):
        """Test a single pass enqueues one feed job and no image jobs."""
        queue = JobQueue(capacity=100)
        datastore = FakeDatastore(profiles=[profile("alice")])
        scheduler = JobScheduler(queue, ShutdownSignal(), datastore, config())

        summary = await scheduler.run_once()

        assert drain(queue) == [FeedFetchJob("https://example.com/rss", "alice")]
        assert summary.feed_jobs == 1
        assert summary.image_jobs == 0

    @pytest.mark.asyncio
    async def test_feeds_before_images(self):
        """Test feed jobs are enqueued before image jobs."""
        queue = JobQueue(capacity=100)
        datastore = FakeDatastore(profiles=[profile("alice"), profile("bob")], items=[item(1)])
        scheduler = JobScheduler(queue, ShutdownSignal(), datastore, config())

        await scheduler.run_once()

        kinds = [type(job) for job in drain(queue)]
        assert kinds == [FeedFetchJob, FeedFetchJob, ImageFetchJob]

    @pytest.mark.asyncio
    async def test_image_backlog_drained_in_batches(self):
        """Test 25 items with batch size 10 give 25 jobs from 4 queries."""
        queue = JobQueue(capacity=100)
        datastore = FakeDatastore(items=[item(n) for n in range(25)])
        scheduler = JobScheduler(queue, ShutdownSignal(), datastore, config(batch_size=10))

        summary = await scheduler.run_once()

        jobs = drain(queue)
        assert len(jobs) == 25
        assert jobs[0] == ImageFetchJob("https://example.com/0", "item0")
        assert datastore.queries == [10, 10, 10, 10]
        assert summary.image_jobs == 25
        assert summary.image_batches == 4

    @pytest.mark.asyncio
    async def test_short_batch_stops_when_not_draining(self):
        """Test a short batch ends the pump when draining until empty is off."""
        queue = JobQueue(capacity=100)
        datastore = FakeDatastore(items=[item(n) for n in range(25)])
        scheduler = JobScheduler(
            queue, ShutdownSignal(), datastore, config(batch_size=10, drain_until_empty=False)
        )

        await scheduler.run_once()

        assert len(drain(queue)) == 25
        assert datastore.queries == [10, 10, 10]

    @pytest.mark.asyncio
    async def test_profile_without_feed_skipped(self):
        """Test a profile with an empty feed URL produces no job."""
        queue = JobQueue(capacity=100)
        datastore = FakeDatastore(profiles=[profile("alice", feed_url=""), profile("bob")])
        scheduler = JobScheduler(queue, ShutdownSignal(), datastore, config())

        await scheduler.run_once()

        assert drain(queue) == [FeedFetchJob("https://example.com/rss", "bob")]

    @pytest.mark.asyncio
    async def test_datastore_error_ends_pump(self):
        """Test a failing profile query is logged and the pass continues."""
        queue = JobQueue(capacity=100)
        datastore = FakeDatastore(items=[item(1)])

        def broken():
            raise DatastoreError("database is locked")

        datastore.feed_driven_profiles = broken
        scheduler = JobScheduler(queue, ShutdownSignal(), datastore, config())

        summary = await scheduler.run_once()

        assert summary.feed_jobs == 0
        assert summary.image_jobs == 1

    @pytest.mark.asyncio
    async def test_rendezvous_hand_off(self):
        """Test a single pass completes against a synchronous hand-off queue."""
        queue = JobQueue(capacity=0)
        shutdown = ShutdownSignal()
        datastore = FakeDatastore(profiles=[profile("alice")], items=[item(1), item(2)])
        scheduler = JobScheduler(queue, shutdown, datastore, config())
        taken = []

        async def consumer():
            while True:
                job = await queue.get(shutdown)
                if job is None:
                    return
                taken.append(job)

        consumer_task = asyncio.create_task(consumer())
        summary = await asyncio.wait_for(scheduler.run_once(), timeout=2)
        shutdown.trigger()
        await asyncio.wait_for(consumer_task, timeout=2)

        assert summary.feed_jobs == 1
        assert summary.image_jobs == 2
        assert len(taken) == 3


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_nothing_enqueued_after_shutdown(self):
        """Test a pass started after shutdown enqueues nothing."""
        queue = JobQueue(capacity=100)
        shutdown = ShutdownSignal()
        datastore = FakeDatastore(profiles=[profile("alice")], items=[item(1)])
        scheduler = JobScheduler(queue, shutdown, datastore, config())

        shutdown.trigger()
        summary = await scheduler.run_once()

        assert queue.empty()
        assert summary.feed_jobs == 0
        assert summary.image_jobs == 0
        assert datastore.queries == []

    @pytest.mark.asyncio
    async def test_shutdown_during_batch(self):
        """Test no job from a batch is enqueued once shutdown is requested."""
        queue = JobQueue(capacity=100)
        shutdown = ShutdownSignal()
        datastore = FakeDatastore(items=[item(n) for n in range(25)])
        datastore.on_query = shutdown.trigger
        scheduler = JobScheduler(queue, shutdown, datastore, config())

        summary = await scheduler.run_once()

        assert queue.empty()
        assert summary.image_jobs == 0
        assert datastore.queries == [10]

    @pytest.mark.asyncio
    async def test_blocked_enqueue_released(self):
        """Test a pump blocked on a full queue returns once shutdown is requested."""
        queue = JobQueue(capacity=1)
        shutdown = ShutdownSignal()
        datastore = FakeDatastore(profiles=[profile("a"), profile("b"), profile("c")])
        scheduler = JobScheduler(queue, shutdown, datastore, config())

        pump = asyncio.create_task(scheduler.pump_feeds())
        await asyncio.sleep(0.05)
        assert not pump.done()

        shutdown.trigger()
        assert await asyncio.wait_for(pump, timeout=1) == 1
        assert queue.qsize() == 1


class TestContinuousMode:
    """Tests for continuous mode."""

    @pytest.mark.asyncio
    async def test_run_returns_on_shutdown(self):
        """Test run stops its timers and returns after shutdown."""
        shutdown = ShutdownSignal()
        scheduler = JobScheduler(JobQueue(capacity=10), shutdown, FakeDatastore(), config())

        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.05)
        assert scheduler.is_running is True

        shutdown.trigger()
        await asyncio.wait_for(runner, timeout=2)
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_first_pump_after_one_interval(self):
        """Test pumps fire on their interval, not immediately at start."""
        queue = JobQueue(capacity=10)
        shutdown = ShutdownSignal()
        datastore = FakeDatastore(profiles=[profile("alice")], items=[item(1)])
        scheduler = JobScheduler(queue, shutdown, datastore, config(interval=1))

        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.3)
        assert queue.empty()

        await asyncio.sleep(1.2)
        shutdown.trigger()
        await asyncio.wait_for(runner, timeout=2)

        jobs = drain(queue)
        assert FeedFetchJob("https://example.com/rss", "alice") in jobs
        assert ImageFetchJob("https://example.com/1", "item1") in jobs

    @pytest.mark.asyncio
    async def test_run_with_shutdown_already_set(self):
        """Test run returns immediately if shutdown was already requested."""
        shutdown = ShutdownSignal()
        shutdown.trigger()
        scheduler = JobScheduler(JobQueue(capacity=1), shutdown, FakeDatastore(), config())

        await asyncio.wait_for(scheduler.run(), timeout=1)

        assert scheduler.is_running is False
