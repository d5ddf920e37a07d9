"""Fetcher service lifecycle.

This module wires the fetcher together and runs it:
- Building the datastore, job executor, queue, worker pool and scheduler
- Continuous and single-pass operation
- Signal handling for graceful shutdown
"""

import asyncio
import logging
import signal
from typing import Optional

from placetime_fetcher.config import PlacetimeConfig
from placetime_fetcher.database.datastore import Datastore
from placetime_fetcher.scheduler.job_executor import JobExecutor
from placetime_fetcher.scheduler.job_queue import JobQueue
from placetime_fetcher.scheduler.job_scheduler import JobScheduler, PumpSummary
from placetime_fetcher.scheduler.shutdown import ShutdownSignal
from placetime_fetcher.scheduler.worker_pool import Executor, WorkerPool

logger = logging.getLogger(__name__)


class FetcherDaemon:
    """Orchestrates the scheduler and the worker pool.

    All components share one ShutdownSignal. Requesting shutdown stops the
    scheduler from producing jobs and the workers from taking new ones;
    jobs already executing run to completion.

    Attributes:
        _config: Fetcher configuration
        _datastore: Item storage (built from the configuration if not given)
        _executor: Job executor (built from the configuration if not given)
        _shutdown: Shared shutdown signal
        _queue: Job queue between scheduler and workers
        _pool: Worker pool
        _scheduler: Job scheduler
        _running: Whether the daemon is running

    Example:
        daemon = FetcherDaemon(config)

        await daemon.start()
        await daemon.run_until_shutdown()
        await daemon.stop()
    """

    def __init__(
        self,
        config: PlacetimeConfig,
        datastore: Optional[Datastore] = None,
        executor: Optional[Executor] = None,
    ):
        """Initialize the daemon.

        Args:
            config: Fetcher configuration
            datastore: Datastore to use instead of one built from config
            executor: Job executor to use instead of one built from config
        """
        self._config = config
        self._datastore = datastore
        self._owns_datastore = datastore is None
        self._executor = executor
        self._shutdown = ShutdownSignal()
        self._queue: Optional[JobQueue] = None
        self._pool: Optional[WorkerPool] = None
        self._scheduler: Optional[JobScheduler] = None
        self._running = False

    async def start(self) -> None:
        """Build the components and start the workers."""
        if self._running:
            logger.warning("Daemon already running")
            return

        logger.info("Starting fetcher daemon...")
        fetcher = self._config.fetcher

        if self._datastore is None:
            self._datastore = Datastore.from_config(self._config)
        if self._executor is None:
            self._executor = JobExecutor.from_config(self._config, self._datastore)

        self._queue = JobQueue(capacity=fetcher.queue_capacity)
        self._pool = WorkerPool(
            self._queue,
            self._shutdown,
            self._executor,
            size=fetcher.workers,
        )
        self._scheduler = JobScheduler(
            self._queue,
            self._shutdown,
            self._datastore,
            fetcher,
        )

        self._pool.start()
        self._running = True
        logger.info(
            f"Fetcher daemon started ({fetcher.workers} workers, "
            f"queue capacity {fetcher.queue_capacity})"
        )

    async def run_until_shutdown(self) -> None:
        """Run the scheduler continuously until shutdown is requested."""
        if self._scheduler is None:
            raise RuntimeError("Daemon not started")
        await self._scheduler.run()

    async def run_once(self) -> PumpSummary:
        """Run a single scheduling pass and wait for its jobs to finish.

        Returns early, without waiting for queued jobs, if shutdown is
        requested meanwhile.

        Returns:
            Number of jobs enqueued by each pump
        """
        if self._scheduler is None or self._queue is None:
            raise RuntimeError("Daemon not started")

        summary = await self._scheduler.run_once()
        logger.info(
            f"Single pass queued {summary.feed_jobs} feed jobs and "
            f"{summary.image_jobs} image jobs"
        )
        if await self._queue.join(self._shutdown):
            logger.info("All jobs of the pass finished")
        return summary

    def request_shutdown(self) -> None:
        """Request graceful shutdown.

        This method is safe to call from signal handlers.
        """
        self._shutdown.trigger()

    async def stop(self, drain: bool = True) -> None:
        """Stop the daemon.

        Args:
            drain: Wait for executing jobs to finish before returning
        """
        if not self._running:
            return

        logger.info("Stopping fetcher daemon...")
        self.request_shutdown()

        if self._pool is not None and drain:
            await self._pool.join()

        if self._owns_datastore and self._datastore is not None:
            self._datastore.dispose()

        self._running = False
        logger.info("Fetcher daemon stopped")

    @property
    def is_running(self) -> bool:
        """Check if the daemon is running."""
        return self._running

    @property
    def shutdown_signal(self) -> ShutdownSignal:
        return self._shutdown

    @property
    def pool(self) -> Optional[WorkerPool]:
        return self._pool

    @property
    def scheduler(self) -> Optional[JobScheduler]:
        return self._scheduler


async def run_daemon(
    config: PlacetimeConfig,
    once: bool = False,
    drain: bool = True,
) -> Optional[PumpSummary]:
    """Run the fetcher with signal handling.

    SIGTERM and SIGINT request a graceful shutdown.

    Args:
        config: Fetcher configuration
        once: Run a single scheduling pass instead of running continuously
        drain: Wait for executing jobs on shutdown

    Returns:
        The pass summary in single-pass mode, None otherwise

    Example:
        asyncio.run(run_daemon(config, once=True))
    """
    daemon = FetcherDaemon(config)

    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        daemon.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda signum, frame: handle_signal(signal.Signals(signum)))

    try:
        await daemon.start()
        if once:
            return await daemon.run_once()
        await daemon.run_until_shutdown()
        return None
    finally:
        await daemon.stop(drain=drain)
