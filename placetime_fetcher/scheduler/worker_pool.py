"""Fixed-size pool of workers executing queued jobs.

Each worker is an asyncio task that repeatedly takes a job from the queue
and runs it on the pool's thread pool, since fetching and image work is
blocking I/O. At most ``size`` jobs execute at any instant. Workers check
the shutdown signal between jobs only: a job that has been taken is
always executed to completion.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Protocol

from placetime_fetcher.scheduler.job_queue import JobQueue
from placetime_fetcher.scheduler.jobs import Job
from placetime_fetcher.scheduler.shutdown import ShutdownSignal

logger = logging.getLogger(__name__)


class Executor(Protocol):
    """Anything that can run a job synchronously."""

    def execute(self, job: Job) -> object:
        ...


class WorkerPool:
    """Run jobs from a JobQueue with a fixed number of workers.

    Example:
        pool = WorkerPool(queue, shutdown, executor, size=5)
        pool.start()
        ...
        shutdown.trigger()
        await pool.join()
    """

    def __init__(
        self,
        queue: JobQueue,
        shutdown: ShutdownSignal,
        executor: Executor,
        size: int = 5,
    ) -> None:
        """Initialize the pool.

        Args:
            queue: Queue to take jobs from
            shutdown: Signal that stops the workers between jobs
            executor: Runs each job
            size: Number of workers

        Raises:
            ValueError: If size is less than 1
        """
        if size < 1:
            raise ValueError(f"Worker pool needs at least one worker, got {size}")

        self._queue = queue
        self._shutdown = shutdown
        self._executor = executor
        self._size = size
        self._threads: Optional[ThreadPoolExecutor] = None
        self._tasks: List[asyncio.Task] = []
        self._active = 0
        self._completed = 0
        self._failed = 0

    @property
    def size(self) -> int:
        return self._size

    @property
    def active_count(self) -> int:
        """Number of jobs executing right now."""
        return self._active

    @property
    def completed_count(self) -> int:
        """Number of jobs finished, successfully or not."""
        return self._completed

    @property
    def failed_count(self) -> int:
        """Number of jobs that raised an unexpected exception."""
        return self._failed

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Start the workers. Must be called from a running event loop."""
        if self._tasks:
            logger.warning("Worker pool already started")
            return

        self._threads = ThreadPoolExecutor(
            max_workers=self._size,
            thread_name_prefix="fetch-worker",
        )
        for worker_id in range(self._size):
            self._tasks.append(
                asyncio.create_task(self._worker(worker_id), name=f"fetch-worker-{worker_id}")
            )
        logger.info(f"Started {self._size} workers")

    async def join(self) -> None:
        """Wait for every worker to exit.

        Workers exit once shutdown has been requested and their current job
        (if any) is finished.
        """
        if not self._tasks:
            return

        await asyncio.gather(*self._tasks)
        self._tasks = []
        if self._threads is not None:
            self._threads.shutdown(wait=True)
            self._threads = None
        logger.info(f"Workers stopped after {self._completed} jobs ({self._failed} failed)")

    async def _worker(self, worker_id: int) -> None:
        logger.debug(f"Worker {worker_id} started")
        while not self._shutdown.is_set:
            job = await self._queue.get(self._shutdown)
            if job is None:
                break
            try:
                await self._run(worker_id, job)
            finally:
                self._queue.task_done()
        logger.debug(f"Worker {worker_id} exiting")

    async def _run(self, worker_id: int, job: Job) -> None:
        """Execute one job, logging anything it raises."""
        loop = asyncio.get_running_loop()
        self._active += 1
        logger.debug(f"Worker {worker_id} running {job.describe()}")
        try:
            await loop.run_in_executor(self._threads, self._executor.execute, job)
        except Exception as e:
            self._failed += 1
            logger.exception(f"Worker {worker_id} failed on {job.describe()}: {e}")
        finally:
            self._active -= 1
            self._completed += 1
