"""Bounded FIFO of pending jobs between the scheduler and the worker pool.

With a capacity of 0 the queue is a rendezvous: ``put`` returns only once
a worker has taken the job, so the scheduler never runs ahead of the
workers. A positive capacity buffers that many jobs before ``put`` blocks.

Both ``put`` and ``get`` can be raced against a ShutdownSignal so neither
side stays blocked after shutdown has been requested.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from placetime_fetcher.scheduler.jobs import Job
from placetime_fetcher.scheduler.shutdown import ShutdownSignal

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A queued job and, in rendezvous mode, the future resolved when it is taken
_Entry = Tuple[Job, Optional["asyncio.Future[None]"]]


async def race_shutdown(
    operation: Callable[[], Awaitable[T]],
    shutdown: ShutdownSignal,
) -> Tuple[bool, Optional[T]]:
    """Run ``operation`` unless shutdown is requested first.

    If the operation and the shutdown complete together, the operation's
    result wins so that nothing it already did (such as removing an item
    from a queue) is lost.

    Args:
        operation: Factory for the awaitable to run
        shutdown: Signal to race against

    Returns:
        (True, result) if the operation completed, (False, None) otherwise
    """
    task = asyncio.ensure_future(operation())
    waiter = asyncio.ensure_future(shutdown.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
            await asyncio.wait({task})

    if task.cancelled():
        return False, None
    return True, task.result()


class JobQueue:
    """FIFO hand-off of jobs from the scheduler to the workers.

    Example:
        queue = JobQueue(capacity=0)
        await queue.put(job, shutdown)      # returns once a worker took it
        job = await queue.get(shutdown)     # None once shutdown is requested
    """

    def __init__(self, capacity: int = 0) -> None:
        """Initialize the queue.

        Args:
            capacity: Jobs buffered before put blocks (0 = synchronous hand-off)

        Raises:
            ValueError: If capacity is negative
        """
        if capacity < 0:
            raise ValueError(f"Queue capacity cannot be negative: {capacity}")
        self._capacity = capacity
        # In rendezvous mode a single slot holds the job being handed off
        self._queue: asyncio.Queue[_Entry] = asyncio.Queue(maxsize=capacity or 1)

    @property
    def capacity(self) -> int:
        """Configured capacity (0 for synchronous hand-off)."""
        return self._capacity

    @property
    def is_rendezvous(self) -> bool:
        return self._capacity == 0

    def qsize(self) -> int:
        """Number of jobs waiting to be taken."""
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    async def put(self, job: Job, shutdown: Optional[ShutdownSignal] = None) -> bool:
        """Enqueue a job, blocking while the queue is full.

        In rendezvous mode this also waits until a worker has taken the job.

        Args:
            job: Job to enqueue
            shutdown: If given, stop waiting once shutdown is requested

        Returns:
            True if the job was handed off, False if shutdown came first
        """
        if shutdown is None:
            await self._put(job)
            return True

        if shutdown.is_set:
            return False

        handed_off, _ = await race_shutdown(lambda: self._put(job), shutdown)
        if not handed_off:
            logger.debug(f"Shutdown before hand-off of {job.describe()}")
        return handed_off

    async def _put(self, job: Job) -> None:
        if not self.is_rendezvous:
            await self._queue.put((job, None))
            return

        taken: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        await self._queue.put((job, taken))
        await taken

    async def get(self, shutdown: Optional[ShutdownSignal] = None) -> Optional[Job]:
        """Take the next job, blocking while the queue is empty.

        Args:
            shutdown: If given, stop waiting once shutdown is requested

        Returns:
            The next job, or None if shutdown came first
        """
        if shutdown is None:
            entry = await self._queue.get()
        else:
            taken, entry = await race_shutdown(self._queue.get, shutdown)
            if not taken or entry is None:
                return None

        job, handoff = entry
        if handoff is not None and not handoff.done():
            handoff.set_result(None)
        return job

    def task_done(self) -> None:
        """Mark a job taken with get() as finished."""
        self._queue.task_done()

    async def join(self, shutdown: Optional[ShutdownSignal] = None) -> bool:
        """Wait until every enqueued job has been taken and finished.

        Args:
            shutdown: If given, stop waiting once shutdown is requested

        Returns:
            True if the queue drained, False if shutdown came first
        """
        if shutdown is None:
            await self._queue.join()
            return True
        drained, _ = await race_shutdown(self._queue.join, shutdown)
        return drained
