"""Broadcast-once cancellation signal.

One ShutdownSignal is created by the daemon and shared by the scheduler and
every worker. Triggering it is idempotent and permanent; loops observe it
only at their iteration boundaries, so work already in flight completes.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class ShutdownSignal:
    """A single-use shutdown flag that can be awaited."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_set(self) -> bool:
        """Whether shutdown has been requested."""
        return self._event.is_set()

    def trigger(self) -> None:
        """Request shutdown. Calling it again has no effect."""
        if not self._event.is_set():
            logger.info("Shutdown signalled")
            self._event.set()

    async def wait(self) -> None:
        """Wait until shutdown is requested."""
        await self._event.wait()
