"""Daemon module for the placetime fetcher.

This module runs the scheduler and worker pool as a long-lived service
with graceful shutdown on SIGTERM/SIGINT.
"""

from placetime_fetcher.daemon.service import FetcherDaemon, run_daemon

__all__ = [
    "FetcherDaemon",
    "run_daemon",
]
