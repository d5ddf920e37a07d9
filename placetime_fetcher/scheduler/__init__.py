"""Job scheduling and execution.

The scheduler periodically turns datastore state into feed and image jobs,
hands them through a bounded queue to a fixed pool of workers, and stops
cooperatively when the shared shutdown signal is triggered.
"""

from placetime_fetcher.scheduler.job_executor import ExecutionResult, JobExecutor
from placetime_fetcher.scheduler.job_queue import JobQueue
from placetime_fetcher.scheduler.job_scheduler import JobScheduler, PumpSummary
from placetime_fetcher.scheduler.jobs import FeedFetchJob, ImageFetchJob, Job
from placetime_fetcher.scheduler.shutdown import ShutdownSignal
from placetime_fetcher.scheduler.worker_pool import WorkerPool

__all__ = [
    "ExecutionResult",
    "FeedFetchJob",
    "ImageFetchJob",
    "Job",
    "JobExecutor",
    "JobQueue",
    "JobScheduler",
    "PumpSummary",
    "ShutdownSignal",
    "WorkerPool",
]
