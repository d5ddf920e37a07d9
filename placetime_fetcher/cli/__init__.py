"""CLI command modules for the placetime fetcher."""

from placetime_fetcher.cli import config, db, feeds, run
from placetime_fetcher.cli.exit_codes import ExitCode

__all__ = [
    # Command modules
    "config",
    "db",
    "feeds",
    "run",
    # Exit codes
    "ExitCode",
]
