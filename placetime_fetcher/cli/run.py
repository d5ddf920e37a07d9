"""Placetime run command - Start the scheduler and worker pool."""

import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from placetime_fetcher.cli.exit_codes import ExitCode
from placetime_fetcher.config import LoggingConfig

app = typer.Typer(help="Start the fetcher: poll feeds and fetch item images.")
console = Console()


def _setup_logging(
    logging_config: LoggingConfig,
    verbose: bool,
    keep_existing: bool = False,
) -> None:
    """Set up logging from the configuration.

    When the global logging options were used, their handlers and level are
    kept and only the configured log file is added.

    Args:
        logging_config: Level, format and optional file from the config
        verbose: Force DEBUG level logging
        keep_existing: Keep the handlers set up by the global options
    """
    if keep_existing:
        if logging_config.file:
            logging_config.file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(logging_config.file)
            file_handler.setFormatter(logging.Formatter(logging_config.format))
            logging.getLogger().addHandler(file_handler)
        if verbose:
            logging.getLogger().setLevel(logging.DEBUG)
        return

    level = logging.DEBUG if verbose else getattr(logging, logging_config.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if logging_config.file:
        logging_config.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(logging_config.file))

    logging.basicConfig(
        level=level,
        format=logging_config.format,
        handlers=handlers,
        force=True,
    )


@app.callback(invoke_without_command=True)
def run(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    once: bool = typer.Option(
        False,
        "--once",
        help="Run a single scheduling pass, wait for its jobs, then exit.",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        help="Number of concurrent workers (overrides the config).",
        min=1,
        max=64,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging.",
    ),
) -> None:
    """Start the fetcher.

    This command:
    - Polls every feed-driven profile's feed and stores its items
    - Finds, crops and stores an image for items that lack one
    - Runs until SIGTERM/SIGINT, finishing in-flight jobs before exiting

    Example:
        placetime-fetcher run --config /etc/placetime.conf
        placetime-fetcher run --once --workers 10
    """
    from placetime_fetcher.config import (
        check_environment,
        ensure_directories,
        load_config,
        validate_config,
    )
    from placetime_fetcher.daemon.service import run_daemon
    from placetime_fetcher.exceptions import ConfigurationError, DatastoreError
    from placetime_fetcher.main import logging_overridden

    try:
        config = load_config(config_file)
        if workers is not None:
            config = replace(config, fetcher=replace(config.fetcher, workers=workers))
        check_environment(config)
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)

    problems = validate_config(config)
    for problem in problems:
        colour = "red" if problem.severity == "error" else "yellow"
        console.print(f"[{colour}]{escape(str(problem))}[/{colour}]")
    if any(p.severity == "error" for p in problems):
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)

    ensure_directories(config)
    _setup_logging(config.logging, verbose, keep_existing=logging_overridden())

    mode = "single pass" if once else "continuous"
    console.print(f"[bold green]Starting placetime fetcher ({mode})...[/bold green]")
    if verbose:
        console.print(f"Config: {config.source or 'defaults'}")
        console.print(f"Workers: {config.fetcher.workers}")
        console.print(f"Image path: {config.image.path}")
        console.print(f"Datastore: {config.datastore.url}")

    try:
        summary = asyncio.run(run_daemon(config, once=once))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(code=ExitCode.CANCELLED)
    except DatastoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=ExitCode.STORAGE_ERROR)

    if summary is not None:
        console.print(
            f"[green]✓[/green] Queued {summary.feed_jobs} feed jobs and "
            f"{summary.image_jobs} image jobs"
        )
    console.print("[dim]Fetcher stopped[/dim]")
