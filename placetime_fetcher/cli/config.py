"""Placetime config command - Configuration inspection."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from placetime_fetcher.cli.exit_codes import ExitCode

app = typer.Typer(help="Inspect fetcher configuration.")
console = Console()

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to configuration file.",
    exists=True,
    dir_okay=False,
    resolve_path=True,
)


def _load(config_file: Optional[Path]):
    from placetime_fetcher.config import load_config
    from placetime_fetcher.exceptions import ConfigurationError

    try:
        return load_config(config_file)
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)


@app.command("show")
def show_config(config_file: Optional[Path] = ConfigOption) -> None:
    """Show the effective configuration.

    Example:
        placetime-fetcher config show
    """
    config = _load(config_file)

    console.print(f"[bold]Configuration[/bold] ({config.source or 'defaults'})")

    table = Table(show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    rows = [
        ("fetcher.workers", config.fetcher.workers),
        ("fetcher.queue_capacity", config.fetcher.queue_capacity),
        ("fetcher.request_timeout", config.fetcher.request_timeout),
        ("fetcher.user_agent", config.fetcher.user_agent),
        ("fetcher.feed.interval", config.fetcher.feed.interval),
        ("fetcher.image.interval", config.fetcher.image.interval),
        ("fetcher.image.batch_size", config.fetcher.image.batch_size),
        ("fetcher.image.drain_until_empty", config.fetcher.image.drain_until_empty),
        ("image.path", config.image.path),
        ("image.size", f"{config.image.width}x{config.image.height}"),
        ("image.claim_ttl", config.image.claim_ttl),
        ("datastore.url", config.datastore.url),
        ("logging.level", config.logging.level),
        ("logging.file", config.logging.file or "-"),
        ("data_dir", config.data_dir),
    ]
    for name, value in rows:
        table.add_row(name, str(value))

    console.print(table)


@app.command("validate")
def validate_config(config_file: Optional[Path] = ConfigOption) -> None:
    """Validate the effective configuration.

    Example:
        placetime-fetcher config validate
    """
    from placetime_fetcher.config import validate_config as do_validate

    config = _load(config_file)

    console.print("[bold]Validating configuration...[/bold]")
    console.print()

    all_passed = True
    for error in do_validate(config):
        if error.severity == "error":
            status = "[red]✗[/red]"
            all_passed = False
        else:
            status = "[yellow]![/yellow]"
        console.print(f"  {status} {escape(str(error))}")

    console.print()
    if all_passed:
        console.print("[green]Configuration is valid[/green]")
    else:
        console.print("[red]Configuration has errors[/red]")
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)
