"""Placetime db command - Datastore setup and inspection."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from placetime_fetcher.cli.exit_codes import ExitCode

app = typer.Typer(help="Manage the item datastore.")
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


def _open_datastore(config_file: Optional[Path]):
    from placetime_fetcher.config import ensure_directories, load_config
    from placetime_fetcher.database.datastore import Datastore
    from placetime_fetcher.exceptions import ConfigurationError

    try:
        config = load_config(config_file)
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)

    ensure_directories(config)
    return Datastore.from_config(config)


@app.command("init")
def init_db(config_file: Optional[Path] = ConfigOption) -> None:
    """Create the datastore tables.

    Example:
        placetime-fetcher db init
    """
    from placetime_fetcher.exceptions import DatastoreError

    datastore = _open_datastore(config_file)
    try:
        datastore.create_tables()
    except DatastoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=ExitCode.STORAGE_ERROR)
    finally:
        datastore.dispose()

    console.print("[green]✓[/green] Datastore initialized")


@app.command("add-profile")
def add_profile(
    pid: str = typer.Argument(..., help="Profile ID."),
    feed_url: str = typer.Argument(..., help="Feed URL the profile's items come from."),
    name: str = typer.Option("", "--name", help="Display name (default: the ID)."),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Register a feed-driven profile.

    Example:
        placetime-fetcher db add-profile bbcnews https://feeds.bbci.co.uk/news/rss.xml
    """
    from placetime_fetcher.exceptions import DatastoreError

    datastore = _open_datastore(config_file)
    try:
        datastore.add_profile(pid, feed_url=feed_url, name=name)
    except DatastoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=ExitCode.STORAGE_ERROR)
    finally:
        datastore.dispose()

    console.print(f"[green]✓[/green] Profile added: {pid}")
    console.print(f"  Feed: {feed_url}")


@app.command("items")
def list_items(
    pid: str = typer.Argument(..., help="Profile ID."),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of items to show.", min=1),
    json_output: bool = typer.Option(False, "--json", help="Output items as JSON."),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Show a profile's most recent items.

    Example:
        placetime-fetcher db items bbcnews --limit 5
    """
    from placetime_fetcher.exceptions import DatastoreError

    datastore = _open_datastore(config_file)
    try:
        items = datastore.items_for_profile(pid, limit)
        backlog = datastore.backlog_size()
    except DatastoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=ExitCode.STORAGE_ERROR)
    finally:
        datastore.dispose()

    if json_output:
        console.print_json(json.dumps([item.to_dict() for item in items]))
        return

    if not items:
        console.print(f"[yellow]No items for {pid}[/yellow]")
        return

    table = Table(title=f"Items of {pid}")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Image", style="green")

    for item in items:
        table.add_row(item.id[:12], escape(item.text or ""), item.image or "[dim]-[/dim]")

    console.print(table)
    console.print(f"[dim]{backlog} items in the datastore still need an image[/dim]")
