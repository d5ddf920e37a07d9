"""Placetime feeds command - Inspect feeds without touching the datastore."""

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from placetime_fetcher.cli.exit_codes import ExitCode

app = typer.Typer(help="Inspect remote feeds.")
console = Console()


@app.callback()
def main() -> None:
    """Inspect remote feeds."""


@app.command("debug")
def debug_feed(
    url: str = typer.Argument(..., help="Feed URL to fetch."),
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Maximum number of entries to show.",
        min=1,
    ),
    timeout: float = typer.Option(
        30.0,
        "--timeout",
        "-t",
        help="Request timeout in seconds.",
    ),
) -> None:
    """Fetch a feed and show the items it would produce.

    Nothing is written to the datastore.

    Example:
        placetime-fetcher feeds debug https://example.com/rss
    """
    from placetime_fetcher.exceptions import FeedParseError, FeedTransportError
    from placetime_fetcher.feeds.source import FeedSource, content_id

    source = FeedSource(timeout=timeout)
    try:
        feed = source.fetch(url)
    except FeedTransportError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=ExitCode.NETWORK_ERROR)
    except FeedParseError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=ExitCode.FEED_ERROR)

    console.print(f"[bold]{feed.title or url}[/bold] ({len(feed.entries)} entries)")

    table = Table(show_header=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Published", no_wrap=True)
    table.add_column("Title")
    table.add_column("Link", style="dim", overflow="fold")

    for entry in feed.entries[:limit]:
        table.add_row(
            content_id(entry.native_id)[:12],
            entry.published.strftime("%Y-%m-%d %H:%M") if entry.published else "-",
            escape(entry.title) if entry.title else "[dim](untitled)[/dim]",
            entry.link,
        )

    console.print(table)
