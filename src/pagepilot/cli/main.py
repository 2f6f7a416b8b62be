"""Main CLI application entry point."""

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pagepilot import __version__
from pagepilot.core.connection import DevToolsEndpoint
from pagepilot.core.launch import launch_chrome
from pagepilot.utils.config import ConfigLoader
from pagepilot.utils.exceptions import ConfigurationError, PagePilotError

console = Console()

app = typer.Typer(
    name="pagepilot",
    help="Developer utilities for the pagepilot browser automation engine.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"pagepilot v{__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Log protocol traffic and engine steps",
    ),
) -> None:
    """pagepilot - drive Chrome through the DevTools Protocol."""
    configure_logging(verbose)


@app.command()
def launch(
    headless: bool = typer.Option(
        False,
        "--headless",
        help="Run the browser without a window",
    ),
    port: int = typer.Option(
        0,
        "--port",
        "-p",
        help="Remote debugging port (0 lets the browser choose)",
    ),
) -> None:
    """Launch a browser with remote debugging and keep it running until Ctrl+C."""
    try:
        config = ConfigLoader.load()
        asyncio.run(_run_browser(headless, port, config))
    except KeyboardInterrupt:
        console.print("\n[dim]Browser stopped.[/dim]")
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(code=4) from e
    except PagePilotError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e


async def _run_browser(headless: bool, port: int, config) -> None:
    chrome = await launch_chrome(headless=headless, port=port, config=config)
    try:
        console.print(f"[green]Browser running on port {chrome.port}[/green]")
        console.print(f"[dim]Connect with Browser.connect(port={chrome.port})[/dim]")
        while chrome.process.poll() is None:
            await asyncio.sleep(0.5)
        console.print("[yellow]Browser exited.[/yellow]")
    finally:
        await chrome.stop()


@app.command()
def tabs(
    host: str | None = typer.Option(
        None,
        "--host",
        help="Debugging host (default: PAGEPILOT_HOST or localhost)",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        help="Debugging port (default: PAGEPILOT_PORT or 9222)",
    ),
) -> None:
    """List the page tabs of a running browser."""
    try:
        config = ConfigLoader.load()
        endpoint = DevToolsEndpoint(host or config.host, port or config.port)
        targets = asyncio.run(endpoint.list_targets())
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(code=4) from e
    except PagePilotError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e

    if not targets:
        console.print("[yellow]No page tabs open.[/yellow]")
        return

    table = Table(title=f"Tabs at {endpoint.base_url}")
    table.add_column("#", justify="right")
    table.add_column("Id")
    table.add_column("Title")
    table.add_column("URL")
    for index, target in enumerate(targets):
        table.add_row(str(index), target.id, target.title, target.url)
    console.print(table)


if __name__ == "__main__":
    app()
