"""Utility functions for the Docstore Server CLI."""

import asyncio

from rich.console import Console
from rich.table import Table

from docstore_server.core.session import ConnectionSession
from docstore_server.mcp_server.dispatch import Dispatcher
from docstore_server.models.config import ServerSettings
from docstore_server.models.results import DispatchReply
from docstore_server.operations import registry

console = Console()


def print_table(
    data: list[dict], title: str = "", headers: list[str] | None = None
) -> None:
    """Print data as a rich table."""
    if not data:
        console.print(f"[yellow]No {title.lower()} found.[/yellow]")
        return

    table = Table(title=title)
    headers = headers or list(data[0].keys())
    for header in headers:
        table.add_column(header.replace("_", " ").title())
    for row in data:
        table.add_row(*[str(row.get(header, "")) for header in headers])

    console.print(table)


def echo_success(message: str) -> None:
    """Print success message."""
    console.print(f"[green]✓ {message}[/green]")


def echo_error(message: str) -> None:
    """Print error message."""
    console.print(f"[red]✗ {message}[/red]")


def echo_warning(message: str) -> None:
    """Print warning message."""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def echo_info(message: str) -> None:
    """Print info message."""
    console.print(f"[blue]ℹ {message}[/blue]")


async def dispatch_once(
    settings: ServerSettings,
    name: str,
    arguments: dict,
    session: ConnectionSession | None = None,
) -> DispatchReply:
    """Dispatch a single call on a fresh session and always close it."""
    session = session or ConnectionSession.from_settings(settings)
    dispatcher = Dispatcher(session, registry, settings)
    try:
        return await dispatcher.dispatch(name, arguments)
    finally:
        await session.close()


def run_once(settings: ServerSettings, name: str, arguments: dict) -> DispatchReply:
    return asyncio.run(dispatch_once(settings, name, arguments))
