"""
Functions for formatting and displaying data in the console using Rich.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from media_tracker.models.item import MediaItem
from media_tracker.storage.handle_cache import CachedHandleRecord

SENSITIVE_KEYS = ("drive_access_token", "omdbApiKey")


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "NotConnectedError": [
            "• No storage location is connected.",
            "• Run `media-tracker connect local <DIR>` or `media-tracker connect drive`.",
        ],
        "PermissionDeniedError": [
            "• Access to the storage directory was not granted.",
            "• Re-run the command and allow access when asked, or pass --yes.",
            "• Check the directory is writable by your user.",
        ],
        "StorageSelectionCancelled": [
            "• No storage location was chosen.",
            "• Run the connect command again to pick one.",
        ],
        "DriveAPIError": [
            "• Google Drive rejected the request or is unreachable.",
            "• Your access token may have expired. Run `media-tracker connect drive`"
            " with a fresh token.",
            "• Please try again in a few minutes.",
        ],
        "StorageError": [
            "• The storage backend or the local handle cache failed.",
            "• Run `media-tracker status` to inspect the current connection.",
        ],
        "ConfigurationError": [
            "• Check the values in your config.ini file.",
            "• Run `media-tracker status` to see where it lives.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def _display_value(key: str, value: Any) -> str:
    if key in SENSITIVE_KEYS and value:
        return "[hidden]"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ", ".join(map(str, value))
    return str(value)


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the application configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {escape(_display_value(key, value))}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_settings_table(settings: dict[str, Any], source: str):
    """Displays the effective settings."""
    console = Console()
    table = Table(
        title=f"Settings ({source})",
        box=box.ROUNDED,
        title_style="bold cyan",
        header_style="bold magenta",
    )
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for key in sorted(settings):
        table.add_row(key, escape(_display_value(key, settings[key])))
    console.print(table)


def print_status_table(
    config_path: Path,
    storage_type: str,
    storage_info: str | None,
    record: CachedHandleRecord | None,
    adapters: list[dict[str, Any]],
):
    """Displays the storage connection summary."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Config File:", str(config_path))
    table.add_row("Storage Type:", storage_type or "[dim]not set[/dim]")
    if storage_info:
        table.add_row("Connection:", f"[green]✓ {escape(storage_info)}[/green]")
    elif record:
        table.add_row("Connection:", "[yellow]Access must be approved again[/yellow]")
    else:
        table.add_row("Connection:", "[yellow]✗ Not connected[/yellow]")

    if record:
        remembered = datetime.fromtimestamp(record.timestamp / 1000)
        table.add_row(
            "Remembered Directory:",
            f"{escape(record.name)} [dim](since {remembered:%Y-%m-%d %H:%M})[/dim]",
        )

    backends = ", ".join(
        f"{a['name']} ({a['type']})" + ("" if a["supported"] else " [dim]unsupported[/dim]")
        for a in adapters
    )
    table.add_row("Backends:", backends)

    console.print(
        Panel(table, title="[bold]Storage Status[/bold]", border_style="cyan", expand=False)
    )


def print_items_table(items: list[MediaItem]):
    """Displays media records, newest first."""
    console = Console()
    if not items:
        console.print("[yellow]No records found.[/yellow]")
        return

    table = Table(
        title=f"Media Records ({len(items)})",
        box=box.ROUNDED,
        title_style="bold cyan",
        header_style="bold magenta",
    )
    table.add_column("Title", style="bold")
    table.add_column("Type")
    table.add_column("Creator")
    table.add_column("Status")
    table.add_column("Rating", justify="right")
    table.add_column("Added", style="dim")
    table.add_column("File", style="dim")

    for item in items:
        table.add_row(
            escape(item.title),
            item.type,
            escape(item.creator),
            item.effective_status,
            "" if item.rating is None else f"{item.rating:g}",
            item.date_added,
            escape(item.filename or ""),
        )
    console.print(table)
