"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from media_tracker import __version__
from media_tracker.core.library import MediaLibrary
from media_tracker.core.settings import LOCAL_SETTING_KEYS, SettingsService
from media_tracker.exceptions import NotConnectedError, StorageError
from media_tracker.models.config import AppConfig
from media_tracker.storage.adapter import StorageAdapter, StorageFactory
from media_tracker.storage.config_manager import CONFIG_FILENAME, ConfigManager
from media_tracker.storage.drive_cache import DriveItemCache
from media_tracker.storage.handle_cache import HandleCache
from media_tracker.storage.handles import READWRITE, StorageHandle
from media_tracker.storage.local import LocalAdapter
from media_tracker.storage.local_settings import LocalSettingsStore
from media_tracker.storage.remote import RemoteDriveAdapter

from .formatters import (
    print_config,
    print_items_table,
    print_settings_table,
    print_status_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("media_tracker")

app = typer.Typer(
    name="media-tracker",
    help=(
        "Track books and movies as markdown files in a local directory or in"
        " Google Drive. Use 'media-tracker <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
connect_app = typer.Typer(help="Connect a storage location.", add_completion=False)
config_app = typer.Typer(help="Show or change settings.", add_completion=False)
app.add_typer(connect_app, name="connect")
app.add_typer(config_app, name="config")

TRUE_VALUES = ("true", "1", "yes", "on")


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "media-tracker"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / CONFIG_FILENAME


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """Markdown Media Tracker CLI"""
    if version:
        console.print(f"[bold]media-tracker[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("media_tracker").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _make_prompter(assume_yes: bool):
    def prompter(handle: StorageHandle, mode: str) -> bool:
        if assume_yes:
            return True
        verb = "read and write" if mode == READWRITE else "read"
        return typer.confirm(f"Allow media-tracker to {verb} files in '{handle.name}'?")

    return prompter


def _build_adapter(
    config: AppConfig,
    cache: HandleCache,
    assume_yes: bool = False,
    token: str | None = None,
    directory: Path | None = None,
) -> StorageAdapter:
    """Creates the adapter for the configured storage type."""
    access_token = token or config.drive_access_token
    return StorageFactory.create_adapter(
        config.storage_type or None,
        adapter_options={
            LocalAdapter.storage_type: {
                "handle_cache": cache,
                "directory_picker": (lambda: directory) if directory else None,
                "prompter": _make_prompter(assume_yes),
            },
            RemoteDriveAdapter.storage_type: {
                "token_provider": (lambda: access_token) if access_token else None,
                "folder_name": config.drive_folder_name,
                "item_cache": DriveItemCache(CONFIG_DIR),
            },
        },
    )


async def _open_storage(
    config: AppConfig,
    cache: HandleCache,
    assume_yes: bool,
    interactive: bool = True,
    strict: bool = True,
) -> StorageAdapter:
    """
    Reconnects to the configured storage location.

    The returned adapter may be disconnected, e.g. when no location has been
    chosen yet or access to a remembered directory was not granted again.
    With strict=False, a drive that cannot be reached is reported in the log
    instead of raising.
    """
    adapter = _build_adapter(config, cache, assume_yes)
    if isinstance(adapter, LocalAdapter):
        await adapter.restore_connection(request_if_needed=interactive)
    elif isinstance(adapter, RemoteDriveAdapter) and config.drive_access_token:
        try:
            await adapter.select_storage()
        except StorageError as e:
            if strict:
                raise
            log.warning(f"Google Drive is unreachable: {e}")
    return adapter


async def _close(adapter: StorageAdapter | None, cache: HandleCache) -> None:
    if isinstance(adapter, RemoteDriveAdapter):
        await adapter.close()
    await cache.close()


def _load_config(cli_options: dict[str, Any] | None = None) -> AppConfig:
    return ConfigManager(CONFIG_FILE).load_config(cli_options)


def _parse_setting(key: str, raw: str) -> Any:
    if key == "halfStarsEnabled":
        return raw.strip().lower() in TRUE_VALUES
    return raw


@connect_app.command(name="local")
def connect_local(
    path: Path = typer.Argument(..., help="Directory that holds your markdown files."),
):
    """Use a local directory as the storage location."""

    async def _connect_async():
        cache = HandleCache(CONFIG_DIR)
        config = _load_config({"storage_type": LocalAdapter.storage_type})
        adapter = _build_adapter(config, cache, assume_yes=True, directory=path)
        service = SettingsService(LocalSettingsStore(CONFIG_DIR))
        try:
            handle = await adapter.select_storage()
            # Bring the fast local store in line with the directory's settings.
            settings = await service.load_all_settings(adapter)
            await service.save_all_settings(None, settings)
        finally:
            await _close(adapter, cache)

        ConfigManager(CONFIG_FILE).save_config({"storage_type": LocalAdapter.storage_type})
        console.print(f"[green]✓ Connected to local directory '{handle.name}'.[/green]")

    asyncio.run(_connect_async())


@connect_app.command(name="drive")
def connect_drive(
    token: str | None = typer.Option(
        None,
        "--token",
        "-t",
        help="OAuth access token with the drive.file scope.",
    ),
    folder: str | None = typer.Option(
        None, "--folder", help="Name of the app folder in your drive."
    ),
):
    """Use a Google Drive folder as the storage location."""
    if not token:
        token = typer.prompt("Google Drive access token", hide_input=True)

    async def _connect_async():
        cache = HandleCache(CONFIG_DIR)
        config = _load_config(
            {
                "storage_type": RemoteDriveAdapter.storage_type,
                "drive_folder_name": folder,
            }
        )
        adapter = _build_adapter(config, cache, token=token)
        try:
            await adapter.select_storage()
            info = adapter.get_storage_info()
        finally:
            await _close(adapter, cache)

        ConfigManager(CONFIG_FILE).save_config(
            {
                "storage_type": RemoteDriveAdapter.storage_type,
                "drive_folder_name": config.drive_folder_name,
                "drive_access_token": token,
            }
        )
        console.print(f"[green]✓ Connected to {info}.[/green]")

    asyncio.run(_connect_async())


@app.command()
def disconnect():
    """Forget the current storage location."""

    async def _disconnect_async():
        cache = HandleCache(CONFIG_DIR)
        config = _load_config()
        adapter = _build_adapter(config, cache)
        try:
            if isinstance(adapter, RemoteDriveAdapter) and config.drive_access_token:
                try:
                    await adapter.select_storage()
                except StorageError as e:
                    log.warning(f"Could not reach Google Drive to revoke access: {e}")
            await adapter.disconnect()
        finally:
            await _close(adapter, cache)

        ConfigManager(CONFIG_FILE).save_config(
            {"storage_type": "", "drive_access_token": ""}
        )
        console.print("[green]✓ Disconnected.[/green]")

    asyncio.run(_disconnect_async())


@app.command()
def status():
    """Show the configured storage location and whether it is reachable."""

    async def _status_async():
        cache = HandleCache(CONFIG_DIR)
        config = _load_config()
        adapter = None
        try:
            adapter = await _open_storage(config, cache, False, interactive=False, strict=False)
            record = await cache.get_record()
            info = adapter.get_storage_info()
        finally:
            await _close(adapter, cache)

        print_status_table(
            CONFIG_FILE,
            config.storage_type,
            info,
            record,
            StorageFactory.available_adapters(),
        )

    asyncio.run(_status_async())


@config_app.command(name="show")
def config_show(
    yes: bool = typer.Option(False, "--yes", "-y", help="Grant directory access."),
):
    """Show the effective settings and the application config file."""

    async def _show_async():
        cache = HandleCache(CONFIG_DIR)
        config = _load_config()
        adapter = None
        try:
            adapter = await _open_storage(config, cache, yes)
            service = SettingsService(LocalSettingsStore(CONFIG_DIR))
            settings = await service.effective_settings(adapter)
            source = adapter.get_storage_info() or "local only"
        finally:
            await _close(adapter, cache)

        print_config(CONFIG_FILE, config.model_dump(exclude={"config_path"}))
        print_settings_table(settings, source)

    asyncio.run(_show_async())


@config_app.command(name="get")
def config_get(
    key: str = typer.Argument(..., help="Setting name, e.g. cardSize."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Grant directory access."),
):
    """Print a single effective setting."""

    async def _get_async():
        cache = HandleCache(CONFIG_DIR)
        config = _load_config()
        adapter = None
        try:
            adapter = await _open_storage(config, cache, yes)
            service = SettingsService(LocalSettingsStore(CONFIG_DIR))
            settings = await service.effective_settings(adapter)
        finally:
            await _close(adapter, cache)

        if key not in settings:
            console.print(f"[red]✗ Unknown setting '{key}'.[/red]")
            raise typer.Exit(code=1)
        value = settings[key]
        console.print(str(value).lower() if isinstance(value, bool) else str(value))

    asyncio.run(_get_async())


@config_app.command(name="set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. cardSize."),
    value: str = typer.Argument(..., help="New value."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Grant directory access."),
):
    """Change a setting in the local store and the connected storage location."""

    async def _set_async():
        cache = HandleCache(CONFIG_DIR)
        config = _load_config()
        adapter = None
        try:
            adapter = await _open_storage(config, cache, yes)
            service = SettingsService(LocalSettingsStore(CONFIG_DIR))
            written = await service.update_setting(
                adapter, key, _parse_setting(key, value)
            )
            connected = adapter.is_connected()
        finally:
            await _close(adapter, cache)

        reason = "writing to storage failed" if connected else "storage is not connected"
        if written:
            where = "local settings and storage" if key in LOCAL_SETTING_KEYS else "storage"
            console.print(f"[green]✓ Saved '{key}' to {where}.[/green]")
        elif key in LOCAL_SETTING_KEYS:
            console.print(f"[yellow]Saved '{key}' to local settings only; {reason}.[/yellow]")
        else:
            console.print(
                f"[red]✗ '{key}' was not saved: it is kept only in storage and {reason}.[/red]"
            )
            raise typer.Exit(code=1)

    asyncio.run(_set_async())


@app.command()
def items(
    yes: bool = typer.Option(False, "--yes", "-y", help="Grant directory access."),
    refresh: bool = typer.Option(
        False, "--refresh", help="Download every record again instead of using the cache."
    ),
):
    """List the media records in the connected storage location."""

    async def _items_async():
        cache = HandleCache(CONFIG_DIR)
        config = _load_config()
        adapter = None
        try:
            adapter = await _open_storage(config, cache, yes)
            if not adapter.is_connected():
                raise NotConnectedError("No storage location is connected.")
            if refresh and isinstance(adapter, RemoteDriveAdapter):
                removed = await adapter.clear_cache()
                log.info(f"Cleared {removed} cached drive records.")
            records = await MediaLibrary(adapter).load_items()
        finally:
            await _close(adapter, cache)

        print_items_table(records)

    asyncio.run(_items_async())
