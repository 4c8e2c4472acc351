"""
Entry point for `python -m media_tracker` and the `media-tracker` script.

Application errors are rendered as a panel with suggestions instead of a
traceback; run with -vv to get the traceback in the log as well.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from media_tracker.cli.app import app
from media_tracker.cli.formatters import format_error_with_suggestions
from media_tracker.exceptions import MediaTrackerError, StorageSelectionCancelled


def main() -> None:
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    log = logging.getLogger("media_tracker")
    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        sys.exit(130)
    except StorageSelectionCancelled as e:
        console.print(f"[yellow]⚠️  {e}[/yellow]")
        sys.exit(1)
    except MediaTrackerError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
