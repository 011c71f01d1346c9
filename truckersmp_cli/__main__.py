"""
Entry point for truckersmp-cli.

Runs the Typer app and turns errors that escape a command into a readable
report and an exit code.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from truckersmp_cli.cli.app import app
from truckersmp_cli.cli.formatters import (
    format_error_with_suggestions,
    print_summary_panel,
)
from truckersmp_cli.exceptions import SyncIncompleteError, TruckersMPCliError

log = logging.getLogger("truckersmp_cli")

EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def _use_utf8_streams() -> None:
    """Switches stdout and stderr to UTF-8."""
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass


def report_failure(error: Exception, console: Console) -> int:
    """
    Prints what went wrong and returns the process exit code.

    An incomplete sync first shows the run summary, then the error panel with
    the files that still do not match the manifest.
    """
    if isinstance(error, SyncIncompleteError):
        if error.report is not None:
            print_summary_panel(error.report)
        for path in error.residual_paths:
            log.debug(f"Inconsistent after sync: {path}")
        console.print(format_error_with_suggestions(error))
    elif isinstance(error, TruckersMPCliError):
        console.print(f"\n{format_error_with_suggestions(error)}")
    else:
        console.print(f"\n{format_error_with_suggestions(error, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=error)
    return EXIT_FAILURE


def main() -> None:
    if os.name == "nt":
        _use_utf8_streams()

    console = Console()
    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Update cancelled; run it again to resume.[/yellow]")
        sys.exit(EXIT_CANCELLED)
    except Exception as e:
        sys.exit(report_failure(e, console))


if __name__ == "__main__":
    main()
