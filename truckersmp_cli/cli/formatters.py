"""
Functions for formatting and displaying data in the console using Rich.
"""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from truckersmp_cli import __version__
from truckersmp_cli.core.sync_manager import SyncReport
from truckersmp_cli.models.version import ModVersionInfo
from truckersmp_cli.utils.formatting import (
    format_duration,
    format_size,
    summarize_paths,
)


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "MalformedManifestError": [
            "• The update server returned an unexpected file list.",
            "• The TruckersMP servers may be mid-release. Try again later.",
        ],
        "TransportError": [
            "• A network connection issue occurred.",
            "• The TruckersMP update servers might be temporarily unavailable.",
            "• Try again with fewer `--workers` or a longer `--timeout`.",
        ],
        "RetryBudgetExhaustedError": [
            "• Some files kept failing verification after every retry.",
            "• Run again with a higher `--retry-count`.",
            "• Use `--clean` to discard the local content and start over.",
        ],
        "SyncIncompleteError": [
            "• Retries were disabled. Run again without `--no-retry`.",
        ],
        "VerificationIOError": [
            "• A content file exists but could not be read.",
            "• Check the permissions of the content directory.",
            "• Make sure the game is not running and locking the files.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `truckersmp-cli init --force` to write a fresh default config.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)

    residual_paths = getattr(error, "residual_paths", None) or getattr(
        error, "paths", None
    )
    if residual_paths:
        content.add_row(Text("Files still inconsistent", style="bold yellow"))
        content.add_row(Text(summarize_paths(residual_paths)))

    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_summary_panel(report: SyncReport) -> None:
    """Prints the end-of-run summary."""
    console = Console()
    stats = report.stats
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")
    table.add_row("Files in working set:", str(len(report.working_set)))
    table.add_row("Downloaded:", f"[green]{stats.files_downloaded}[/green]")
    table.add_row("Download failures:", f"[red]{stats.files_failed}[/red]")
    table.add_row("Transferred:", format_size(stats.bytes_downloaded))
    table.add_row("Verification passes:", str(stats.verify_passes))
    table.add_row("Retries used:", str(stats.retries_used))
    table.add_row("Duration:", format_duration(stats.elapsed()))

    ok = not report.residual
    console.print(
        Panel(
            table,
            title="[bold green]✓ Sync Complete[/bold green]"
            if ok
            else "[bold red]✗ Sync Incomplete[/bold red]",
            border_style="green" if ok else "red",
            box=box.ROUNDED,
            expand=False,
        )
    )


def print_mod_version(info: ModVersionInfo) -> None:
    """Prints the mod version table."""
    console = Console()
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column(style="bold cyan")
    table.add_column()
    table.add_row("CLI version", __version__)
    table.add_row("Mod version", info.version)
    table.add_row("Mod stage", info.stage)
    table.add_row("Supported ETS2 game version", info.supported_ets2_version)
    table.add_row("Supported ATS game version", info.supported_ats_version)
    console.print(table)
