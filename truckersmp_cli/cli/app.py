"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from truckersmp_cli import __version__
from truckersmp_cli.api.client import TruckersMPClient
from truckersmp_cli.core.sync_manager import SyncOrchestrator
from truckersmp_cli.exceptions import TruckersMPCliError
from truckersmp_cli.models.config import SyncProfile
from truckersmp_cli.storage.config_manager import ConfigManager
from truckersmp_cli.utils.path import get_config_dir

from .formatters import (
    format_error_with_suggestions,
    print_mod_version,
    print_summary_panel,
)
from .progress_manager import RichProgressSink

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
log = logging.getLogger("truckersmp_cli")

app = typer.Typer(
    name="truckersmp-cli",
    help="Keeps the TruckersMP mod files up to date.",
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


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
    """TruckersMP CLI"""
    if version:
        console.print(f"[bold]truckersmp-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    logging.getLogger("truckersmp_cli").setLevel("DEBUG" if verbose >= 2 else "INFO")

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config without asking."
    ),
):
    """Write a configuration file with default values."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    ConfigManager(CONFIG_FILE).save_new_config()
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")


@app.command(name="update")
def update_command(
    game: SyncProfile | None = typer.Option(
        None, "-g", "--game", help="The game whose mod files should be updated."
    ),
    clean: bool = typer.Option(
        False,
        "-c",
        "--clean",
        help="Delete the mod files directory and download everything again.",
    ),
    no_retry: bool = typer.Option(
        False,
        "-n",
        "--no-retry",
        help="Do not re-download files that fail verification.",
    ),
    retry_count: int | None = typer.Option(
        None,
        "-r",
        "--retry-count",
        help="Number of re-download rounds before giving up (default 3).",
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous transfers (default 8)."
    ),
    content_dir: str | None = typer.Option(
        None, "--content-dir", help="Where the mod files are stored."
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Seconds without data before a file is abandoned (0 disables).",
    ),
):
    """Download and verify the TruckersMP mod files."""
    cli_options = {
        key: value
        for key, value in {
            "profile": game,
            "retry_count": retry_count,
            "concurrency_limit": workers,
            "content_dir": content_dir,
            "fetch_timeout": timeout,
        }.items()
        if value is not None
    }
    cli_options["clean"] = clean
    if no_retry:
        cli_options["retry_enabled"] = False

    config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    log.debug(f"Loaded configuration: {config!r}")

    async def _update_async():
        async with TruckersMPClient(
            manifest_url=config.manifest_url,
            version_url=config.version_url,
            max_workers=config.concurrency_limit,
            read_timeout=config.effective_fetch_timeout,
        ) as client:
            with RichProgressSink(console) as progress:
                orchestrator = SyncOrchestrator(config, client, progress=progress)
                return await orchestrator.run()

    console.print(
        f"[bold cyan]🚚 Updating TruckersMP mod files for "
        f"{config.profile.display_name}...[/bold cyan]"
    )
    print_summary_panel(asyncio.run(_update_async()))


@app.command(name="mod-version")
def mod_version_command():
    """Show the current TruckersMP mod version and supported game versions."""
    config = ConfigManager(CONFIG_FILE).load_config()

    async def _fetch():
        async with TruckersMPClient(version_url=config.version_url) as client:
            return await client.fetch_mod_version()

    try:
        print_mod_version(asyncio.run(_fetch()))
    except TruckersMPCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
