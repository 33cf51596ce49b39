"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from manifest_sync import __version__
from manifest_sync.core.run import RunStatus, SynchronizationRun
from manifest_sync.core.service import SyncService
from manifest_sync.exceptions import ManifestSyncError
from manifest_sync.storage.config_manager import ConfigManager
from manifest_sync.utils.structured_logger import create_event_logger

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("manifest_sync")

app = typer.Typer(
    name="manifest-sync",
    help=(
        "Synchronize a local directory with a versioned, hash-verified download"
        " manifest. Use 'manifest-sync <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "manifest-sync"


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
        help="Increase logging verbosity (-v for per-file events, -vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration file."
    ),
):
    """Manifest Sync CLI"""
    if version:
        console.print(f"[bold]manifest-sync[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose >= 2:
        log_level = "DEBUG"
    elif verbose == 1:
        log_level = "INFO"
    logging.getLogger("manifest_sync").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]manifest-sync init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        print_config(CONFIG_FILE, config.model_dump(exclude={"config_path"}))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    manifest_url: str | None = typer.Argument(
        None, help="Default top-level manifest URL to synchronize."
    ),
    output: str | None = typer.Option(
        None, "-o", "--output", help="Default output root directory."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config without asking."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        key: value
        for key, value in {"manifest_url": manifest_url, "output_root": output}.items()
        if value is not None
    }
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except ManifestSyncError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to go! Try: [cyan]manifest-sync sync[/cyan]")


@app.command(name="sync")
def sync_command(
    manifest_url: str | None = typer.Argument(
        None, help="Top-level manifest URL (defaults to the configured one)."
    ),
    output: str | None = typer.Option(
        None, "-o", "--output", help="Directory to synchronize into."
    ),
    workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Number of simultaneous jobs (default: CPU count).",
    ),
    user_agent: str | None = typer.Option(
        None, "--user-agent", help="User-Agent header sent with every request."
    ),
    attempts: int | None = typer.Option(
        None, "--attempts", help="Attempts per download before giving up."
    ),
    json_log: str | None = typer.Option(
        None, "--json-log", help="Write JSON Lines event logs into this directory."
    ),
):
    """Download or verify everything a manifest describes."""
    cli_options = {
        key: value
        for key, value in {
            "manifest_url": manifest_url,
            "output_root": output,
            "max_workers": workers,
            "user_agent": user_agent,
            "max_attempts": attempts,
            "json_log_dir": json_log,
        }.items()
        if value is not None
    }

    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    except ManifestSyncError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    if not config.manifest_url:
        console.print(
            "[red]✗ No manifest URL provided.[/red] "
            "Use: [cyan]manifest-sync sync <URL>[/cyan] or set it with "
            "[cyan]manifest-sync init <URL>[/cyan]"
        )
        raise typer.Exit(code=1)

    async def _sync_async() -> SynchronizationRun | None:
        json_dir = Path(config.json_log_dir) if config.json_log_dir else None
        events = create_event_logger(json_dir, enable_json=json_dir is not None)
        service = SyncService(config, events=events)

        async with ProgressManager(console=console) as progress_manager:
            try:
                console.print(
                    f"[bold cyan]Synchronizing[/bold cyan] {config.manifest_url} "
                    f"[dim]→ {config.output_root}[/dim]"
                )
                return await service.sync(on_progress=progress_manager.on_progress)
            finally:
                await service.close()

    run = asyncio.run(_sync_async())
    if run is None:
        raise typer.Exit(code=1)

    print_summary_panel(run)
    if run.status == RunStatus.FAILED:
        if run.error is not None:
            console.print(format_error_with_suggestions(run.error))
        raise typer.Exit(code=1)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_validation_table(config)
    except ManifestSyncError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
