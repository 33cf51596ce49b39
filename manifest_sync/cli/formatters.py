"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from manifest_sync.core.run import RunStatus, SynchronizationRun
from manifest_sync.models.config import SyncConfig
from manifest_sync.utils.formatting import format_duration, format_size

MAX_FAILED_ENTRIES_SHOWN = 10


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "FetchError": [
            "• Check the manifest URL and your internet connection.",
            "• The server may be rejecting the User-Agent; try --user-agent.",
            "• Raise max_attempts in the config to retry flaky downloads.",
        ],
        "ManifestError": [
            "• Make sure the URL points at a JSON manifest, not a web page.",
            "• A cached manifest.json may be corrupt; delete it and retry.",
        ],
        "ConfigurationError": [
            "• Run `manifest-sync validate` to see which setting is rejected.",
            "• Run `manifest-sync init --force` to write a fresh config file.",
        ],
        "PoolShutdownError": [
            "• The downloader was shutting down; start the sync again.",
        ],
        "RunInProgressError": [
            "• Wait for the current synchronization to finish.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Try reducing the number of `--workers`.",
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
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the configuration file's values."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content or "[dim](empty)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: SyncConfig):
    """Displays a summary of the effective settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Manifest URL:", config.manifest_url or "[yellow](not set)[/yellow]")
    table.add_row("Output Root:", config.output_root)
    table.add_row("Max Workers:", str(config.max_workers))
    table.add_row("Max Attempts:", str(config.max_attempts))
    table.add_row("Request Timeout:", f"{config.request_timeout:g}s")
    table.add_row("Drain Timeout:", f"{config.drain_timeout:g}s")
    table.add_row("User Agent:", f"[dim]{config.user_agent}[/dim]")
    table.add_row("JSON Logs:", config.json_log_dir or "✗ Disabled")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_summary_panel(run: SynchronizationRun):
    """Displays the final summary of a synchronization run."""
    console = Console()
    stats = run.stats
    snapshot = run.tracker.snapshot()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=22)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "Entries:", f"[bold]{snapshot.completed}/{snapshot.total}[/bold]"
    )
    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.files_downloaded}[/bold green]"
    )
    if stats.files_verified > 0:
        stats_table.add_row(
            "○ Already Valid:", f"[yellow]{stats.files_verified}[/yellow]"
        )
    directories = stats.directories_created + stats.directories_existing
    if directories > 0:
        stats_table.add_row(
            "Directories:",
            f"{directories} [dim]({stats.directories_created} created)[/dim]",
        )
    if stats.entries_failed > 0:
        stats_table.add_row(
            "✗ Failed:", f"[bold red]{stats.entries_failed}[/bold red]"
        )
    stats_table.add_row(
        "Manifests:",
        f"{stats.manifests_fetched} fetched, {stats.manifests_cached} cached",
    )

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.bytes_downloaded)}[/cyan]"
    )
    duration_s = stats.duration_s
    avg_speed = stats.bytes_downloaded / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.failed_entries:
        stats_table.add_row("", "")
        shown = stats.failed_entries[:MAX_FAILED_ENTRIES_SHOWN]
        more = len(stats.failed_entries) - len(shown)
        listing = "\n".join(shown) + (f"\n… and {more} more" if more > 0 else "")
        stats_table.add_row("Failed Entries:", f"[red]{listing}[/red]")

    if run.status == RunStatus.FAILED:
        title = "✗ [bold]Synchronization Failed[/bold]"
        border_color = "red"
    elif stats.entries_failed > 0:
        title = "⚠ [bold]Synchronization Finished With Errors[/bold]"
        border_color = "yellow"
    else:
        title = "✓ [bold]Synchronization Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
