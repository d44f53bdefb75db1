"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output.
Uses Rich library for progress bars, spinners, colored output, and the
summary table. Supports verbosity levels and --no-color flag.
"""

from contextlib import contextmanager
from typing import Iterator

from rich.console import Console
from rich.live import Live
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeRemainingColumn,
)
from rich.spinner import Spinner
from rich.table import Table

from src.cli.models import BackupSummary


class OutputHandler:
    """Handles all terminal output using Rich library.

    Provides methods for displaying messages, progress bars, spinners,
    and summaries with color coding and verbosity level control.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.success("Backup completed")
        >>> with handler.spinner("Searching for databases..."):
        ...     pass
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
        """
        self.verbosity = verbosity
        self.console = Console(
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}", style="red")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(message)

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{message}[/dim]")

    def print(self, message: str) -> None:
        self.console.print(message)

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display spinner for single operations.

        Example:
            >>> with handler.spinner("Searching for databases..."):
            ...     result = discoverer.discover(root_id)
        """
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10, transient=True):
            yield

    @contextmanager
    def progress_bar(self) -> Iterator[Progress]:
        """Display progress bars for multi-item operations.

        Example:
            >>> with handler.progress_bar() as progress:
            ...     task = progress.add_task("Notes", total=None)
            ...     progress.update(task, advance=1)
        """
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=self.console,
            transient=True,
        )
        with progress:
            yield progress

    def print_summary(self, summary: BackupSummary) -> None:
        """Display the per-database table and the overall run status."""
        title = "Dry Run - Backup Preview" if summary.dry_run else "Backup Summary"
        exported_label = "Would export" if summary.dry_run else "Exported"

        table = Table(title=title, title_justify="left", show_lines=False)
        table.add_column("Database")
        table.add_column(exported_label, justify="right", style="green")
        table.add_column("Skipped", justify="right", style="dim")
        table.add_column("Failed", justify="right", style="red")

        for collection in summary.collections:
            name = collection.title if collection.complete else f"{collection.title} (incomplete)"
            table.add_row(name, str(collection.exported), str(collection.skipped), str(collection.failed))

        if summary.collections:
            table.add_section()
            table.add_row(
                "[bold]Total[/bold]",
                str(summary.exported),
                str(summary.skipped),
                str(summary.failed),
            )
        self.console.print(table)

        if summary.cleaned_up:
            verb = "Would clean up" if summary.dry_run else "Cleaned up"
            self.console.print(f"  [red]✗[/red] {verb}: {summary.cleaned_up} orphaned page(s)")
        if summary.duplicates_removed:
            verb = "Would remove" if summary.dry_run else "Removed"
            self.console.print(f"  [yellow]⊘[/yellow] {verb}: {summary.duplicates_removed} duplicate attachment(s)")
        if summary.attachments_downloaded:
            self.console.print(f"  [blue]↓[/blue] Downloaded: {summary.attachments_downloaded} attachment(s)")
        if summary.attachments_failed:
            self.console.print(f"  [yellow]⚠[/yellow] Failed downloads: {summary.attachments_failed} attachment(s)")

        if not summary.collections:
            self.console.print("\n[yellow]No databases found[/yellow]")
        elif summary.failed:
            self.console.print(f"\n[red]Backup completed with {summary.failed} failed page(s)[/red]")
        elif not summary.complete:
            self.console.print("\n[yellow]Backup completed, but some pages could not be listed; cleanup skipped[/yellow]")
        elif summary.dry_run:
            self.console.print("\n[green]Dry run complete. No files were written.[/green]")
        elif summary.exported == 0:
            self.console.print("\n[green]Backup up to date. No changes detected.[/green]")
        else:
            self.console.print("\n[green]Backup completed successfully[/green]")
