"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ruby_spec_runner.parsing.regions import TestRegion
    from ruby_spec_runner.runners.output_contract import RunOutput

console = Console()

_MAX_NAME_LENGTH = 60
_MAX_REPORT_PREVIEW_LINES = 20


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class CLIReporter:
    """Rich terminal output reporter for regions, commands and run summaries."""

    def __init__(self, output: Console | None = None) -> None:
        """Initialize the CLI reporter."""
        self.console = output or console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    # ── Regions ──────────────────────────────────────────────────

    def print_regions(self, file_path: str, regions: Sequence[TestRegion]) -> None:
        """Print detected test regions as a table (lines shown 1-based)."""
        if not regions:
            self.print_warning(f"No tests found in {escape(file_path)}")
            return

        table = Table(title=escape(file_path), show_lines=False)
        table.add_column("Line", justify="right", style="cyan")
        table.add_column("Test")

        for region in regions:
            if region.display_name is None:
                name = "[dim](anonymous)[/dim]"
            else:
                name = escape(_truncate(region.display_name, _MAX_NAME_LENGTH))
            table.add_row(str(region.start_line + 1), name)

        self.console.print(table)
        self.print_info(f"{len(regions)} test(s) found")

    # ── Recorded runs ────────────────────────────────────────────

    def print_run_output(self, run_output: RunOutput) -> None:
        """Summarise the last recorded run from the output file."""
        lines = "all" if run_output.lines is None else ", ".join(map(str, run_output.lines))
        self.console.print(f"[bold]File:[/bold]  {escape(run_output.file_path)}")
        self.console.print(f"[bold]Lines:[/bold] {lines}")

        report_lines = run_output.report.rstrip().splitlines()
        if not report_lines:
            self.print_info("No framework output captured yet.")
            return

        self.console.print()
        for line in report_lines[-_MAX_REPORT_PREVIEW_LINES:]:
            self.console.print(line, markup=False, highlight=False)


reporter = CLIReporter()
