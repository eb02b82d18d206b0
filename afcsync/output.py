"""Console output formatting for the afcsync CLI."""

import json
import sys
from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Writes human-readable or JSON output.

    Informational messages are suppressed in quiet mode and in JSON mode so
    that JSON output stays parseable. Errors always go to stderr.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(
            stderr=True, highlight=False, soft_wrap=True
        )

    def _show(self) -> bool:
        return not self.quiet and not self.json_output

    def print(self, message: str = "") -> None:
        if self._show():
            self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        if self._show():
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if self._show():
            self.console.print(f"✓ {message}", style="green", markup=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"Warning: {message}", style="yellow", markup=False)

    def error(self, message: str) -> None:
        self.err_console.print(f"Error: {message}", style="bold red", markup=False)

    def output_json(self, data: Any) -> None:
        # Plain stdout so the JSON is never wrapped or styled
        sys.stdout.write(json.dumps(data, indent=2, default=str) + "\n")
        sys.stdout.flush()

    def output_table(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Print rows as a table.

        Args:
            rows: Row dictionaries
            columns: Keys to show, in order
            headers: Optional mapping of key to column title
        """
        if self.json_output:
            self.output_json(rows)
            return
        if self.quiet:
            return
        headers = headers or {}
        table = Table(show_header=True, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in rows:
            table.add_row(*(str(row.get(column, "")) for column in columns))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        if not self._show():
            return
        self.console.print("")
        self.console.print(title, style="bold", markup=False)
        for label, value in items:
            self.console.print(f"  {label}: {value}", markup=False)
