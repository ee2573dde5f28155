"""Console output for shipctl commands.

Tables and highlighted JSON/YAML go to stdout through Rich; errors go to
stderr and are printed even in quiet mode.
"""

import json
from enum import Enum
from typing import Any

import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


class OutputFormatter:
    """Renders command results in the format chosen with -o."""

    def __init__(
        self,
        format: OutputFormat = OutputFormat.TABLE,
        color: bool = True,
        quiet: bool = False,
    ):
        self.format = format
        self.color = color
        self.quiet = quiet
        self._console = Console(force_terminal=color, no_color=not color)
        self._error_console = Console(stderr=True, no_color=not color)

    def print(self, message: str, style: str | None = None) -> None:
        if not self.quiet:
            self._console.print(message, style=style)

    def print_error(self, message: str) -> None:
        self._error_console.print(f"[red]Error:[/red] {message}")

    def print_warning(self, message: str) -> None:
        self.print(f"[yellow]Warning:[/yellow] {message}")

    def print_success(self, message: str) -> None:
        self.print(f"[green]✓[/green] {message}")

    def print_info(self, message: str) -> None:
        self.print(f"[blue]ℹ[/blue] {message}")

    def print_header(self, title: str) -> None:
        """Print a bold run header underlined to at least the report width."""
        self.print(f"\n[bold]{title}[/bold]")
        self.print("[dim]" + "═" * max(len(title), 35) + "[/dim]")

    def print_section(self, title: str, items: list[str], style: str = "white") -> None:
        """Print a titled list of findings; items may contain brackets so markup is off."""
        if self.quiet or not items:
            return
        self._console.print(f"[bold {style}]{title}[/bold {style}]")
        for item in items:
            self._console.print(f"   {item}", markup=False, highlight=False)
        self._console.print()

    def print_data(
        self,
        data: list[dict[str, Any]] | dict[str, Any],
        headers: list[str] | None = None,
        title: str | None = None,
    ) -> None:
        """Print a report, plan or summary in the configured format."""
        if self.format == OutputFormat.JSON:
            self._print_syntax(json.dumps(data, indent=2, default=str), "json")
        elif self.format == OutputFormat.YAML:
            # Round-trip through JSON so enums and paths become plain strings
            plain = json.loads(json.dumps(data, default=str))
            self._print_syntax(yaml.safe_dump(plain, default_flow_style=False, allow_unicode=True), "yaml")
        else:
            self._print_table(data, headers, title)

    def _print_syntax(self, text: str, lexer: str) -> None:
        if self.color:
            self._console.print(Syntax(text, lexer, theme="monokai"))
        else:
            print(text)

    def _print_table(
        self,
        data: list[dict[str, Any]] | dict[str, Any],
        headers: list[str] | None,
        title: str | None,
    ) -> None:
        if not data:
            self._console.print("[dim]No data to display[/dim]")
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        if isinstance(data, dict):
            table.add_column("Field", style="dim")
            table.add_column("Value")
            for key, value in data.items():
                table.add_row(str(key), str(value))
        else:
            headers = headers or list(data[0].keys())
            for header in headers:
                table.add_column(header)
            for row in data:
                table.add_row(*[str(row.get(h, "")) for h in headers])
        self._console.print(table)


def format_duration(seconds: float) -> str:
    """Format a run or phase duration, e.g. ``42.0s``, ``1.5m``, ``2.0h``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def format_bytes(size: float) -> str:
    """Format a size in bytes (artifact sizes, free disk space)."""
    for unit in ("B", "KB", "MB", "GB"):
        if abs(size) < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} TB"
