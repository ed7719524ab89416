"""Output formatting utilities for the obs-plugins CLI."""

import json
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional

from rich.console import Console
from rich.json import JSON as RichJSON
from rich.table import Table

# Default console for output
console = Console()

_SIZE_UNITS = ("KB", "MB", "GB")


class Column(NamedTuple):
    """A table column: row key, header and optional rich style."""

    key: str
    header: str
    style: Optional[str] = None
    justify: str = "left"


def print_json(data: Any, console_instance: Console | None = None) -> None:
    """Print data as formatted JSON.

    Args:
        data: Data to print (paths and datetimes are stringified)
        console_instance: Optional custom console instance
    """
    prog_console = console_instance or console
    json_str = json.dumps(data, indent=2, default=str)
    # Long values such as paths must stay on one line
    prog_console.print(RichJSON(json_str), soft_wrap=True)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "[green]yes[/green]" if value else "[red]no[/red]"
    return str(value)


def print_table(
    rows: Iterable[Mapping[str, Any]],
    columns: List[Column],
    title: str | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print rows (e.g. ``to_dict()`` results) as a table.

    Example:
        print_table(
            [{"id": "obs-websocket", "version": "5.4.2"}],
            [Column("id", "ID", "cyan"), Column("version", "Version")],
            title="Installed Plugins",
        )
    """
    prog_console = console_instance or console

    table = Table(title=title)
    for column in columns:
        table.add_column(column.header, style=column.style, justify=column.justify)  # type: ignore[arg-type]
    for row in rows:
        table.add_row(*(_cell(row.get(column.key)) for column in columns))

    prog_console.print(table)


def print_result(
    success: bool,
    message: str,
    details: Dict[str, Any] | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print an operation result with a check or cross icon and details."""
    prog_console = console_instance or console

    icon = "[green]✓[/green]" if success else "[red]✗[/red]"
    prog_console.print(f"{icon} {message}")

    for key, value in (details or {}).items():
        if value is not None:
            prog_console.print(f"  [dim]{key}:[/dim] {value}")


def format_file_size(size_bytes: int) -> str:
    """Human-readable size, e.g. ``format_file_size(1536) == "1.50 KB"``."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in _SIZE_UNITS:
        size /= 1024
        if size < 1024:
            break
    return f"{size:.2f} {unit}"
