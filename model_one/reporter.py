"""
Rich rendering helpers for the CLI: result rows and generated statements.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from model_one.statements import Statement


def _column_names(rows: Sequence[Mapping[str, Any]]) -> List[str]:
    """Union of row keys, in first-seen order."""
    names: Dict[str, None] = {}
    for row in rows:
        for key in row:
            names.setdefault(str(key), None)
    return list(names)


def _cell(value: Any) -> str:
    if value is None:
        return "[dim]NULL[/dim]"
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    return escape(str(value))


def build_rows_table(rows: Sequence[Mapping[str, Any]], title: Optional[str] = None) -> Table:
    """
    Render query rows as a rich table.

    Columns are the union of the row keys; a key missing from a row shows as NULL.
    """
    table = Table(
        title=title,
        box=box.ROUNDED,
        caption=f"{len(rows)} row{'s' if len(rows) != 1 else ''}",
    )
    columns = _column_names(rows)
    for index, name in enumerate(columns):
        table.add_column(name, style="cyan" if index == 0 else None, overflow="fold")
    for row in rows:
        table.add_row(*[_cell(row.get(name)) for name in columns])
    return table


def print_rows(
    rows: Sequence[Mapping[str, Any]],
    title: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    console = console or Console()
    if not rows:
        console.print("[yellow]No rows returned.[/yellow]")
        return
    console.print(build_rows_table(rows, title=title))


def print_statement(statement: Statement, console: Optional[Console] = None) -> None:
    """Show a generated statement: parameterized SQL, bound values, and an inlined preview."""
    console = console or Console()
    table = Table(box=box.ROUNDED, show_header=False, title=f"{statement.kind.value} on {statement.table}")
    table.add_column("part", style="cyan", no_wrap=True)
    table.add_column("value", overflow="fold")
    table.add_row("sql", escape(statement.sql))
    table.add_row("params", escape(repr(list(statement.params))))
    table.add_row("rendered", escape(statement.render()))
    console.print(table)


__all__ = ["build_rows_table", "print_rows", "print_statement"]
