from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from oi_history.schemas.history import DisplayRow

EMPTY_HISTORY_MESSAGE = "No history data available"


def _fmt_int(val: float) -> str:
    return f"{val:,.0f}"


def fmt_diff(diff: float) -> str:
    if diff == 0:
        return "-"
    return f"{diff:+,.0f}"


def diff_style(diff: float) -> str:
    if diff > 0:
        return "green"
    if diff < 0:
        return "red"
    return "dim"


def history_title(row_count: int) -> str:
    return f"OI History (Last {row_count} records)"


def build_history_table(rows: Sequence[DisplayRow], *, limit: int | None = None) -> Table:
    """Rows arrive newest-first; `limit` keeps the newest ones."""
    shown = list(rows) if limit is None else list(rows)[: max(limit, 0)]
    table = Table(title=history_title(len(rows)))
    table.add_column("Time", style="cyan", no_wrap=True)
    table.add_column("Total CE OI", justify="right", style="red")
    table.add_column("CE Change", justify="right")
    table.add_column("Total PE OI", justify="right", style="dark_cyan")
    table.add_column("PE Change", justify="right")
    table.add_column("PCR", justify="center")

    for row in shown:
        table.add_row(
            row.time,
            _fmt_int(row.ce_total),
            Text(fmt_diff(row.ce_diff), style=f"bold {diff_style(row.ce_diff)}"),
            _fmt_int(row.pe_total),
            Text(fmt_diff(row.pe_diff), style=f"bold {diff_style(row.pe_diff)}"),
            Text(row.pcr, style="bold"),
        )
    if not rows:
        table.add_row(Text(EMPTY_HISTORY_MESSAGE, style="dim"), "", "", "", "", "")
    return table


def render_history(console: Console, rows: Sequence[DisplayRow], *, limit: int | None = None) -> None:
    console.print(build_history_table(rows, limit=limit))
