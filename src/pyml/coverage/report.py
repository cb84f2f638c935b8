"""Console coverage report using Rich."""

from __future__ import annotations

import sys

from rich import box
from rich.console import Console
from rich.table import Table

from pyml.coverage.accumulator import CoverageSummary, FileSummary, Totals


_METRICS = ("statements", "branches", "functions", "lines")


def _style(pct: float) -> str:
    if pct >= 80:
        return "green"
    if pct >= 50:
        return "yellow"
    return "red"


def _cell(totals: Totals) -> str:
    return f"[{_style(totals.pct)}]{totals.pct:.2f}%[/] ({totals.covered}/{totals.total})"


def _row(table: Table, item: FileSummary, *, bold: bool = False) -> None:
    table.add_row(item.path, *(_cell(getattr(item, metric)) for metric in _METRICS), style="bold" if bold else None)


def render_coverage_table(summary: CoverageSummary, console: Console | None = None) -> Table:
    """Print per-file coverage percentages and return the rendered table."""
    console = console or Console(file=sys.__stdout__)
    table = Table(title="Coverage", box=box.SIMPLE_HEAVY, show_footer=False)
    table.add_column("File", style="cyan", no_wrap=True)
    for metric in _METRICS:
        table.add_column(metric.capitalize(), justify="right")

    for item in summary.files:
        _row(table, item)
    table.add_section()
    _row(table, summary.total, bold=True)

    console.print(table)
    return table
