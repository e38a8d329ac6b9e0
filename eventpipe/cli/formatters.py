"""Row renderers used by the warehouse commands."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Mapping, Sequence, TextIO

from rich.box import SIMPLE
from rich.console import Console
from rich.table import Table

Row = Mapping[str, object]


class OutputFormatter:
    """Base class for row renderers."""

    name: str

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        raise NotImplementedError


def _resolve_columns(rows: Sequence[Row], columns: Sequence[str] | None) -> list[str]:
    if columns:
        return list(columns)
    return list(rows[0].keys()) if rows else []


def _is_numeric(rows: Sequence[Row], column: str) -> bool:
    values = [row.get(column) for row in rows if row.get(column) is not None]
    return bool(values) and all(isinstance(v, int | float) and not isinstance(v, bool) for v in values)


@dataclass(slots=True)
class TableFormatter(OutputFormatter):
    """Rich table; numeric columns are right aligned."""

    name: str = "table"
    no_color: bool = False

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        console = Console(file=stream, color_system=None if self.no_color else "auto", no_color=self.no_color)
        if not rows:
            console.print("No data available.")
            return

        resolved = _resolve_columns(rows, columns)
        table = Table(box=SIMPLE)
        for column in resolved:
            table.add_column(
                column,
                header_style="" if self.no_color else "bold",
                justify="right" if _is_numeric(rows, column) else "left",
            )
        for row in rows:
            table.add_row(*(_cell(row.get(column)) for column in resolved))
        console.print(table)


def _cell(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.4g}"
    return str(value)


@dataclass(slots=True)
class JSONLFormatter(OutputFormatter):
    """One JSON object per row."""

    name: str = "jsonl"

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        for row in rows:
            selected = {column: row.get(column) for column in columns} if columns else dict(row)
            stream.write(json.dumps(selected, ensure_ascii=False, default=str) + "\n")
        stream.flush()


FORMATTERS: dict[str, type[OutputFormatter]] = {
    "table": TableFormatter,
    "jsonl": JSONLFormatter,
}


def create_formatter(name: str, *, no_color: bool = False) -> OutputFormatter:
    """Instantiate a formatter by name."""

    formatter_cls = FORMATTERS.get(name.strip().lower())
    if formatter_cls is None:
        available = ", ".join(FORMATTERS)
        raise ValueError(f"Unsupported format '{name}'. Available formats: {available}.")
    if formatter_cls is TableFormatter:
        return TableFormatter(no_color=no_color)
    return formatter_cls()


__all__ = ["FORMATTERS", "JSONLFormatter", "OutputFormatter", "TableFormatter", "create_formatter"]
