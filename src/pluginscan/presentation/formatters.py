"""Render report rows as table, csv, json or yaml, or as a bare count or id list."""
from __future__ import annotations

import csv
import io
import json
from typing import Any, Callable, Mapping, Sequence

import yaml
from rich import box
from rich.console import Console
from rich.table import Table

TABLE_WIDTH = 240

Rows = Sequence[Mapping[str, Any]]


def _project(items: Rows, fields: Sequence[str]) -> list[dict[str, Any]]:
    return [{f: item.get(f, "") for f in fields} for item in items]


def _table(items: Rows, fields: Sequence[str]) -> str:
    table = Table(box=box.ASCII, show_header=True, header_style="bold")
    for name in fields:
        table.add_column(name, overflow="fold")
    for row in _project(items, fields):
        table.add_row(*(str(row[f]) for f in fields))

    buffer = io.StringIO()
    Console(file=buffer, width=TABLE_WIDTH, force_terminal=False, color_system=None).print(table)
    return buffer.getvalue().rstrip("\n")


def _csv(items: Rows, fields: Sequence[str]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(fields), lineterminator="\n")
    writer.writeheader()
    writer.writerows(_project(items, fields))
    return buffer.getvalue().rstrip("\n")


def _json(items: Rows, fields: Sequence[str]) -> str:
    return json.dumps(_project(items, fields), ensure_ascii=False)


def _yaml(items: Rows, fields: Sequence[str]) -> str:
    return yaml.safe_dump(
        _project(items, fields), sort_keys=False, allow_unicode=True, default_flow_style=False,
    ).rstrip("\n")


def _count(items: Rows, fields: Sequence[str]) -> str:
    return str(len(items))


def _ids(items: Rows, fields: Sequence[str]) -> str:
    # Plugins are identified by slug; other rows by their first field
    key = "slug" if "slug" in fields else fields[0]
    return " ".join(str(item.get(key, "")) for item in items)


FORMATTERS: dict[str, Callable[[Rows, Sequence[str]], str]] = {
    "table": _table,
    "csv": _csv,
    "json": _json,
    "yaml": _yaml,
    "count": _count,
    "ids": _ids,
}


def format_items(fmt: str, items: Rows, fields: Sequence[str]) -> str:
    """Render *items* restricted to *fields*, in field order.

    Raises:
        ValueError: *fmt* is not one of :data:`FORMATTERS`.
    """
    try:
        formatter = FORMATTERS[fmt]
    except KeyError:
        raise ValueError(
            f"Unsupported format '{fmt}'. Supported: {', '.join(FORMATTERS)}"
        ) from None
    return formatter(items, fields)


__all__ = ["format_items", "FORMATTERS"]
