from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional


@dataclass(frozen=True)
class CsvColumn:
    key: str  # dot path into the row, e.g. "emergency_contact.name"
    header: str
    formatter: Optional[Callable[[Any], Any]] = None


def _lookup(row: Any, path: str) -> Any:
    current = row
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


def rows_to_csv(rows: Iterable[Any], columns: list[CsvColumn]) -> str:
    """Render rows with every field quoted; an empty input yields ''."""
    rows = list(rows)
    if not rows:
        return ""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([column.header for column in columns])
    for row in rows:
        values = []
        for column in columns:
            value = _lookup(row, column.key)
            if column.formatter is not None:
                value = column.formatter(value)
            values.append("" if value is None else str(value))
        writer.writerow(values)
    return buffer.getvalue().rstrip("\n")


def format_list(values: Optional[list]) -> str:
    if not values or not isinstance(values, (list, tuple)):
        return ""
    return "; ".join(str(value) for value in values)


def format_mapping(value: Optional[dict]) -> str:
    if not value or not isinstance(value, dict):
        return ""
    if value.get("name") and value.get("phone") and value.get("relationship"):
        return f"{value['name']} ({value['relationship']}) - {value['phone']}"
    return "; ".join(f"{key}: {item}" for key, item in value.items())


def format_timestamp(value: Optional[datetime | date]) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return value.strftime("%Y-%m-%d")


def export_filename(prefix: str, today: date) -> str:
    return f"{prefix}-export-{today.isoformat()}.csv"
