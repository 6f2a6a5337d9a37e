"""Line-oriented CSV parser for uploaded and bundled datasets.

Fields wrapped in double quotes may contain commas. Line breaks inside quoted
fields and doubled-quote escapes (``""``) are not supported: the text is split
into lines before any quote handling happens.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional, Union

Value = Union[str, int, None]

# Columns of the influencer dataset schema that hold counts
NUMERIC_COLUMNS = frozenset({"Follower Count", "Average Likes"})

_LEADING_INT = re.compile(r"^[+-]?\d+")


def parse_csv_line(line: str) -> list[str]:
    """Split one CSV line on commas that are not inside double quotes."""
    fields = []
    current = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)

    fields.append("".join(current))
    return fields


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip().replace('"', "") or None


def to_int(value: Optional[str]) -> int:
    """Leading integer of value, or 0 when there is none."""
    if not value:
        return 0
    match = _LEADING_INT.match(value)
    return int(match.group()) if match else 0


def parse_csv(text: str, numeric_columns: Iterable[str] = NUMERIC_COLUMNS) -> list[dict[str, Value]]:
    """Parse CSV text into a list of row dicts keyed by header name.

    Malformed input never raises; it degrades to an empty or partial result.
    """
    if not text:
        return []
    numeric = frozenset(numeric_columns)

    lines = text.split("\n")
    headers = [_clean(h) or "" for h in parse_csv_line(lines[0].lstrip("\ufeff"))]  # BOM
    if not any(headers):
        return []

    rows = []
    for line in lines[1:]:
        if not line.strip():
            continue
        values = parse_csv_line(line)
        row: dict[str, Value] = {}
        for index, header in enumerate(headers):
            value = _clean(values[index]) if index < len(values) else None
            row[header] = to_int(value) if header in numeric else value
        rows.append(row)
    return rows
