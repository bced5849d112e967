"""Normalize driver-native cell values into JSON-friendly scalars."""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Sequence
from decimal import Decimal


def to_canonical(value: object) -> object:
    """Map a driver value onto {None, str, int, float, bool}.

    Unrecognized types fall back to their str() form instead of failing the query.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


def convert_rows(rows: Iterable[Sequence[object]]) -> list[list[object]]:
    return [[to_canonical(v) for v in row] for row in rows]
