"""Test cell value normalization."""

import datetime
import uuid
from decimal import Decimal

import pytest

from datafrost.adapters._convert import convert_rows, to_canonical


@pytest.mark.parametrize("value", [None, True, 0, 3, 2.5, "text"])
def test_scalars_unchanged(value):
    assert to_canonical(value) is value


def test_bytes_become_text():
    assert to_canonical(b"hi") == "hi"
    assert to_canonical(memoryview(b"hi")) == "hi"
    assert to_canonical(b"\xff") == "�"


def test_decimals():
    assert to_canonical(Decimal("42")) == 42
    assert isinstance(to_canonical(Decimal("42.000")), int)
    assert to_canonical(Decimal("9.5")) == 9.5


def test_temporal_values_iso():
    assert to_canonical(datetime.date(2024, 1, 2)) == "2024-01-02"
    assert to_canonical(datetime.datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05"
    assert to_canonical(datetime.time(3, 4)) == "03:04:00"


def test_unknown_falls_back_to_str():
    u = uuid.UUID("12345678-1234-5678-1234-567812345678")
    assert to_canonical(u) == "12345678-1234-5678-1234-567812345678"


def test_convert_rows_returns_lists():
    assert convert_rows([(1, b"a"), (None, Decimal("1.5"))]) == [[1, "a"], [None, 1.5]]
