import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from apps.pgbouncer_exporter.collector.coercion import to_float, to_label_string


def test_null_is_nan_and_ok():
    value, ok = to_float(None)
    assert ok is True
    assert math.isnan(value)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (7, 7.0),
        (2.25, 2.25),
        (Decimal("1.5"), 1.5),
        ("3.5", 3.5),
        (b"42", 42.0),
        (memoryview(b"-1"), -1.0),
    ],
)
def test_numeric_and_text_values(raw, expected):
    assert to_float(raw) == (expected, True)


def test_unparseable_text_is_not_ok():
    value, ok = to_float("abc")
    assert ok is False
    assert math.isnan(value)
    assert to_float(b"not a number")[1] is False


@pytest.mark.parametrize("raw", [" 3.5 ", "3.5\n", "1_000", b" 42"])
def test_padded_or_separated_text_is_not_ok(raw):
    value, ok = to_float(raw)
    assert ok is False
    assert math.isnan(value)


def test_timestamp_is_whole_epoch_seconds():
    ts = datetime(2020, 1, 1, 0, 0, 1, 900000, tzinfo=timezone.utc)
    assert to_float(ts) == (1577836801.0, True)

    # naive timestamps are read as UTC
    assert to_float(datetime(2020, 1, 1, 0, 0, 1)) == (1577836801.0, True)

    plus_two = datetime(2020, 1, 1, 2, 0, 1, tzinfo=timezone(timedelta(hours=2)))
    assert to_float(plus_two) == (1577836801.0, True)


@pytest.mark.parametrize("raw", [True, object(), [1, 2], {"a": 1}])
def test_unsupported_types(raw):
    assert to_float(raw)[1] is False
    assert to_label_string(raw) == ("", False)


def test_label_strings():
    assert to_label_string(None) == ("", True)
    assert to_label_string("db1") == ("db1", True)
    assert to_label_string(6432) == ("6432", True)
    assert to_label_string(1.5) == ("1.5", True)
    assert to_label_string(b"pgbouncer") == ("pgbouncer", True)
    assert to_label_string(datetime(2020, 1, 1, tzinfo=timezone.utc)) == ("1577836800", True)
