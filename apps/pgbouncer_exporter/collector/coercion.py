"""
Type coercion from database column values to metric values and label values.

Column values come from the query executor and are limited to:
None, int, float, Decimal, str, bytes (bytearray / memoryview) and datetime.
Anything else is unsupported.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Tuple, Union

logger = logging.getLogger("pgbouncer_exporter.coercion")

ColumnValue = Union[None, int, float, Decimal, str, bytes, bytearray, memoryview, datetime]

_BYTES_TYPES = (bytes, bytearray, memoryview)


def _epoch_seconds(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def to_float(value: ColumnValue) -> Tuple[float, bool]:
    """
    Convert a column value to a float for Prometheus consumption.

    NULL maps to (NaN, True). Text is parsed; parse failures and
    unsupported types map to (NaN, False).
    """
    if value is None:
        return math.nan, True
    # bool is an int subclass but is not a supported column type
    if isinstance(value, bool):
        return math.nan, False
    if isinstance(value, (int, float, Decimal)):
        return float(value), True
    if isinstance(value, datetime):
        return float(_epoch_seconds(value)), True
    if isinstance(value, _BYTES_TYPES):
        value = bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        # float() also accepts surrounding whitespace and "_" digit separators
        if value != value.strip() or "_" in value:
            logger.debug("Could not parse string: %r", value)
            return math.nan, False
        try:
            return float(value), True
        except ValueError as exc:
            logger.debug("Could not parse string: %s", exc)
            return math.nan, False
    return math.nan, False


def to_label_string(value: ColumnValue) -> Tuple[str, bool]:
    """Convert a column value to a label value. NULL maps to ("", True)."""
    if value is None:
        return "", True
    if isinstance(value, bool):
        return "", False
    if isinstance(value, str):
        return value, True
    if isinstance(value, (int, float, Decimal)):
        return str(value), True
    if isinstance(value, datetime):
        return str(_epoch_seconds(value)), True
    if isinstance(value, _BYTES_TYPES):
        return bytes(value).decode("utf-8", errors="replace"), True
    return "", False


def describe_value(value: Any) -> str:
    """Short ``type=value`` rendering used in log lines."""
    return f"{type(value).__name__}={value!r}"
