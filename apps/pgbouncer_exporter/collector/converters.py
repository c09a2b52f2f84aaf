"""
Row conversion strategies.

Both strategies take a namespace mapping, the row buffer holding the current
row, and an ``emit`` callback. They return the list of non-fatal errors for
the row and raise ``FatalRowError`` when the row cannot be interpreted at all.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List

from .coercion import describe_value, to_float, to_label_string
from .errors import ConversionError, FatalRowError
from .mapping import Emit, MetricSample, NamespaceMapping, RowStrategy
from .rows import RowBuffer

logger = logging.getLogger("pgbouncer_exporter.converters")

RowConverter = Callable[[NamespaceMapping, RowBuffer, Emit], List[ConversionError]]


def _label_values(mapping: NamespaceMapping, row: RowBuffer) -> tuple:
    values = []
    for name in mapping.labels:
        label, ok = to_label_string(row.get(name))
        if not ok:
            logger.debug(
                "Cannot use %s as label %s.%s, using empty value",
                describe_value(row.get(name)),
                mapping.namespace,
                name,
            )
        values.append(label)
    return tuple(values)


def convert_wide_row(mapping: NamespaceMapping, row: RowBuffer, emit: Emit) -> List[ConversionError]:
    """Every mapped column of the row is one sample, labelled by the label columns."""
    errors: List[ConversionError] = []
    labels = _label_values(mapping, row)

    for column, raw in row.items():
        metric = mapping.metrics.get(column)
        if metric is None:
            logger.debug("Ignoring column for metric conversion: %s %s", mapping.namespace, column)
            continue

        value, ok = to_float(raw)
        if not ok:
            errors.append(ConversionError(mapping.namespace, column, raw))
            continue

        logger.debug("Successfully parsed column: %s %s %s", mapping.namespace, column, describe_value(raw))
        emit(MetricSample(metric.descriptor, value * metric.multiplier, labels))

    return errors


def convert_key_value_row(mapping: NamespaceMapping, row: RowBuffer, emit: Emit) -> List[ConversionError]:
    """Rows are (key, value, <ignored>...); the key selects the metric."""
    if len(row) < 2:
        raise FatalRowError(
            mapping.namespace,
            "received row results for KV parsing, but not enough columns",
            row.values,
        )

    key, raw = row.values[0], row.values[1]
    if not isinstance(key, str):
        raise FatalRowError(
            mapping.namespace,
            "received row results for KV parsing, but key field isn't string",
            row.values,
        )

    metric = mapping.metrics.get(key)
    if metric is None:
        logger.debug("Ignoring key for KV conversion: %s %s", mapping.namespace, key)
        return []

    value, ok = to_float(raw)
    if not ok:
        return [ConversionError(mapping.namespace, key, raw, "unexpected KV value")]

    logger.debug("Successfully parsed key: %s %s %s", mapping.namespace, key, describe_value(raw))
    emit(MetricSample(metric.descriptor, value * metric.multiplier))
    return []


ROW_CONVERTERS: Dict[RowStrategy, RowConverter] = {
    RowStrategy.WIDE: convert_wide_row,
    RowStrategy.KEY_VALUE: convert_key_value_row,
}


def converter_for(strategy: RowStrategy) -> RowConverter:
    return ROW_CONVERTERS[strategy]
