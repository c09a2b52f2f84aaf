"""
Namespace query mapper.

Runs the single query of a namespace against the query executor and turns
its rows into samples with the namespace's row strategy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol, Sequence

from .coercion import ColumnValue
from .converters import converter_for
from .errors import (
    ColumnMetadataError,
    ExporterError,
    FatalRowError,
    QueryError,
    ResultStreamError,
    RowReadError,
)
from .mapping import Emit, MetricSample, NamespaceMapping
from .rows import RowBuffer

logger = logging.getLogger("pgbouncer_exporter.query")


# -------------------------------------------------------------------------
# Query executor interface
# -------------------------------------------------------------------------


class QueryResult(Protocol):
    def columns(self) -> Sequence[str]:
        """Column names; raises ColumnMetadataError."""

    def fetch_rows(self) -> Iterable[Sequence[ColumnValue]]:
        """
        Rows in order. A row that cannot be read raises RowReadError; a
        stream that ends abnormally raises ResultStreamError.
        """

    def close(self) -> None: ...


class QueryExecutor(Protocol):
    def ping(self) -> None:
        """Connectivity probe; raises ConnectivityError."""

    def execute(self, query: str) -> QueryResult:
        """Issue one query; raises QueryError."""


# -------------------------------------------------------------------------
# Mapper
# -------------------------------------------------------------------------


@dataclass
class QueryOutcome:
    namespace: str
    non_fatal: List[ExporterError] = field(default_factory=list)
    fatal: Optional[Exception] = None
    samples: int = 0

    @property
    def ok(self) -> bool:
        return self.fatal is None


def run_query(mapping: NamespaceMapping, executor: QueryExecutor, emit: Emit) -> QueryOutcome:
    """
    Query one namespace and emit its samples.

    Structural failures (query, column list, row read, broken key/value rows)
    end the namespace and are returned as ``fatal``. Value conversion failures
    and a truncated result stream are returned in ``non_fatal``. Samples
    emitted before a fatal failure stay emitted.
    """
    outcome = QueryOutcome(namespace=mapping.namespace)
    convert = converter_for(mapping.strategy)

    def _emit(sample: MetricSample) -> None:
        outcome.samples += 1
        emit(sample)

    try:
        result = executor.execute(mapping.query)
    except QueryError as exc:
        outcome.fatal = exc
        return outcome

    try:
        try:
            row = RowBuffer(mapping.namespace, result.columns())
        except ColumnMetadataError as exc:
            outcome.fatal = exc
            return outcome

        try:
            for values in result.fetch_rows():
                row.load(values)
                outcome.non_fatal.extend(convert(mapping, row, _emit))
        except ResultStreamError as exc:
            logger.error("Failed scanning all rows of %s: %s", mapping.namespace, exc)
            outcome.non_fatal.append(exc)
        except (RowReadError, FatalRowError) as exc:
            outcome.fatal = exc
    finally:
        result.close()

    return outcome
