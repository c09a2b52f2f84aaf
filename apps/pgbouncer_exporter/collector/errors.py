"""
Error taxonomy for the PgBouncer exporter.

Fatal-to-namespace errors abort the namespace being scraped.
Non-fatal errors are never raised across the namespace boundary; they are
returned as values and counted into the ``last_scrape_error`` gauge.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class ExporterError(Exception):
    """Base class for all exporter errors."""


# ---------------------------------------------------------------------------
# Executor errors (raised by the query executor)
# ---------------------------------------------------------------------------


class ConnectivityError(ExporterError):
    """The backend did not answer the connectivity probe."""


class QueryError(ExporterError):
    """The namespace query could not be issued."""


class ColumnMetadataError(ExporterError):
    """The column list of a result set could not be read."""


class RowReadError(ExporterError):
    """A row of a result set could not be read."""


class ResultStreamError(ExporterError):
    """The result stream ended abnormally after some rows were read."""


# ---------------------------------------------------------------------------
# Conversion errors (raised / returned by row strategies)
# ---------------------------------------------------------------------------


class FatalRowError(ExporterError):
    """A row is structurally incompatible with its namespace mapping."""

    def __init__(self, namespace: str, message: str, values: Sequence[Any] = ()) -> None:
        self.namespace = namespace
        self.values = list(values)
        super().__init__(f"{namespace}: {message}: {self.values!r}")


class ConversionError(ExporterError):
    """A single value could not be converted to a metric value."""

    def __init__(self, namespace: str, column: str, value: Any, reason: Optional[str] = None) -> None:
        self.namespace = namespace
        self.column = column
        self.value = value
        detail = f" ({reason})" if reason else ""
        super().__init__(
            f"Unexpected error parsing column {namespace}.{column}: {value!r}{detail}"
        )
