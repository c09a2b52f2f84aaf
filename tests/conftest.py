"""
Shared fixtures: an in-memory query executor standing in for PgBouncer.
"""

from typing import Dict, List, Optional, Sequence, Union

import pytest

from apps.pgbouncer_exporter.collector.errors import ConnectivityError, RowReadError


class FakeResult:
    def __init__(
        self,
        columns: Sequence[str],
        rows: Sequence[Sequence] = (),
        column_error: Optional[Exception] = None,
        fail_at_row: Optional[int] = None,
        stream_error: Optional[Exception] = None,
    ) -> None:
        self._columns = list(columns)
        self._rows = [tuple(r) for r in rows]
        self._column_error = column_error
        self._fail_at_row = fail_at_row
        self._stream_error = stream_error
        self.closed = False

    def columns(self):
        if self._column_error is not None:
            raise self._column_error
        return self._columns

    def fetch_rows(self):
        for idx, row in enumerate(self._rows):
            if idx == self._fail_at_row:
                raise RowReadError(f"cannot read row {idx}")
            yield row
        if self._stream_error is not None:
            raise self._stream_error

    def close(self) -> None:
        self.closed = True


class FakeExecutor:
    """Maps query text to a FakeResult (or an exception to raise)."""

    def __init__(self, results: Optional[Dict[str, Union[FakeResult, Exception]]] = None, up: bool = True) -> None:
        self.results = results or {}
        self.up = up
        # Raised by ping() in place of the usual connectivity error
        self.ping_error: Optional[Exception] = None
        self.queries: List[str] = []
        self.returned: List[FakeResult] = []
        self.pings = 0

    def ping(self) -> None:
        self.pings += 1
        if self.ping_error is not None:
            raise self.ping_error
        if not self.up:
            raise ConnectivityError("connection refused")

    def execute(self, query: str) -> FakeResult:
        self.queries.append(query)
        result = self.results.get(query)
        if isinstance(result, Exception):
            raise result
        if result is None:
            result = FakeResult(columns=["unused"])
        self.returned.append(result)
        return result


def samples_of(families):
    """Flatten metric families into (name, labels, value) tuples."""
    return [(s.name, s.labels, s.value) for family in families for s in family.samples]


def value_of(families, name, labels=None):
    for sample_name, sample_labels, value in samples_of(families):
        if sample_name == name and (labels is None or sample_labels == labels):
            return value
    return None


@pytest.fixture
def emitted():
    """Collects samples passed to an ``emit`` callback."""
    return []
