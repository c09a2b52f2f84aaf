import pytest

from apps.pgbouncer_exporter.collector.errors import (
    ColumnMetadataError,
    FatalRowError,
    QueryError,
    ResultStreamError,
    RowReadError,
)
from apps.pgbouncer_exporter.collector.mapping import (
    ColumnUsage,
    RowStrategy,
    build_namespace_mapping,
)
from apps.pgbouncer_exporter.collector.query import run_query
from apps.pgbouncer_exporter.collector.rows import RowBuffer

from conftest import FakeExecutor, FakeResult


@pytest.fixture
def pools():
    return build_namespace_mapping(
        "pgbouncer",
        "pools",
        {
            "database": (ColumnUsage.LABEL, None, ""),
            "cl_active": (ColumnUsage.GAUGE, None, ""),
            "cl_waiting": (ColumnUsage.GAUGE, None, ""),
        },
    )


@pytest.fixture
def lists():
    return build_namespace_mapping(
        "pgbouncer",
        "lists",
        {"users": (ColumnUsage.GAUGE, None, "")},
        RowStrategy.KEY_VALUE,
    )


def test_one_query_per_namespace(pools, emitted):
    result = FakeResult(
        ["database", "cl_active", "cl_waiting"],
        [("db1", 1, 0), ("db2", 5, "x")],
    )
    executor = FakeExecutor({"SHOW pools;": result})

    outcome = run_query(pools, executor, emitted.append)

    assert executor.queries == ["SHOW pools;"]
    assert outcome.ok
    assert outcome.samples == 3
    assert len(outcome.non_fatal) == 1
    assert [(s.label_values, s.value) for s in emitted] == [(("db1",), 1.0), (("db1",), 0.0), (("db2",), 5.0)]
    assert result.closed


def test_query_failure_is_fatal(pools, emitted):
    executor = FakeExecutor({"SHOW pools;": QueryError("no such command")})

    outcome = run_query(pools, executor, emitted.append)

    assert isinstance(outcome.fatal, QueryError)
    assert emitted == []


def test_column_metadata_failure_is_fatal(pools, emitted):
    result = FakeResult([], column_error=ColumnMetadataError("no description"))
    executor = FakeExecutor({"SHOW pools;": result})

    outcome = run_query(pools, executor, emitted.append)

    assert isinstance(outcome.fatal, ColumnMetadataError)
    assert result.closed


def test_row_read_failure_abandons_remaining_rows(pools, emitted):
    result = FakeResult(
        ["database", "cl_active"],
        [("db1", 1), ("db2", 2), ("db3", 3)],
        fail_at_row=1,
    )
    executor = FakeExecutor({"SHOW pools;": result})

    outcome = run_query(pools, executor, emitted.append)

    assert isinstance(outcome.fatal, RowReadError)
    assert [s.label_values for s in emitted] == [("db1",)]
    assert result.closed


def test_row_width_mismatch_is_fatal(pools, emitted):
    result = FakeResult(["database", "cl_active"], [("db1", 1, "extra")])
    outcome = run_query(pools, FakeExecutor({"SHOW pools;": result}), emitted.append)

    assert isinstance(outcome.fatal, RowReadError)
    assert emitted == []


def test_truncated_stream_is_non_fatal(pools, emitted):
    result = FakeResult(
        ["database", "cl_active"],
        [("db1", 1)],
        stream_error=ResultStreamError("connection lost"),
    )
    outcome = run_query(pools, FakeExecutor({"SHOW pools;": result}), emitted.append)

    assert outcome.ok
    assert len(outcome.non_fatal) == 1
    assert isinstance(outcome.non_fatal[0], ResultStreamError)
    assert len(emitted) == 1


def test_fatal_strategy_error_keeps_earlier_errors(lists, emitted):
    result = FakeResult(
        ["list", "items"],
        [("users", "bad"), ("users", 4), (7, 1), ("users", 5)],
    )
    outcome = run_query(lists, FakeExecutor({"SHOW lists;": result}), emitted.append)

    assert isinstance(outcome.fatal, FatalRowError)
    assert len(outcome.non_fatal) == 1
    assert [s.value for s in emitted] == [4.0]


def test_single_column_key_value_result_is_fatal(lists, emitted):
    result = FakeResult(["list"], [("x",)])
    outcome = run_query(lists, FakeExecutor({"SHOW lists;": result}), emitted.append)

    assert isinstance(outcome.fatal, FatalRowError)


def test_row_buffer_reuses_slots():
    row = RowBuffer("pools", ["a", "b"])
    slots = row.values

    row.load(("x", 1))
    row.load(("y", 2))

    assert row.values is slots
    assert row.values == ["y", 2]
    assert row.get("b") == 2
    assert row.get("missing") is None
