"""
Query executor for the PgBouncer admin console.

The admin console only understands SHOW-style commands and has no
transactions, so connections run in autocommit mode and are pooled with a
bare SQLAlchemy ``QueuePool`` (no dialect, hence no dialect bootstrap
queries). The pool holds at most one physical connection and connects
lazily, so the exporter starts even while PgBouncer is down.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Sequence

import psycopg2
import psycopg2.extensions
from sqlalchemy import exc as sa_exc
from sqlalchemy.pool import QueuePool

from ..collector.coercion import ColumnValue
from ..collector.errors import (
    ColumnMetadataError,
    ConnectivityError,
    QueryError,
    ResultStreamError,
)

logger = logging.getLogger("pgbouncer_exporter.pgbouncer_client")

PING_QUERY = "SHOW VERSION;"
_FETCH_SIZE = 256


def mask_dsn(dsn: str) -> str:
    """Connection string with the password replaced, for logging."""
    try:
        params = psycopg2.extensions.parse_dsn(dsn)
    except psycopg2.ProgrammingError:
        return "<invalid dsn>"
    if "password" in params:
        params["password"] = "***"
    return " ".join(f"{key}={value}" for key, value in sorted(params.items()))


class PgBouncerResult:
    """One executed query. Owns the pooled connection until closed."""

    def __init__(self, connection, cursor) -> None:
        self._connection = connection
        self._cursor = cursor

    def columns(self) -> Sequence[str]:
        description = self._cursor.description
        if description is None:
            raise ColumnMetadataError("query returned no result set")
        return [column[0] for column in description]

    def fetch_rows(self) -> Iterator[Sequence[ColumnValue]]:
        while True:
            try:
                batch: List[tuple] = self._cursor.fetchmany(_FETCH_SIZE)
            except psycopg2.Error as exc:
                raise ResultStreamError(str(exc).strip()) from exc
            if not batch:
                return
            yield from batch

    def close(self) -> None:
        try:
            self._cursor.close()
        finally:
            self._connection.close()


class PgBouncerClient:
    """Query executor backed by a single pooled psycopg2 connection."""

    def __init__(self, dsn: str, pool_timeout: float = 5.0, pool: Optional[QueuePool] = None) -> None:
        # Fails on a malformed connection string; nothing is opened yet
        psycopg2.extensions.parse_dsn(dsn)
        self.dsn = dsn
        self.pool = pool or QueuePool(
            self._connect,
            pool_size=1,
            max_overflow=0,
            timeout=pool_timeout,
            reset_on_return=None,
        )
        logger.info("Configured PgBouncer client for %s", mask_dsn(dsn))

    def _connect(self):
        connection = psycopg2.connect(self.dsn)
        connection.autocommit = True
        return connection

    def _checkout(self):
        try:
            return self.pool.connect()
        except sa_exc.TimeoutError as exc:
            raise ConnectivityError(f"timed out waiting for a pooled connection: {exc}") from exc
        except psycopg2.Error as exc:
            raise ConnectivityError(str(exc).strip()) from exc

    def _run(self, query: str):
        """
        Execute ``query``; returns (connection, cursor) with the connection still checked out.

        The pooled connection goes stale when PgBouncer restarts. A broken
        connection is discarded and the query retried once on a new one.
        """
        try:
            return self._run_once(query)
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as exc:
            logger.warning("Discarded broken connection, retrying %r: %s", query, str(exc).strip())
            return self._run_once(query)

    def _run_once(self, query: str):
        connection = self._checkout()
        try:
            cursor = connection.cursor()
            cursor.execute(query)
        except (psycopg2.OperationalError, psycopg2.InterfaceError):
            # Broken connection, do not hand it back to the pool
            connection.invalidate()
            raise
        except psycopg2.Error:
            connection.close()
            raise
        return connection, cursor

    def ping(self) -> None:
        try:
            connection, cursor = self._run(PING_QUERY)
        except psycopg2.Error as exc:
            raise ConnectivityError(str(exc).strip()) from exc
        PgBouncerResult(connection, cursor).close()

    def execute(self, query: str) -> PgBouncerResult:
        try:
            connection, cursor = self._run(query)
        except ConnectivityError as exc:
            raise QueryError(f"Error running query {query!r}: {exc}") from exc
        except psycopg2.Error as exc:
            raise QueryError(f"Error running query {query!r}: {str(exc).strip()}") from exc
        return PgBouncerResult(connection, cursor)

    def dispose(self) -> None:
        self.pool.dispose()
