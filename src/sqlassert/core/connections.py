"""Execution backends for rule queries.

A backend is what a datasource name resolves to at evaluation time. It runs
one SQL string inside its own transaction and maps every returned row through
a caller-supplied transform:

    backend = SqlAlchemyBackend(create_engine("sqlite:///warehouse.db"))
    counts = backend.exec_and_map("SELECT COUNT(*) FROM customer", lambda row: row[0])

Every call opens a fresh transaction at the configured isolation level and
rolls it back once the rows are read; rule queries never write. A failing
query propagates the driver's exception unchanged and is never retried.

Thread Safety:
- SqlAlchemyBackend: one pooled connection per call, safe across threads
  as long as the engine's pool is.
- DuckDBBackend: one cursor per call on a shared connection.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import duckdb
from sqlalchemy import Engine, create_engine

from sqlassert.core.config import get_settings
from sqlassert.core.logging import get_logger

logger = get_logger(__name__)

Row = Sequence[Any]


@runtime_checkable
class DatasourceBackend(Protocol):
    """Anything that can run one read-only query and map its rows."""

    def exec_and_map[T](self, sql: str, transform: Callable[[Row], T]) -> list[T]: ...


def _default_isolation_level() -> str:
    return get_settings().isolation_level


@dataclass
class SqlAlchemyBackend:
    """Backend over a synchronous SQLAlchemy engine.

    Attributes:
        engine: Engine for the target store
        isolation_level: Isolation level applied to every rule transaction
    """

    engine: Engine
    isolation_level: str = field(default_factory=_default_isolation_level)

    def exec_and_map[T](self, sql: str, transform: Callable[[Row], T]) -> list[T]:
        with self.engine.connect() as conn:
            conn = conn.execution_options(
                isolation_level=self.isolation_level, no_parameters=True
            )
            trans = conn.begin()
            try:
                # The SQL is already rendered. The cursor gets no parameter
                # collection, so '%' and ':' in literals reach the driver as is.
                result = conn.exec_driver_sql(sql)
                return [transform(tuple(row)) for row in result]
            finally:
                trans.rollback()


@dataclass
class DuckDBBackend:
    """Backend over an open DuckDB connection.

    DuckDB has a single snapshot isolation level, which is serializable for
    read-only transactions.
    """

    connection: duckdb.DuckDBPyConnection

    def exec_and_map[T](self, sql: str, transform: Callable[[Row], T]) -> list[T]:
        cursor = self.connection.cursor()
        try:
            cursor.execute("BEGIN TRANSACTION")
            try:
                rows = cursor.execute(sql).fetchall()
                return [transform(row) for row in rows]
            finally:
                cursor.execute("ROLLBACK")
        finally:
            cursor.close()


def create_backend(url: str, **engine_kwargs: Any) -> DatasourceBackend:
    """Create a backend from a database URL.

    ``duckdb:///path.duckdb`` (or ``duckdb:///:memory:``) opens a native DuckDB
    connection; anything else is handed to ``sqlalchemy.create_engine``.

    Args:
        url: Database URL
        **engine_kwargs: Passed through to ``create_engine``

    Returns:
        A backend ready to be placed in a datasource map
    """
    if url.startswith("duckdb:///"):
        path = url.removeprefix("duckdb:///") or ":memory:"
        logger.debug("duckdb_backend_created", path=path)
        return DuckDBBackend(duckdb.connect(path))

    engine = create_engine(url, **engine_kwargs)
    logger.debug("sqlalchemy_backend_created", dialect=engine.dialect.name)
    return SqlAlchemyBackend(engine)
