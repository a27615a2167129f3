"""Tests for execution backends."""

import duckdb
import pytest
from sqlalchemy import Engine, event
from sqlalchemy.exc import OperationalError

from sqlassert.core.connections import (
    DatasourceBackend,
    DuckDBBackend,
    SqlAlchemyBackend,
    create_backend,
)


def test_sqlalchemy_backend_maps_rows(sqlite_backend: SqlAlchemyBackend):
    names = sqlite_backend.exec_and_map("SELECT name FROM customer ORDER BY id", lambda r: r[0])

    assert names == ["Mark", "Steve", "Mary", "Bill"]


def test_sqlalchemy_backend_passes_colons_through(sqlite_backend: SqlAlchemyBackend):
    # Literal text containing ':' must not be treated as a bind parameter
    rows = sqlite_backend.exec_and_map(
        "SELECT COUNT(*) FROM customer WHERE date_added < '2020-02-01T03:12:02'",
        lambda r: r[0],
    )

    assert rows == [1]


def test_sqlalchemy_backend_sends_no_parameter_collection(sqlite_engine: Engine):
    seen = []
    no_params_calls = []

    @event.listens_for(sqlite_engine, "before_cursor_execute")
    def capture(conn, cursor, statement, parameters, context, executemany):
        seen.append((statement, context.execution_options.get("no_parameters")))

    @event.listens_for(sqlite_engine, "do_execute_no_params")
    def capture_no_params(cursor, statement, context):
        no_params_calls.append(statement)

    sql = "SELECT COUNT(*) FROM customer WHERE name LIKE 'M%'"
    rows = SqlAlchemyBackend(sqlite_engine).exec_and_map(sql, lambda r: r[0])

    assert rows == [2]
    assert (sql, True) in seen
    assert sql in no_params_calls


def test_sqlalchemy_backend_passes_percent_signs_through(sqlite_backend: SqlAlchemyBackend):
    rows = sqlite_backend.exec_and_map("SELECT '100%' || ':done'", lambda r: r[0])

    assert rows == ["100%:done"]


def test_sqlalchemy_backend_uses_configured_isolation(sqlite_engine: Engine):
    backend = SqlAlchemyBackend(sqlite_engine)

    assert backend.isolation_level == "SERIALIZABLE"


def test_sqlalchemy_backend_propagates_driver_errors(sqlite_backend: SqlAlchemyBackend):
    with pytest.raises(OperationalError):
        sqlite_backend.exec_and_map("SELECT * FROM missing_table", lambda r: r)


def test_duckdb_backend_maps_rows(duckdb_backend: DuckDBBackend):
    counts = duckdb_backend.exec_and_map("SELECT COUNT(*) FROM sale", lambda r: r[0])

    assert counts == [4]


def test_duckdb_backend_rolls_back(duckdb_conn: duckdb.DuckDBPyConnection):
    backend = DuckDBBackend(duckdb_conn)

    backend.exec_and_map("DELETE FROM sale RETURNING id", lambda r: r[0])

    assert duckdb_conn.execute("SELECT COUNT(*) FROM sale").fetchone() == (4,)


def test_backends_satisfy_protocol(
    sqlite_backend: SqlAlchemyBackend, duckdb_backend: DuckDBBackend
):
    assert isinstance(sqlite_backend, DatasourceBackend)
    assert isinstance(duckdb_backend, DatasourceBackend)


def test_create_backend_from_url():
    duck = create_backend("duckdb:///:memory:")
    lite = create_backend("sqlite://")

    assert isinstance(duck, DuckDBBackend)
    assert isinstance(lite, SqlAlchemyBackend)
    assert duck.exec_and_map("SELECT 42", lambda r: r[0]) == [42]
    assert lite.exec_and_map("SELECT 42", lambda r: r[0]) == [42]
