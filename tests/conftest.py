"""Shared pytest fixtures for all tests.

Every database fixture holds the same small warehouse:

    customer  4 rows   id, name, date_added (DATETIME)
    item      3 rows   id, name, weight (FLOAT), price (DECIMAL)
    sale      4 rows   id, sales_date (DATE), customer_id, item_id, quantity_sold
"""

from collections.abc import Iterator
from pathlib import Path

import duckdb
import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from sqlassert.core.config import get_settings
from sqlassert.core.connections import DuckDBBackend, SqlAlchemyBackend

CUSTOMERS = [
    (1, "Mark", "2020-01-02"),
    (2, "Steve", "2020-02-01T03:12:02.321"),
    (3, "Mary", "2020-03-01T04:22:01.333"),
    (4, "Bill", "2020-04-01T04:22:01.333"),
]

ITEMS = [
    (1, "Widget", 1.5, 2.27),
    (2, "Gadget", 12.25, 19.99),
    (3, "Gizmo", 0.75, 4.5),
]

SALES = [
    (1, "2020-05-01", 1, 1, 3),
    (2, "2020-05-02", 2, 2, 1),
    (3, "2020-05-02", 3, 3, 7),
    (4, "2020-05-03", 4, 1, 2),
]

SQLITE_SCHEMA = [
    "CREATE TABLE customer (id INTEGER PRIMARY KEY, name VARCHAR(80), date_added DATETIME)",
    "CREATE TABLE item (id INTEGER PRIMARY KEY, name VARCHAR(80), weight FLOAT, "
    "price DECIMAL(19, 2))",
    "CREATE TABLE sale (id INTEGER PRIMARY KEY, sales_date DATE, customer_id INTEGER, "
    "item_id INTEGER, quantity_sold INTEGER)",
]

DUCKDB_SCHEMA = [
    "CREATE TABLE customer (id INTEGER PRIMARY KEY, name VARCHAR, date_added TIMESTAMP)",
    "CREATE TABLE item (id INTEGER PRIMARY KEY, name VARCHAR, weight DOUBLE, "
    "price DECIMAL(19, 2))",
    "CREATE TABLE sale (id INTEGER PRIMARY KEY, sales_date DATE, customer_id INTEGER, "
    "item_id INTEGER, quantity_sold INTEGER)",
]


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    """Re-read settings for every test so monkeypatched env vars apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _populate_sqlite(engine: Engine) -> None:
    with engine.begin() as conn:
        for ddl in SQLITE_SCHEMA:
            conn.exec_driver_sql(ddl)
        conn.exec_driver_sql("INSERT INTO customer VALUES (?, ?, ?)", CUSTOMERS)
        conn.exec_driver_sql("INSERT INTO item VALUES (?, ?, ?, ?)", ITEMS)
        conn.exec_driver_sql("INSERT INTO sale VALUES (?, ?, ?, ?, ?)", SALES)


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    """In-memory SQLite warehouse shared through a single pooled connection."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    _populate_sqlite(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sqlite_file_engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed SQLite warehouse; every thread gets its own connection."""
    engine = create_engine(f"sqlite:///{tmp_path / 'warehouse.db'}")
    _populate_sqlite(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sqlite_backend(sqlite_engine: Engine) -> SqlAlchemyBackend:
    return SqlAlchemyBackend(sqlite_engine)


@pytest.fixture
def duckdb_conn() -> Iterator[duckdb.DuckDBPyConnection]:
    """Create an in-memory DuckDB connection for testing."""
    conn = duckdb.connect(":memory:")
    for ddl in DUCKDB_SCHEMA:
        conn.execute(ddl)
    conn.executemany("INSERT INTO customer VALUES (?, ?, ?)", CUSTOMERS)
    conn.executemany("INSERT INTO item VALUES (?, ?, ?, ?)", ITEMS)
    conn.executemany("INSERT INTO sale VALUES (?, ?, ?, ?, ?)", SALES)
    yield conn
    conn.close()


@pytest.fixture
def duckdb_backend(duckdb_conn: duckdb.DuckDBPyConnection) -> DuckDBBackend:
    return DuckDBBackend(duckdb_conn)
