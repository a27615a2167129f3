"""Base models and types used across all modules.

This module contains the fundamental types that don't belong to any specific
rule family: the result wrapper, the value domains a column can be declared
with, and the SQL dialects a datasource can speak.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator


class Result[T](BaseModel):
    """Result type for operations that can fail.

    Use this instead of exceptions for expected failures.
    Exceptions are reserved for unexpected/programming errors.
    """

    success: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, value: T) -> Result[T]:
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> Result[T]:
        """Create a failed result."""
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Get the value or raise if failed."""
        if not self.success:
            raise ValueError(f"Result failed: {self.error}")
        assert self.value is not None
        return self.value


# === Enums ===


class DataType(str, Enum):
    """Value domain a column is declared with."""

    DATE = "DATE"
    DATETIME = "DATETIME"
    DECIMAL = "DECIMAL"
    FLOAT = "FLOAT"
    INTEGER = "INTEGER"
    TEXT = "TEXT"

    @property
    def is_numeric(self) -> bool:
        return self in (DataType.DECIMAL, DataType.FLOAT, DataType.INTEGER)

    @property
    def is_temporal(self) -> bool:
        return self in (DataType.DATE, DataType.DATETIME)


NUMERIC_TYPES = (DataType.DECIMAL, DataType.FLOAT, DataType.INTEGER)
TEMPORAL_TYPES = (DataType.DATE, DataType.DATETIME)


class RowLimitPlacement(str, Enum):
    """Where a dialect puts its row-limiting clause."""

    TOP = "top"  # SELECT TOP (n) ...
    LIMIT = "limit"  # ... LIMIT n
    FETCH_FIRST = "fetch_first"  # ... FETCH FIRST n ROWS ONLY


class UnknownDialectError(ValueError):
    """A dialect tag that is not one of the recognized names."""


class Dialect(str, Enum):
    """SQL variant of a target store."""

    DB2 = "db2"
    MYSQL = "mysql"
    MSSQL = "mssql"
    ORACLE = "oracle"
    POSTGRES = "postgres"
    SQLITE = "sqlite"

    @classmethod
    def parse(cls, tag: Any) -> Dialect:
        """Resolve a dialect tag, case-insensitively.

        Raises:
            UnknownDialectError: If the tag is not a recognized dialect name
        """
        if isinstance(tag, Dialect):
            return tag
        name = str(tag).strip().lower()
        name = _DIALECT_ALIASES.get(name, name)
        for dialect in cls:
            if dialect.value == name:
                return dialect
        options = ", ".join(f"'{d.value}'" for d in cls)
        raise UnknownDialectError(
            f"{tag!r} is not a recognized dialect name. Available options include {options} "
            "(and 'postgresql' as an alias of 'postgres')."
        )

    @property
    def row_limit(self) -> RowLimitPlacement:
        if self is Dialect.MSSQL:
            return RowLimitPlacement.TOP
        if self in (Dialect.ORACLE, Dialect.DB2):
            return RowLimitPlacement.FETCH_FIRST
        return RowLimitPlacement.LIMIT

    @property
    def has_native_temporal_types(self) -> bool:
        """SQLite stores dates and timestamps as text."""
        return self is not Dialect.SQLITE

    def quote_identifier(self, name: str) -> str:
        if self is Dialect.MSSQL:
            return f"[{name}]"
        return f'"{name}"'


_DIALECT_ALIASES = {"postgresql": "postgres"}

# Use this wherever a model accepts a dialect so that unknown tags fail with the
# list of valid options.
DialectTag = Annotated[Dialect, BeforeValidator(Dialect.parse)]
