"""Shared models for sqlassert."""

from sqlassert.core.models.base import (
    NUMERIC_TYPES,
    TEMPORAL_TYPES,
    DataType,
    Dialect,
    DialectTag,
    Result,
    RowLimitPlacement,
    UnknownDialectError,
)

__all__ = [
    "DataType",
    "Dialect",
    "DialectTag",
    "NUMERIC_TYPES",
    "Result",
    "RowLimitPlacement",
    "TEMPORAL_TYPES",
    "UnknownDialectError",
]
