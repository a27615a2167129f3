"""Core module - configuration, logging, execution backends, and shared models."""

from sqlassert.core.config import Settings, get_settings
from sqlassert.core.connections import (
    DatasourceBackend,
    DuckDBBackend,
    SqlAlchemyBackend,
    create_backend,
)
from sqlassert.core.models.base import (
    DataType,
    Dialect,
    Result,
    UnknownDialectError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Backends
    "DatasourceBackend",
    "DuckDBBackend",
    "SqlAlchemyBackend",
    "create_backend",
    # Models
    "DataType",
    "Dialect",
    "Result",
    "UnknownDialectError",
]
