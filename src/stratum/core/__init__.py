"""Stratum Core -- backend plumbing shared by every upgrade catalog.

Modules
-------
errors      Structured error hierarchy (StratumError, SchemaError, UpgradeError)
types       LogicalType, ConstraintKind, ColumnSpec, ForeignKeySpec
dialect     SQL dialect abstraction (5 backends)
protocols   Connection / Cursor protocols
logging     structlog configuration and context binding
settings    UpgradeSettings (pydantic-settings, ``STRATUM_*``)
"""

from stratum.core.dialect import Dialect, get_dialect, register_dialect
from stratum.core.errors import (
    CatalogChainError,
    CatalogStateError,
    ConfigError,
    DatabaseError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    QueryError,
    SchemaError,
    StratumError,
    UnsupportedOperationError,
    UpgradeError,
)
from stratum.core.protocols import Connection, Cursor
from stratum.core.types import ColumnSpec, ConstraintKind, ForeignKeySpec, LogicalType

__all__ = [
    "Dialect",
    "get_dialect",
    "register_dialect",
    "CatalogChainError",
    "CatalogStateError",
    "ConfigError",
    "DatabaseError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidConfigError",
    "QueryError",
    "SchemaError",
    "StratumError",
    "UnsupportedOperationError",
    "UpgradeError",
    "Connection",
    "Cursor",
    "ColumnSpec",
    "ForeignKeySpec",
    "ConstraintKind",
    "LogicalType",
]
