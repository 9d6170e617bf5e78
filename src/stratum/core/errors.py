"""
Structured error types for the stratum upgrade engine.

Every failure the engine raises carries a category, a structured context
(catalog version, phase, routine, cluster, config type, table) and the
chained driver exception, so an operator can see *which* catalog failed in
*which* phase and why, then fix the cause and re-run safely.

Manifesto:
    - **Typed Error Hierarchy:** Schema, query, catalog-state and chain
      failures are distinct types
    - **Rich Context:** Errors carry the catalog version and phase
    - **Error Chaining:** The backend exception is never lost

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                       StratumError                          │
        │        (category, context, cause, with_context)            │
        ├─────────────────────────────────────────────────────────────┤
        │  ConfigError          DatabaseError         UpgradeError    │
        │  (CONFIG)             (DATABASE)            (UPGRADE)       │
        │       │                    │                     │          │
        │  InvalidConfigError   SchemaError          CatalogStateError│
        │                       QueryError           CatalogChainError│
        │                       UnsupportedOperation                  │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = SchemaError("duplicate column", cause=ValueError("boom"))
    >>> error.with_context(catalog_version="2.5.0", table="groups")
    SchemaError(...)
    >>> error.to_dict()["context"]["table"]
    'groups'

Guardrails:
    ❌ DON'T: Swallow a backend exception while wrapping it
    ✅ DO: Pass it as ``cause=`` so the traceback keeps the root cause

Tags:
    error-handling, exception-hierarchy, error-context, stratum, upgrade

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories used for classification and reporting.

    Attributes:
        DATABASE: Backend rejected a statement or the connection failed
        CONFIG: Missing or invalid settings, unknown dialect
        VALIDATION: Malformed schema change or column definition
        UPGRADE: Catalog sequencing and phase failures
        INTERNAL: Bugs, unexpected state
    """

    DATABASE = "DATABASE"
    CONFIG = "CONFIG"
    VALIDATION = "VALIDATION"
    UPGRADE = "UPGRADE"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields relevant to a failure need to be set; ``to_dict()``
    drops the rest so log lines stay small.

    Attributes:
        catalog_version: Target version of the catalog that was running
        phase: ``ddl`` or ``dml``
        routine: Name of the DDL group or DML routine
        cluster: Cluster name for per-cluster config failures
        config_type: Config type being transformed
        table: Table touched by a schema change
        metadata: Additional key-value pairs
    """

    catalog_version: str | None = None
    phase: str | None = None
    routine: str | None = None
    cluster: str | None = None
    config_type: str | None = None
    table: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["catalog_version", "phase", "routine", "cluster", "config_type", "table"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class StratumError(Exception):
    """
    Base exception for all stratum errors.

    Subclasses set ``default_category``. ``cause`` is chained onto
    ``__cause__`` so tracebacks show the original driver error.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> StratumError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SchemaError("rejected").with_context(table="groups")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "context": self.context.to_dict(),
        }
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(StratumError):
    """
    Configuration error.

    Raised for unknown database types and invalid settings; the engine
    cannot proceed until configuration is fixed.
    """

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(StratumError):
    """Database operation failed."""

    default_category = ErrorCategory.DATABASE


class SchemaError(DatabaseError):
    """The backend rejected a DDL statement (duplicate object, bad type, ...)."""

    def __init__(self, message: str, *, sql: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.sql = sql


class QueryError(DatabaseError):
    """A raw query or config-store statement failed."""

    def __init__(self, message: str, *, sql: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.sql = sql


class UnsupportedOperationError(DatabaseError):
    """The dialect cannot express the requested schema change."""

    default_category = ErrorCategory.VALIDATION


# =============================================================================
# UPGRADE ERRORS
# =============================================================================


class UpgradeError(StratumError):
    """
    A catalog run failed.

    ``CatalogChain`` raises this with ``catalog_version`` and ``phase`` set
    in the context and the underlying failure as ``cause``.
    """

    default_category = ErrorCategory.UPGRADE


class CatalogStateError(UpgradeError):
    """A catalog phase was started from an illegal state."""

    def __init__(self, version: str, state: str, action: str):
        self.version = version
        self.state = state
        self.action = action
        super().__init__(
            f"Cannot {action} catalog {version} while in state {state}",
            context=ErrorContext(catalog_version=version),
        )


class CatalogChainError(UpgradeError):
    """Catalogs do not form a contiguous version chain."""


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "StratumError",
    "ConfigError",
    "InvalidConfigError",
    "DatabaseError",
    "SchemaError",
    "QueryError",
    "UnsupportedOperationError",
    "UpgradeError",
    "CatalogStateError",
    "CatalogChainError",
]
