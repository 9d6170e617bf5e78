"""Dialect-aware schema accessor and the schema changes it applies.

Provides :class:`SchemaAccessor`, which pairs a
:class:`~stratum.core.protocols.Connection` with a
:class:`~stratum.core.dialect.Dialect` and exposes the primitive DDL
operations an upgrade catalog needs, plus the frozen ``SchemaChange``
dataclasses catalogs use to declare those operations.

Manifesto:
    A catalog may be re-run after a failure halfway through its DDL
    phase. Every primitive therefore checks the backend catalog first and
    skips the statement when the object already exists. What is *not*
    absorbed is a statement the backend rejects: that surfaces as a
    :class:`~stratum.core.errors.SchemaError` and aborts the catalog.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                         SchemaAccessor                             │
    │                                                                    │
    │   conn: Connection        ← protocol from stratum.core.protocols   │
    │   dialect: Dialect         ← from stratum.core.dialect              │
    │                                                                    │
    │   apply(change)            → dispatch on SchemaChange type          │
    │   add_column / create_table / add_constraint / drop_constraint     │
    │   add_sequence             → row in the sequence table             │
    │   execute_query(sql, ignore_failure=False)                         │
    │   table_exists / column_exists / constraint_exists                 │
    └────────────────────────────────────────────────────────────────────┘

Usage:
    >>> accessor = SchemaAccessor(sqlite3.connect(":memory:"), get_dialect("sqlite"))
    >>> accessor.apply(AddColumn("groups", ColumnSpec("group_type", LogicalType.STRING,
    ...                                                default="LOCAL", nullable=False)))
    True

Tags:
    schema, ddl, idempotent, dialect, stratum
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from stratum.core.dialect import Dialect, get_dialect
from stratum.core.errors import QueryError, SchemaError, StratumError
from stratum.core.logging import get_logger
from stratum.core.protocols import Connection, Cursor
from stratum.core.settings import UpgradeSettings, get_settings
from stratum.core.types import ColumnSpec, ConstraintKind, ForeignKeySpec

logger = get_logger(__name__)


# =============================================================================
# Schema changes
# =============================================================================


@dataclass(frozen=True)
class AddColumn:
    """Represents an ADD COLUMN operation."""

    table: str
    column: ColumnSpec


@dataclass(frozen=True)
class AddTable:
    """Represents a CREATE TABLE operation with inline primary and foreign keys."""

    table: str
    columns: tuple[ColumnSpec, ...]
    primary_key: tuple[str, ...] = ()
    primary_key_name: str | None = None
    foreign_keys: tuple[ForeignKeySpec, ...] = ()


@dataclass(frozen=True)
class AddUniqueConstraint:
    table: str
    name: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class AddPrimaryKey:
    table: str
    name: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class AddForeignKey:
    table: str
    name: str
    columns: tuple[str, ...]
    referenced_table: str
    referenced_columns: tuple[str, ...]
    cascade: bool = False


@dataclass(frozen=True)
class DropConstraint:
    table: str
    name: str
    kind: ConstraintKind = ConstraintKind.UNIQUE


@dataclass(frozen=True)
class AddSequence:
    """Registers a named id sequence row, seeded at ``seed``."""

    name: str
    seed: int = 0


SchemaChange = (
    AddColumn
    | AddTable
    | AddUniqueConstraint
    | AddPrimaryKey
    | AddForeignKey
    | DropConstraint
    | AddSequence
)


@dataclass(frozen=True)
class DDLGroup:
    """A named, ordered group of schema changes issued together."""

    name: str
    changes: tuple[SchemaChange, ...] = field(default_factory=tuple)


# =============================================================================
# Accessor
# =============================================================================


class SchemaAccessor:
    """Idempotent DDL primitives against one connection.

    Every mutating method returns ``True`` when a statement was issued and
    ``False`` when the object already existed (or, for drops, was already
    gone). Each statement is committed as soon as it succeeds.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect of the backend behind ``conn``.
        sequence_table: Table holding ``(sequence_name, sequence_value)`` rows.
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect,
        *,
        sequence_table: str = "ambari_sequences",
    ) -> None:
        self._conn = conn
        self._dialect = dialect
        self._sequence_table = sequence_table

    @classmethod
    def from_settings(
        cls, conn: Connection, settings: UpgradeSettings | None = None
    ) -> SchemaAccessor:
        """Build an accessor whose dialect follows ``settings.database_type``."""
        settings = settings or get_settings()
        return cls(
            conn,
            get_dialect(settings.database_type),
            sequence_table=settings.sequence_table,
        )

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    def get_connection(self) -> Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def table_exists(self, table: str) -> bool:
        return self._exists(self._dialect.table_exists_query(), (table,))

    def column_exists(self, table: str, column: str) -> bool:
        return self._exists(self._dialect.column_exists_query(), (table, column))

    def constraint_exists(self, table: str, name: str) -> bool:
        return self._exists(self._dialect.constraint_exists_query(), (table, name))

    # ------------------------------------------------------------------
    # DDL primitives
    # ------------------------------------------------------------------

    def add_column(self, table: str, column: ColumnSpec) -> bool:
        if self.column_exists(table, column.name):
            logger.info("schema.column.skipped", table=table, column=column.name, reason="exists")
            return False
        self._execute_ddl(self._dialect.add_column(table, column), table=table)
        logger.info(
            "schema.column.added",
            table=table,
            column=column.name,
            type=column.type.value,
            nullable=column.nullable,
        )
        return True

    def create_table(
        self,
        table: str,
        columns: Sequence[ColumnSpec],
        primary_key: Sequence[str] | None = None,
        primary_key_name: str | None = None,
        foreign_keys: Sequence[ForeignKeySpec] = (),
    ) -> bool:
        if self.table_exists(table):
            logger.info("schema.table.skipped", table=table, reason="exists")
            return False
        sql = self._dialect.create_table(
            table, columns, primary_key, primary_key_name, foreign_keys
        )
        self._execute_ddl(sql, table=table)
        logger.info("schema.table.created", table=table, columns=[c.name for c in columns])
        return True

    def add_constraint(
        self,
        table: str,
        kind: ConstraintKind,
        name: str,
        columns: Sequence[str],
        referenced_table: str | None = None,
        referenced_columns: Sequence[str] = (),
        cascade: bool = False,
    ) -> bool:
        if self.constraint_exists(table, name):
            logger.info("schema.constraint.skipped", table=table, constraint=name, reason="exists")
            return False
        sql = self._dialect.add_constraint(
            table, kind, name, columns, referenced_table, referenced_columns, cascade
        )
        self._execute_ddl(sql, table=table)
        logger.info("schema.constraint.added", table=table, constraint=name, kind=kind.value)
        return True

    def add_unique_constraint(self, table: str, name: str, *columns: str) -> bool:
        return self.add_constraint(table, ConstraintKind.UNIQUE, name, columns)

    def add_primary_key(self, table: str, name: str, *columns: str) -> bool:
        return self.add_constraint(table, ConstraintKind.PRIMARY_KEY, name, columns)

    def add_foreign_key(
        self,
        table: str,
        name: str,
        columns: Sequence[str],
        referenced_table: str,
        referenced_columns: Sequence[str],
        cascade: bool = False,
    ) -> bool:
        return self.add_constraint(
            table,
            ConstraintKind.FOREIGN_KEY,
            name,
            columns,
            referenced_table,
            referenced_columns,
            cascade,
        )

    def drop_constraint(
        self, table: str, name: str, kind: ConstraintKind = ConstraintKind.UNIQUE
    ) -> bool:
        if not self.constraint_exists(table, name):
            logger.info("schema.constraint.drop_skipped", table=table, constraint=name, reason="absent")
            return False
        self._execute_ddl(self._dialect.drop_constraint(table, name, kind), table=table)
        logger.info("schema.constraint.dropped", table=table, constraint=name, kind=kind.value)
        return True

    def add_sequence(self, name: str, seed: int = 0) -> bool:
        ph = self._dialect.placeholder
        table = self._sequence_table
        if self._exists(f"SELECT sequence_name FROM {table} WHERE sequence_name = {ph(0)}", (name,)):
            logger.info("schema.sequence.skipped", sequence=name, reason="exists")
            return False
        sql = f"INSERT INTO {table} (sequence_name, sequence_value) VALUES ({ph(0)}, {ph(1)})"
        self._execute_ddl(sql, (name, seed), table=table)
        logger.info("schema.sequence.added", sequence=name, seed=seed)
        return True

    def apply(self, change: SchemaChange) -> bool:
        """Apply one :data:`SchemaChange` through the matching primitive."""
        match change:
            case AddColumn(table=table, column=column):
                return self.add_column(table, column)
            case AddTable():
                return self.create_table(
                    change.table,
                    change.columns,
                    change.primary_key or None,
                    change.primary_key_name,
                    change.foreign_keys,
                )
            case AddUniqueConstraint(table=table, name=name, columns=columns):
                return self.add_unique_constraint(table, name, *columns)
            case AddPrimaryKey(table=table, name=name, columns=columns):
                return self.add_primary_key(table, name, *columns)
            case AddForeignKey():
                return self.add_foreign_key(
                    change.table,
                    change.name,
                    change.columns,
                    change.referenced_table,
                    change.referenced_columns,
                    change.cascade,
                )
            case DropConstraint(table=table, name=name, kind=kind):
                return self.drop_constraint(table, name, kind)
            case AddSequence(name=name, seed=seed):
                return self.add_sequence(name, seed)
        raise TypeError(f"Unknown schema change: {change!r}")

    # ------------------------------------------------------------------
    # Raw queries
    # ------------------------------------------------------------------

    def execute_query(
        self, sql: str, params: tuple = (), *, ignore_failure: bool = False
    ) -> Cursor | None:
        """Execute ``sql`` and commit.

        With ``ignore_failure`` a failing statement is rolled back, logged
        as a warning and ``None`` is returned; otherwise it raises
        :class:`QueryError`.
        """
        try:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor
        except Exception as exc:
            self._conn.rollback()
            if ignore_failure:
                logger.warning("schema.query.ignored_failure", sql=sql, error=str(exc))
                return None
            raise QueryError(f"Query failed: {exc}", sql=sql, cause=exc) from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _exists(self, sql: str, params: tuple[Any, ...]) -> bool:
        try:
            return self._conn.execute(sql, params).fetchone() is not None
        except Exception as exc:
            raise QueryError(f"Existence check failed: {exc}", sql=sql, cause=exc) from exc

    def _execute_ddl(self, sql: str, params: tuple = (), *, table: str) -> None:
        logger.debug("schema.statement", sql=sql)
        try:
            self._conn.execute(sql, params)
            self._conn.commit()
        except StratumError:
            raise
        except Exception as exc:
            self._conn.rollback()
            raise SchemaError(
                f"Backend rejected statement on {table}: {exc}", sql=sql, cause=exc
            ).with_context(table=table) from exc


__all__ = [
    "AddColumn",
    "AddTable",
    "AddUniqueConstraint",
    "AddPrimaryKey",
    "AddForeignKey",
    "DropConstraint",
    "AddSequence",
    "SchemaChange",
    "DDLGroup",
    "SchemaAccessor",
]
