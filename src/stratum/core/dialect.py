"""SQL dialect abstraction for backend-agnostic schema upgrades.

Provides a ``Dialect`` protocol and concrete implementations for every
supported database backend. The schema accessor expresses each change as
a logical operation (add column, create table, add constraint) and the
dialect renders the statement, maps logical column types onto physical
ones and supplies the catalog queries used for existence checks.

Manifesto:
    The same upgrade catalog must run against SQLite, PostgreSQL, MySQL,
    Oracle and DB2. Without a dialect layer every catalog would carry
    backend-specific ``ALTER TABLE`` syntax and type names.

    - **One interface:** Dialect protocol for all DDL generation
    - **Type mapping:** ``LogicalType`` → physical type per backend
    - **Introspection:** table / column / constraint existence queries
    - **Testable:** SQLiteDialect runs the full DDL path in-memory

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                     Dialect Abstraction Layer                     │
    └──────────────────────────────────────────────────────────────────┘

    Schema accessor:
    ┌────────────────────────────────────────────────────────────────┐
    │  sql = d.add_column("groups", ColumnSpec("group_type", ...))   │
    │  if not exists(d.column_exists_query(), ("groups", ...)):      │
    │      conn.execute(sql)                                         │
    └────────────────────────────────────────────────────────────────┘
                              │
                              ▼
    ┌──────────┐ ┌──────────────┐ ┌────────┐ ┌────────────┐ ┌──────────┐
    │ SQLite   │ │ PostgreSQL   │ │  DB2   │ │ MySQL      │ │  Oracle  │
    │ ?        │ │ %s           │ │ ?      │ │ %s         │ │ :1, :2   │
    │ INTEGER  │ │ BOOLEAN      │ │SMALLINT│ │ TINYINT(1) │ │NUMBER(1) │
    └──────────┘ └──────────────┘ └────────┘ └────────────┘ └──────────┘

Examples:
    >>> from stratum.core.dialect import get_dialect
    >>> from stratum.core.types import ColumnSpec, LogicalType
    >>> d = get_dialect("oracle")
    >>> d.add_column("groups", ColumnSpec("group_type", LogicalType.STRING, default="LOCAL", nullable=False))
    "ALTER TABLE groups ADD (group_type VARCHAR2(255) DEFAULT 'LOCAL' NOT NULL)"

Guardrails:
    ❌ DON'T: Write backend-specific DDL in upgrade catalogs
    ✅ DO: Express changes as SchemaChange objects and let the dialect render

Tags:
    dialect, sql, ddl, portability, database, stratum, multi-backend

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from stratum.core.errors import InvalidConfigError, UnsupportedOperationError
from stratum.core.types import (
    DEFAULT_STRING_LENGTH,
    ColumnSpec,
    ConstraintKind,
    ForeignKeySpec,
    LogicalType,
)


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every render method returns a complete statement (string) valid for
    the target database. Existence queries take ``(table,)``,
    ``(table, column)`` or ``(table, constraint)`` parameters in the
    dialect's own placeholder style.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    # -- Placeholder generation --------------------------------------------

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    # -- Identifiers and literals ------------------------------------------

    def quote(self, identifier: str) -> str:
        """Quote ``identifier`` if it is a reserved word for this backend."""
        ...

    def column_type(self, logical_type: LogicalType, length: int | None = None) -> str:
        """Physical column type for a logical type."""
        ...

    def literal(self, value: Any, logical_type: LogicalType) -> str:
        """SQL literal for a column default."""
        ...

    def boolean_true(self) -> str:
        ...

    def boolean_false(self) -> str:
        ...

    # -- DDL ---------------------------------------------------------------

    def column_definition(self, column: ColumnSpec) -> str:
        ...

    def add_column(self, table: str, column: ColumnSpec) -> str:
        ...

    def create_table(
        self,
        table: str,
        columns: Sequence[ColumnSpec],
        primary_key: Sequence[str] | None = None,
        primary_key_name: str | None = None,
        foreign_keys: Sequence[ForeignKeySpec] = (),
    ) -> str:
        ...


    def add_constraint(
        self,
        table: str,
        kind: ConstraintKind,
        name: str,
        columns: Sequence[str],
        referenced_table: str | None = None,
        referenced_columns: Sequence[str] = (),
        cascade: bool = False,
    ) -> str:
        ...

    def drop_constraint(self, table: str, name: str, kind: ConstraintKind) -> str:
        ...

    # -- Introspection -----------------------------------------------------

    def table_exists_query(self) -> str:
        """Query returning a row if the table exists. Params: ``(table,)``."""
        ...

    def column_exists_query(self) -> str:
        """Query returning a row if the column exists. Params: ``(table, column)``."""
        ...

    def constraint_exists_query(self) -> str:
        """Query returning a row if the named constraint exists. Params: ``(table, name)``."""
        ...


# =========================================================================
# Shared ANSI behaviour
# =========================================================================


class _AnsiDialect:
    """ANSI ``ALTER TABLE`` rendering shared by the concrete dialects.

    Subclasses provide ``_name``, ``_types`` and the introspection queries,
    and override whatever their backend spells differently.
    """

    _name = "ansi"
    _quote_char = '"'
    _reserved: frozenset[str] = frozenset({"user", "order", "group"})
    _types: dict[LogicalType, str] = {
        LogicalType.STRING: "VARCHAR({length})",
        LogicalType.INTEGER: "INTEGER",
        LogicalType.SHORT: "SMALLINT",
        LogicalType.LONG: "BIGINT",
        LogicalType.BOOLEAN: "BOOLEAN",
    }

    @property
    def name(self) -> str:
        return self._name

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join(self.placeholder(i) for i in range(count))

    def quote(self, identifier: str) -> str:
        if identifier.lower() in self._reserved:
            return f"{self._quote_char}{identifier}{self._quote_char}"
        return identifier

    def column_type(self, logical_type: LogicalType, length: int | None = None) -> str:
        template = self._types[logical_type]
        if logical_type is LogicalType.STRING:
            return template.format(length=length or DEFAULT_STRING_LENGTH)
        return template

    def literal(self, value: Any, logical_type: LogicalType) -> str:
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            if logical_type is LogicalType.BOOLEAN:
                return self.boolean_true() if value else self.boolean_false()
            return "1" if value else "0"
        if isinstance(value, int | float):
            return str(value)
        if isinstance(value, Enum):
            value = value.value
        text = str(value).replace("'", "''")
        return f"'{text}'"

    def boolean_true(self) -> str:
        return "1"

    def boolean_false(self) -> str:
        return "0"

    def column_definition(self, column: ColumnSpec) -> str:
        parts = [self.quote(column.name), self.column_type(column.type, column.length)]
        if column.default is not None:
            parts.append(f"DEFAULT {self.literal(column.default, column.type)}")
        if not column.nullable:
            parts.append("NOT NULL")
        return " ".join(parts)

    def add_column(self, table: str, column: ColumnSpec) -> str:
        return f"ALTER TABLE {self.quote(table)} ADD COLUMN {self.column_definition(column)}"

    def create_table(
        self,
        table: str,
        columns: Sequence[ColumnSpec],
        primary_key: Sequence[str] | None = None,
        primary_key_name: str | None = None,
        foreign_keys: Sequence[ForeignKeySpec] = (),
    ) -> str:
        if not columns:
            raise ValueError(f"table {table} needs at least one column")
        definitions = [self.column_definition(c) for c in columns]
        if primary_key:
            key = f"PRIMARY KEY ({self._column_list(primary_key)})"
            if primary_key_name:
                key = f"CONSTRAINT {primary_key_name} {key}"
            definitions.append(key)
        for fk in foreign_keys:
            body = self._constraint_body(
                ConstraintKind.FOREIGN_KEY,
                fk.columns,
                fk.referenced_table,
                fk.referenced_columns,
                fk.cascade,
            )
            definitions.append(f"CONSTRAINT {fk.name} {body}")
        return f"CREATE TABLE {self.quote(table)} ({', '.join(definitions)})"

    def add_constraint(
        self,
        table: str,
        kind: ConstraintKind,
        name: str,
        columns: Sequence[str],
        referenced_table: str | None = None,
        referenced_columns: Sequence[str] = (),
        cascade: bool = False,
    ) -> str:
        body = self._constraint_body(kind, columns, referenced_table, referenced_columns, cascade)
        return f"ALTER TABLE {self.quote(table)} ADD CONSTRAINT {name} {body}"

    def drop_constraint(self, table: str, name: str, kind: ConstraintKind) -> str:  # noqa: ARG002
        return f"ALTER TABLE {self.quote(table)} DROP CONSTRAINT {name}"

    # -- helpers -----------------------------------------------------------

    def _column_list(self, columns: Sequence[str]) -> str:
        return ", ".join(self.quote(c) for c in columns)

    def _constraint_body(
        self,
        kind: ConstraintKind,
        columns: Sequence[str],
        referenced_table: str | None,
        referenced_columns: Sequence[str],
        cascade: bool,
    ) -> str:
        if not columns:
            raise ValueError("constraint needs at least one column")
        cols = self._column_list(columns)
        if kind is ConstraintKind.UNIQUE:
            return f"UNIQUE ({cols})"
        if kind is ConstraintKind.PRIMARY_KEY:
            return f"PRIMARY KEY ({cols})"
        if not referenced_table or len(referenced_columns) != len(columns):
            raise ValueError("foreign key needs a referenced table and matching referenced columns")
        body = (
            f"FOREIGN KEY ({cols}) REFERENCES {self.quote(referenced_table)} "
            f"({self._column_list(referenced_columns)})"
        )
        if cascade:
            body += " ON DELETE CASCADE"
        return body


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect(_AnsiDialect):
    """SQLite dialect: ``?`` placeholders, unique constraints as indexes.

    SQLite cannot add a primary or foreign key to an existing table, so
    those raise :class:`UnsupportedOperationError`; declare primary and
    foreign keys in ``create_table`` instead.
    """

    _name = "sqlite"
    _reserved = frozenset({"user", "order", "group", "groups"})
    _types = {
        LogicalType.STRING: "VARCHAR({length})",
        LogicalType.INTEGER: "INTEGER",
        LogicalType.SHORT: "SMALLINT",
        LogicalType.LONG: "BIGINT",
        LogicalType.BOOLEAN: "INTEGER",
    }

    def add_constraint(
        self,
        table: str,
        kind: ConstraintKind,
        name: str,
        columns: Sequence[str],
        referenced_table: str | None = None,
        referenced_columns: Sequence[str] = (),
        cascade: bool = False,
    ) -> str:
        if kind is not ConstraintKind.UNIQUE:
            raise UnsupportedOperationError(
                f"SQLite cannot add a {kind.value} constraint to existing table {table}"
            ).with_context(table=table, constraint=name)
        return f"CREATE UNIQUE INDEX {name} ON {self.quote(table)} ({self._column_list(columns)})"

    def drop_constraint(self, table: str, name: str, kind: ConstraintKind) -> str:
        if kind is not ConstraintKind.UNIQUE:
            raise UnsupportedOperationError(
                f"SQLite cannot drop a {kind.value} constraint from table {table}"
            ).with_context(table=table, constraint=name)
        return f"DROP INDEX {name}"

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?"

    def column_exists_query(self) -> str:
        return "SELECT name FROM pragma_table_info(?) WHERE name = ?"

    def constraint_exists_query(self) -> str:
        # Unique constraints are indexes; keys declared inline only appear in the table DDL.
        return (
            "SELECT name FROM sqlite_master WHERE tbl_name = ?1 AND ("
            "(type = 'index' AND name = ?2) "
            "OR (type = 'table' AND instr(sql, 'CONSTRAINT ' || ?2 || ' ') > 0))"
        )


class PostgreSQLDialect(_AnsiDialect):
    """PostgreSQL dialect: ``%s`` placeholders, native ``BOOLEAN``.

    Unquoted identifiers are folded to lower case, so constraint lookups
    compare case-insensitively.
    """

    _name = "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def boolean_true(self) -> str:
        return "TRUE"

    def boolean_false(self) -> str:
        return "FALSE"

    def table_exists_query(self) -> str:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = %s"
        )

    def column_exists_query(self) -> str:
        return (
            "SELECT column_name FROM information_schema.columns "
            "WHERE table_schema = current_schema() AND table_name = %s AND column_name = %s"
        )

    def constraint_exists_query(self) -> str:
        return (
            "SELECT constraint_name FROM information_schema.table_constraints "
            "WHERE table_schema = current_schema() AND table_name = %s "
            "AND LOWER(constraint_name) = LOWER(%s)"
        )


class MySQLDialect(_AnsiDialect):
    """MySQL dialect: ``%s`` placeholders, backtick quoting, ``TINYINT(1)`` booleans.

    ``GROUPS`` became a reserved word in MySQL 8.0.2, so the ``groups``
    table is always quoted.
    """

    _name = "mysql"
    _quote_char = "`"
    _reserved = frozenset({"user", "order", "group", "groups", "key", "rank"})
    _types = {
        LogicalType.STRING: "VARCHAR({length})",
        LogicalType.INTEGER: "INTEGER",
        LogicalType.SHORT: "SMALLINT",
        LogicalType.LONG: "BIGINT",
        LogicalType.BOOLEAN: "TINYINT(1)",
    }

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def boolean_true(self) -> str:
        return "TRUE"

    def boolean_false(self) -> str:
        return "FALSE"

    def drop_constraint(self, table: str, name: str, kind: ConstraintKind) -> str:
        if kind is ConstraintKind.UNIQUE:
            return f"ALTER TABLE {self.quote(table)} DROP INDEX {name}"
        if kind is ConstraintKind.FOREIGN_KEY:
            return f"ALTER TABLE {self.quote(table)} DROP FOREIGN KEY {name}"
        return f"ALTER TABLE {self.quote(table)} DROP PRIMARY KEY"

    def table_exists_query(self) -> str:
        return (
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s"
        )

    def column_exists_query(self) -> str:
        return (
            "SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s AND COLUMN_NAME = %s"
        )

    def constraint_exists_query(self) -> str:
        return (
            "SELECT CONSTRAINT_NAME FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s AND CONSTRAINT_NAME = %s"
        )


class OracleDialect(_AnsiDialect):
    """Oracle dialect: ``:1, :2`` numbered placeholders, ``NUMBER`` types.

    Oracle has no boolean column type; booleans and shorts are ``NUMBER``
    with a precision. ``ADD`` takes a parenthesised column list.
    """

    _name = "oracle"
    _reserved = frozenset({"user", "order", "group", "level", "size"})
    _types = {
        LogicalType.STRING: "VARCHAR2({length})",
        LogicalType.INTEGER: "NUMBER(10)",
        LogicalType.SHORT: "NUMBER(5)",
        LogicalType.LONG: "NUMBER(19)",
        LogicalType.BOOLEAN: "NUMBER(1)",
    }

    def placeholder(self, index: int) -> str:
        return f":{index + 1}"

    def quote(self, identifier: str) -> str:
        if identifier.lower() in self._reserved:
            return f'"{identifier.upper()}"'
        return identifier

    def add_column(self, table: str, column: ColumnSpec) -> str:
        return f"ALTER TABLE {self.quote(table)} ADD ({self.column_definition(column)})"

    def table_exists_query(self) -> str:
        return "SELECT TABLE_NAME FROM USER_TABLES WHERE TABLE_NAME = UPPER(:1)"

    def column_exists_query(self) -> str:
        return (
            "SELECT COLUMN_NAME FROM USER_TAB_COLUMNS "
            "WHERE TABLE_NAME = UPPER(:1) AND COLUMN_NAME = UPPER(:2)"
        )

    def constraint_exists_query(self) -> str:
        return (
            "SELECT CONSTRAINT_NAME FROM USER_CONSTRAINTS "
            "WHERE TABLE_NAME = UPPER(:1) AND CONSTRAINT_NAME = UPPER(:2)"
        )


class DB2Dialect(_AnsiDialect):
    """IBM DB2 dialect: ``?`` (qmark) placeholders, ``SMALLINT`` booleans."""

    _name = "db2"
    _types = {
        LogicalType.STRING: "VARCHAR({length})",
        LogicalType.INTEGER: "INTEGER",
        LogicalType.SHORT: "SMALLINT",
        LogicalType.LONG: "BIGINT",
        LogicalType.BOOLEAN: "SMALLINT",
    }

    def quote(self, identifier: str) -> str:
        if identifier.lower() in self._reserved:
            return f'"{identifier.upper()}"'
        return identifier

    def table_exists_query(self) -> str:
        return (
            "SELECT TABNAME FROM SYSCAT.TABLES "
            "WHERE TABSCHEMA = CURRENT SCHEMA AND TABNAME = UPPER(?)"
        )

    def column_exists_query(self) -> str:
        return (
            "SELECT COLNAME FROM SYSCAT.COLUMNS "
            "WHERE TABSCHEMA = CURRENT SCHEMA AND TABNAME = UPPER(?) AND COLNAME = UPPER(?)"
        )

    def constraint_exists_query(self) -> str:
        return (
            "SELECT CONSTNAME FROM SYSCAT.TABCONST "
            "WHERE TABSCHEMA = CURRENT SCHEMA AND TABNAME = UPPER(?) AND CONSTNAME = UPPER(?)"
        )


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "db2": DB2Dialect(),
    "mysql": MySQLDialect(),
    "oracle": OracleDialect(),
}


def get_dialect(db_type: Any) -> Dialect:
    """Get a dialect by database type name.

    Args:
        db_type: A :class:`~stratum.core.settings.DatabaseType` or one of
                 ``'sqlite'``, ``'postgresql'``, ``'postgres'``, ``'db2'``,
                 ``'mysql'``, ``'oracle'``.

    Raises:
        InvalidConfigError: If ``db_type`` is not recognised.

    Example:
        >>> get_dialect("postgresql").placeholders(2)
        '%s, %s'
    """
    key = db_type.value if isinstance(db_type, Enum) else str(db_type).lower()
    if key not in _DIALECTS:
        raise InvalidConfigError(
            "database_type",
            db_type,
            f"Unknown dialect '{db_type}'. Supported: {sorted(set(_DIALECTS) - {'postgres'})}",
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation.

    Useful for additional backends or test doubles.
    """
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "DB2Dialect",
    "MySQLDialect",
    "OracleDialect",
    "get_dialect",
    "register_dialect",
]
