"""Tests for the Dialect abstraction layer."""

from __future__ import annotations

import pytest

from stratum.core.dialect import (
    DB2Dialect,
    Dialect,
    MySQLDialect,
    OracleDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    get_dialect,
    register_dialect,
)
from stratum.core.errors import InvalidConfigError, UnsupportedOperationError
from stratum.core.settings import DatabaseType
from stratum.core.types import ColumnSpec, ConstraintKind, ForeignKeySpec, LogicalType


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture(params=["sqlite", "postgresql", "db2", "mysql", "oracle"])
def dialect(request: pytest.FixtureRequest) -> Dialect:
    """Parametric fixture: run each test against every dialect."""
    return get_dialect(request.param)


@pytest.fixture
def sqlite() -> SQLiteDialect:
    return SQLiteDialect()


@pytest.fixture
def pg() -> PostgreSQLDialect:
    return PostgreSQLDialect()


@pytest.fixture
def db2() -> DB2Dialect:
    return DB2Dialect()


@pytest.fixture
def mysql() -> MySQLDialect:
    return MySQLDialect()


@pytest.fixture
def oracle() -> OracleDialect:
    return OracleDialect()


GROUP_TYPE = ColumnSpec("group_type", LogicalType.STRING, default="LOCAL", nullable=False)
CREDENTIAL_FLAG = ColumnSpec("credential_store_enabled", LogicalType.SHORT, default=0, nullable=False)


# =========================================================================
# Protocol conformance
# =========================================================================


class TestProtocol:
    """Verify all concrete dialects implement the Dialect protocol."""

    def test_isinstance(self, dialect: Dialect) -> None:
        assert isinstance(dialect, Dialect)

    def test_name(self, dialect: Dialect) -> None:
        assert isinstance(dialect.name, str)
        assert len(dialect.name) > 0

    def test_existence_queries_take_matching_params(self, dialect: Dialect) -> None:
        assert dialect.table_exists_query()
        assert dialect.column_exists_query()
        assert dialect.constraint_exists_query()


# =========================================================================
# Placeholders
# =========================================================================


class TestPlaceholders:
    def test_sqlite(self, sqlite: SQLiteDialect) -> None:
        assert sqlite.placeholders(3) == "?, ?, ?"

    def test_postgresql(self, pg: PostgreSQLDialect) -> None:
        assert pg.placeholders(2) == "%s, %s"

    def test_mysql(self, mysql: MySQLDialect) -> None:
        assert mysql.placeholder(5) == "%s"

    def test_oracle_numbered(self, oracle: OracleDialect) -> None:
        assert oracle.placeholders(3) == ":1, :2, :3"

    def test_db2(self, db2: DB2Dialect) -> None:
        assert db2.placeholder(0) == "?"


# =========================================================================
# Types and literals
# =========================================================================


class TestColumnTypes:
    def test_string_default_length(self, dialect: Dialect) -> None:
        assert "255" in dialect.column_type(LogicalType.STRING)

    def test_string_explicit_length(self, dialect: Dialect) -> None:
        assert "32" in dialect.column_type(LogicalType.STRING, 32)

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("sqlite", "INTEGER"),
            ("postgresql", "BOOLEAN"),
            ("mysql", "TINYINT(1)"),
            ("oracle", "NUMBER(1)"),
            ("db2", "SMALLINT"),
        ],
    )
    def test_boolean_mapping(self, name: str, expected: str) -> None:
        assert get_dialect(name).column_type(LogicalType.BOOLEAN) == expected

    def test_oracle_numeric_types(self, oracle: OracleDialect) -> None:
        assert oracle.column_type(LogicalType.SHORT) == "NUMBER(5)"
        assert oracle.column_type(LogicalType.LONG) == "NUMBER(19)"
        assert oracle.column_type(LogicalType.STRING, 32) == "VARCHAR2(32)"


class TestLiterals:
    def test_string_is_quoted_and_escaped(self, dialect: Dialect) -> None:
        assert dialect.literal("O'Brien", LogicalType.STRING) == "'O''Brien'"

    def test_integer(self, dialect: Dialect) -> None:
        assert dialect.literal(0, LogicalType.SHORT) == "0"

    def test_none_is_null(self, dialect: Dialect) -> None:
        assert dialect.literal(None, LogicalType.STRING) == "NULL"

    def test_boolean_postgres(self, pg: PostgreSQLDialect) -> None:
        assert pg.literal(True, LogicalType.BOOLEAN) == "TRUE"

    def test_boolean_sqlite(self, sqlite: SQLiteDialect) -> None:
        assert sqlite.literal(False, LogicalType.BOOLEAN) == "0"


# =========================================================================
# DDL rendering
# =========================================================================


class TestAddColumn:
    def test_postgres(self, pg: PostgreSQLDialect) -> None:
        assert pg.add_column("groups", GROUP_TYPE) == (
            "ALTER TABLE groups ADD COLUMN group_type VARCHAR(255) DEFAULT 'LOCAL' NOT NULL"
        )

    def test_sqlite_quotes_groups(self, sqlite: SQLiteDialect) -> None:
        assert sqlite.add_column("groups", GROUP_TYPE).startswith('ALTER TABLE "groups" ADD COLUMN')

    def test_mysql_backticks_groups(self, mysql: MySQLDialect) -> None:
        assert mysql.add_column("groups", GROUP_TYPE).startswith("ALTER TABLE `groups` ADD COLUMN")

    def test_oracle_parenthesised(self, oracle: OracleDialect) -> None:
        assert oracle.add_column("servicedesiredstate", CREDENTIAL_FLAG) == (
            "ALTER TABLE servicedesiredstate ADD "
            "(credential_store_enabled NUMBER(5) DEFAULT 0 NOT NULL)"
        )

    def test_nullable_without_default(self, pg: PostgreSQLDialect) -> None:
        sql = pg.add_column("t", ColumnSpec("c", LogicalType.LONG))
        assert sql == "ALTER TABLE t ADD COLUMN c BIGINT"


class TestCreateTable:
    def test_inline_named_primary_key(self, pg: PostgreSQLDialect) -> None:
        sql = pg.create_table(
            "servicecomponent_version",
            [
                ColumnSpec("id", LogicalType.LONG, nullable=False),
                ColumnSpec("state", LogicalType.STRING, length=32, nullable=False),
            ],
            primary_key=["id"],
            primary_key_name="PK_sc_version",
        )
        assert sql == (
            "CREATE TABLE servicecomponent_version (id BIGINT NOT NULL, "
            "state VARCHAR(32) NOT NULL, CONSTRAINT PK_sc_version PRIMARY KEY (id))"
        )

    def test_unnamed_primary_key(self, sqlite: SQLiteDialect) -> None:
        sql = sqlite.create_table("t", [ColumnSpec("id", LogicalType.LONG)], primary_key=["id"])
        assert sql.endswith("PRIMARY KEY (id))")
        assert "CONSTRAINT" not in sql

    def test_inline_foreign_keys(self, pg: PostgreSQLDialect) -> None:
        sql = pg.create_table(
            "servicecomponent_version",
            [
                ColumnSpec("id", LogicalType.LONG, nullable=False),
                ColumnSpec("component_id", LogicalType.LONG, nullable=False),
            ],
            primary_key=["id"],
            primary_key_name="PK_sc_version",
            foreign_keys=[
                ForeignKeySpec(
                    "FK_scv_component_id", ("component_id",), "servicecomponentdesiredstate", ("id",)
                )
            ],
        )
        assert sql.endswith(
            "CONSTRAINT PK_sc_version PRIMARY KEY (id), "
            "CONSTRAINT FK_scv_component_id FOREIGN KEY (component_id) "
            "REFERENCES servicecomponentdesiredstate (id))"
        )

    def test_inline_foreign_key_quotes_reserved_names(self, sqlite: SQLiteDialect) -> None:
        sql = sqlite.create_table(
            "t",
            [ColumnSpec("group_id", LogicalType.LONG)],
            foreign_keys=[ForeignKeySpec("FK_t_group", ("group_id",), "groups", ("id",), cascade=True)],
        )
        assert 'REFERENCES "groups" (id) ON DELETE CASCADE)' in sql

    def test_no_columns_rejected(self, dialect: Dialect) -> None:
        with pytest.raises(ValueError):
            dialect.create_table("t", [])


class TestConstraints:
    def test_unique_ansi(self, pg: PostgreSQLDialect) -> None:
        sql = pg.add_constraint(
            "host_version", ConstraintKind.UNIQUE, "UQ_host_repo", ["repo_version_id", "host_id"]
        )
        assert sql == (
            "ALTER TABLE host_version ADD CONSTRAINT UQ_host_repo UNIQUE (repo_version_id, host_id)"
        )

    def test_foreign_key_without_cascade(self, pg: PostgreSQLDialect) -> None:
        sql = pg.add_constraint(
            "servicecomponent_version",
            ConstraintKind.FOREIGN_KEY,
            "FK_scv_component_id",
            ["component_id"],
            "servicecomponentdesiredstate",
            ["id"],
        )
        assert "FOREIGN KEY (component_id) REFERENCES servicecomponentdesiredstate (id)" in sql
        assert "CASCADE" not in sql

    def test_foreign_key_with_cascade(self, db2: DB2Dialect) -> None:
        sql = db2.add_constraint("a", ConstraintKind.FOREIGN_KEY, "fk", ["b_id"], "b", ["id"], True)
        assert sql.endswith("ON DELETE CASCADE")

    def test_foreign_key_needs_matching_columns(self, pg: PostgreSQLDialect) -> None:
        with pytest.raises(ValueError):
            pg.add_constraint("a", ConstraintKind.FOREIGN_KEY, "fk", ["x", "y"], "b", ["id"])

    def test_sqlite_unique_is_index(self, sqlite: SQLiteDialect) -> None:
        sql = sqlite.add_constraint(
            "groups", ConstraintKind.UNIQUE, "UNQ_groups_0", ["group_name", "group_type"]
        )
        assert sql == 'CREATE UNIQUE INDEX UNQ_groups_0 ON "groups" (group_name, group_type)'

    @pytest.mark.parametrize("kind", [ConstraintKind.PRIMARY_KEY, ConstraintKind.FOREIGN_KEY])
    def test_sqlite_cannot_alter_keys(self, sqlite: SQLiteDialect, kind: ConstraintKind) -> None:
        with pytest.raises(UnsupportedOperationError):
            sqlite.add_constraint("t", kind, "k", ["id"], "other", ["id"])

    def test_sqlite_drop_unique(self, sqlite: SQLiteDialect) -> None:
        assert sqlite.drop_constraint("groups", "UNQ_groups_0", ConstraintKind.UNIQUE) == (
            "DROP INDEX UNQ_groups_0"
        )

    def test_mysql_drop_variants(self, mysql: MySQLDialect) -> None:
        assert mysql.drop_constraint("groups", "UNQ_groups_0", ConstraintKind.UNIQUE) == (
            "ALTER TABLE `groups` DROP INDEX UNQ_groups_0"
        )
        assert "DROP FOREIGN KEY fk" in mysql.drop_constraint("t", "fk", ConstraintKind.FOREIGN_KEY)
        assert mysql.drop_constraint("t", "pk", ConstraintKind.PRIMARY_KEY).endswith(
            "DROP PRIMARY KEY"
        )

    def test_ansi_drop(self, oracle: OracleDialect) -> None:
        assert oracle.drop_constraint("groups", "UNQ_groups_0", ConstraintKind.UNIQUE) == (
            "ALTER TABLE groups DROP CONSTRAINT UNQ_groups_0"
        )


class TestQuoting:
    def test_plain_identifier_untouched(self, dialect: Dialect) -> None:
        assert dialect.quote("host_version") == "host_version"

    def test_oracle_uppercases_reserved(self, oracle: OracleDialect) -> None:
        assert oracle.quote("user") == '"USER"'

    def test_db2_uppercases_reserved(self, db2: DB2Dialect) -> None:
        assert db2.quote("order") == '"ORDER"'


# =========================================================================
# Registry
# =========================================================================


class TestRegistry:
    def test_enum_lookup(self) -> None:
        assert get_dialect(DatabaseType.MYSQL).name == "mysql"

    def test_case_insensitive(self) -> None:
        assert get_dialect("SQLite").name == "sqlite"

    def test_postgres_alias(self) -> None:
        assert get_dialect("postgres").name == "postgresql"

    def test_unknown_raises(self) -> None:
        with pytest.raises(InvalidConfigError) as exc_info:
            get_dialect("derby")
        assert exc_info.value.key == "database_type"
        assert "derby" in str(exc_info.value)

    def test_register_custom(self) -> None:
        class DerbyDialect(DB2Dialect):
            _name = "derby"

        register_dialect("Derby", DerbyDialect())
        assert get_dialect("derby").name == "derby"
