"""
Shared pytest fixtures for stratum tests.

This module provides:
- In-memory SQLite connections with the pre-2.5.0 schema
- The same schema already upgraded to 2.5.0, for re-run tests
- Settings-cache and logging-context cleanup between tests
"""

import sqlite3
import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure stratum package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from stratum.core.dialect import get_dialect
from stratum.core.logging import clear_context
from stratum.core.settings import get_settings
from stratum.upgrade.config_store import SqlConfigStore
from stratum.upgrade.schema import SchemaAccessor


# =============================================================================
# Schemas
# =============================================================================

LEGACY_SCHEMA = """
CREATE TABLE ambari_sequences (
    sequence_name VARCHAR(255) PRIMARY KEY,
    sequence_value BIGINT NOT NULL
);
CREATE TABLE repo_version (
    repo_version_id BIGINT PRIMARY KEY,
    version VARCHAR(255)
);
CREATE TABLE host_version (
    id BIGINT PRIMARY KEY,
    repo_version_id BIGINT NOT NULL,
    host_id BIGINT NOT NULL,
    state VARCHAR(32)
);
CREATE TABLE "groups" (
    group_id INTEGER PRIMARY KEY,
    principal_id BIGINT,
    group_name VARCHAR(255) NOT NULL,
    ldap_group INTEGER DEFAULT 0
);
CREATE UNIQUE INDEX UNQ_groups_0 ON "groups" (group_name);
CREATE TABLE servicecomponentdesiredstate (
    id BIGINT PRIMARY KEY,
    component_name VARCHAR(255),
    cluster_id BIGINT,
    service_name VARCHAR(255)
);
CREATE TABLE servicedesiredstate (
    cluster_id BIGINT,
    service_name VARCHAR(255)
);
CREATE TABLE viewmain (view_name VARCHAR(255) PRIMARY KEY);
CREATE TABLE viewinstance (
    view_instance_id BIGINT PRIMARY KEY,
    view_name VARCHAR(255),
    name VARCHAR(255)
);
CREATE TABLE viewparameter (view_name VARCHAR(255), name VARCHAR(255));

CREATE TABLE clusters (
    cluster_id BIGINT PRIMARY KEY,
    cluster_name VARCHAR(100) NOT NULL
);
CREATE TABLE clusterservices (
    service_name VARCHAR(255),
    cluster_id BIGINT
);
CREATE TABLE clusterconfig (
    config_id BIGINT PRIMARY KEY,
    cluster_id BIGINT NOT NULL,
    type_name VARCHAR(100) NOT NULL,
    version_tag VARCHAR(100) NOT NULL,
    version BIGINT NOT NULL,
    config_data TEXT NOT NULL,
    config_attributes TEXT,
    selected SMALLINT DEFAULT 0 NOT NULL,
    create_timestamp BIGINT NOT NULL
);
"""

UPGRADED_250_SCHEMA = """
ALTER TABLE "groups" ADD COLUMN group_type VARCHAR(255) DEFAULT 'LOCAL' NOT NULL;
DROP INDEX UNQ_groups_0;
CREATE UNIQUE INDEX UNQ_groups_0 ON "groups" (group_name, group_type);
CREATE UNIQUE INDEX UQ_host_repo ON host_version (repo_version_id, host_id);
CREATE TABLE servicecomponent_version (
    id BIGINT NOT NULL,
    component_id BIGINT NOT NULL,
    repo_version_id BIGINT NOT NULL,
    state VARCHAR(32) NOT NULL,
    user_name VARCHAR(255) NOT NULL,
    CONSTRAINT PK_sc_version PRIMARY KEY (id),
    CONSTRAINT FK_scv_component_id FOREIGN KEY (component_id)
        REFERENCES servicecomponentdesiredstate (id),
    CONSTRAINT FK_scv_repo_version_id FOREIGN KEY (repo_version_id)
        REFERENCES repo_version (repo_version_id)
);
INSERT INTO ambari_sequences (sequence_name, sequence_value)
    VALUES ('servicecomponent_version_id_seq', 0);
ALTER TABLE servicedesiredstate ADD COLUMN credential_store_supported SMALLINT DEFAULT 0 NOT NULL;
ALTER TABLE servicedesiredstate ADD COLUMN credential_store_enabled SMALLINT DEFAULT 0 NOT NULL;
"""


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop cached settings and bound log context around every test."""
    for name in ("DATABASE_TYPE", "SEQUENCE_TABLE", "CONFIG_TAG_PREFIX", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(f"STRATUM_{name}", raising=False)
    get_settings.cache_clear()
    clear_context()
    yield
    get_settings.cache_clear()
    clear_context()


# =============================================================================
# SQLite
# =============================================================================


@pytest.fixture
def sqlite_conn() -> Generator[sqlite3.Connection, None, None]:
    """Empty in-memory database."""
    conn = sqlite3.connect(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def legacy_db(sqlite_conn: sqlite3.Connection) -> sqlite3.Connection:
    """In-memory database holding the 2.4.2 schema."""
    sqlite_conn.executescript(LEGACY_SCHEMA)
    return sqlite_conn


@pytest.fixture
def upgraded_db(legacy_db: sqlite3.Connection) -> sqlite3.Connection:
    """In-memory database already carrying every 2.5.0 schema change."""
    legacy_db.executescript(UPGRADED_250_SCHEMA)
    return legacy_db


@pytest.fixture
def sqlite_accessor(legacy_db: sqlite3.Connection) -> SchemaAccessor:
    return SchemaAccessor(legacy_db, get_dialect("sqlite"))


@pytest.fixture
def sql_config_store(legacy_db: sqlite3.Connection) -> SqlConfigStore:
    """SQL config store with two clusters; ``c1`` runs HIVE and ATLAS, ``c2`` runs KAFKA."""
    legacy_db.executemany(
        "INSERT INTO clusters (cluster_id, cluster_name) VALUES (?, ?)",
        [(1, "c1"), (2, "c2")],
    )
    legacy_db.executemany(
        "INSERT INTO clusterservices (service_name, cluster_id) VALUES (?, ?)",
        [("HIVE", 1), ("ATLAS", 1), ("KAFKA", 2)],
    )
    legacy_db.commit()
    return SqlConfigStore(legacy_db, get_dialect("sqlite"))


@pytest.fixture
def statement_log(legacy_db: sqlite3.Connection) -> list[str]:
    """Every statement SQLite executes on ``legacy_db`` from here on."""
    statements: list[str] = []
    legacy_db.set_trace_callback(statements.append)
    return statements
