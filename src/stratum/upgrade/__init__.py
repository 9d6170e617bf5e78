"""Stratum Upgrade -- per-release schema (DDL) and configuration (DML) migrations.

Modules
-------
schema          SchemaAccessor and the SchemaChange dataclasses it applies
config_store    ConfigStore protocol, in-memory and SQL-backed stores
rules           Declarative property rules per config type
catalog         UpgradeCatalog base, state machine, CatalogChain
catalogs        Concrete release catalogs
"""

from stratum.upgrade.catalog import (
    CatalogChain,
    CatalogState,
    ConfigUpdateResult,
    DMLRoutine,
    Phase,
    RoutineFailure,
    UpgradeCatalog,
    parse_version,
)
from stratum.upgrade.config_store import (
    Cluster,
    ConfigDocument,
    ConfigStore,
    InMemoryCluster,
    InMemoryConfigStore,
    SqlCluster,
    SqlConfigStore,
)
from stratum.upgrade.rules import (
    AddProperty,
    ConfigTypeRules,
    MatchMode,
    PropertyRule,
    RemoveProperty,
    RenameProperty,
    ReplaceValue,
)
from stratum.upgrade.schema import (
    AddColumn,
    AddForeignKey,
    AddPrimaryKey,
    AddSequence,
    AddTable,
    AddUniqueConstraint,
    DDLGroup,
    DropConstraint,
    SchemaAccessor,
    SchemaChange,
)

__all__ = [
    "CatalogChain",
    "CatalogState",
    "ConfigUpdateResult",
    "DMLRoutine",
    "Phase",
    "RoutineFailure",
    "UpgradeCatalog",
    "parse_version",
    "Cluster",
    "ConfigDocument",
    "ConfigStore",
    "InMemoryCluster",
    "InMemoryConfigStore",
    "SqlCluster",
    "SqlConfigStore",
    "AddProperty",
    "ConfigTypeRules",
    "MatchMode",
    "PropertyRule",
    "RemoveProperty",
    "RenameProperty",
    "ReplaceValue",
    "AddColumn",
    "AddForeignKey",
    "AddPrimaryKey",
    "AddSequence",
    "AddTable",
    "AddUniqueConstraint",
    "DDLGroup",
    "DropConstraint",
    "SchemaAccessor",
    "SchemaChange",
]
