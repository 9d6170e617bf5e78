"""Upgrade catalog 2.4.2 → 2.5.0.

DDL: host/repo uniqueness, typed groups, the per-component version table
and credential store flags on services. DML: metrics-collector env
cleanup, Kafka metrics host removal, Hive/Tez interactive defaults, LLAP
settings, Zeppelin view removal and Atlas hook enablement.
"""

from __future__ import annotations

from collections.abc import Sequence

from stratum.core.logging import get_logger
from stratum.core.types import ColumnSpec, ConstraintKind, ForeignKeySpec, LogicalType
from stratum.upgrade.catalog import DMLRoutine, UpgradeCatalog
from stratum.upgrade.rules import (
    AddProperty,
    ConfigTypeRules,
    MatchMode,
    RemoveProperty,
    ReplaceValue,
)
from stratum.upgrade.schema import (
    AddColumn,
    AddSequence,
    AddTable,
    AddUniqueConstraint,
    DDLGroup,
    DropConstraint,
)

logger = get_logger(__name__)

HOST_VERSION_TABLE = "host_version"
HOST_VERSION_UNIQUE = "UQ_host_repo"

GROUPS_TABLE = "groups"
GROUP_TYPE_COL = "group_type"
GROUPS_UNIQUE = "UNQ_groups_0"

COMPONENT_TABLE = "servicecomponentdesiredstate"
COMPONENT_VERSION_TABLE = "servicecomponent_version"
COMPONENT_VERSION_PK = "PK_sc_version"
COMPONENT_VERSION_FK_COMPONENT = "FK_scv_component_id"
COMPONENT_VERSION_FK_REPO_VERSION = "FK_scv_repo_version_id"
COMPONENT_VERSION_SEQUENCE = "servicecomponent_version_id_seq"
REPO_VERSION_TABLE = "repo_version"

SERVICE_DESIRED_STATE_TABLE = "servicedesiredstate"
CREDENTIAL_STORE_SUPPORTED_COL = "credential_store_supported"
CREDENTIAL_STORE_ENABLED_COL = "credential_store_enabled"

ZEPPELIN_VIEW_NAME = "ZEPPELIN{1.0.0}"
# Children before parent.
ZEPPELIN_VIEW_TABLES = ("viewinstance", "viewparameter", "viewmain")

SET_ON_FIRST_INVOCATION = "SET_ON_FIRST_INVOCATION"


# =============================================================================
# Config rules
# =============================================================================

AMS_ENV_RULES = ConfigTypeRules(
    "ams-env",
    tuple(
        ReplaceValue("content", fragment, "", MatchMode.CONTAINS)
        for fragment in (
            "\n# HBase normalizer enabled\n",
            "\n# HBase compaction policy enabled\n",
            "export AMS_HBASE_NORMALIZER_ENABLED={{ams_hbase_normalizer_enabled}}\n",
            "export HBASE_FIFO_COMPACTION_POLICY_ENABLED={{ams_hbase_fifo_compaction_policy_enabled}}\n",
            "export HBASE_NORMALIZATION_ENABLED={{ams_hbase_normalizer_enabled}}\n",
            "export HBASE_FIFO_COMPACTION_ENABLED={{ams_hbase_fifo_compaction_policy_enabled}}\n",
        )
    ),
)

KAFKA_BROKER_RULES = ConfigTypeRules(
    "kafka-broker",
    (RemoveProperty("kafka.timeline.metrics.host"),),
)

HIVE_INTERACTIVE_RULES = (
    ConfigTypeRules(
        "hive-interactive-site",
        (
            AddProperty("hive.tez.container.size", SET_ON_FIRST_INVOCATION, force=True),
            AddProperty("hive.auto.convert.join.noconditionaltask.size", "1000000000", force=True),
            AddProperty("hive.llap.io.memory.size", SET_ON_FIRST_INVOCATION, force=True),
            AddProperty("hive.llap.io.enabled", "true", force=True),
        ),
        requires=frozenset({"HIVE"}),
    ),
    ConfigTypeRules(
        "hive-interactive-env",
        (
            AddProperty("llap_heap_size", SET_ON_FIRST_INVOCATION, force=True),
            AddProperty("hive_heapsize", "2048", force=True),
            AddProperty("llap_app_name", "llap0", force=True),
            AddProperty("llap_extra_slider_opts", "", force=True),
        ),
        requires=frozenset({"HIVE"}),
    ),
)

TEZ_INTERACTIVE_RULES = ConfigTypeRules(
    "tez-interactive-site",
    (
        AddProperty("tez.runtime.io.sort.mb", "512", force=True),
        AddProperty("tez.runtime.unordered.output.buffer.size-mb", "100", force=True),
        AddProperty("tez.session.am.dag.submit.timeout.secs", "1209600", force=True),
        AddProperty("tez.runtime.pipelined.sorter.lazy-allocate.memory", "true", force=True),
        AddProperty("tez.am.resource.memory.mb", SET_ON_FIRST_INVOCATION, force=True),
    ),
)

HIVE_LLAP_RULES = ConfigTypeRules(
    "hive-interactive-env",
    (
        RemoveProperty("llap_queue_capacity"),
        AddProperty("num_retries_for_checking_llap_status", "10"),
        AddProperty("llap_headroom_space", "12288"),
    ),
    requires=frozenset({"HIVE"}),
)

# (service, config type, hook flag)
ATLAS_HOOKS = (
    ("HIVE", "hive-env", "hive.atlas.hook"),
    ("STORM", "storm-env", "storm.atlas.hook"),
    ("FALCON", "falcon-env", "falcon.atlas.hook"),
    ("SQOOP", "sqoop-env", "sqoop.atlas.hook"),
)

ATLAS_HOOK_RULES = tuple(
    ConfigTypeRules(
        config_type,
        (ReplaceValue(flag, "false", "true"),),
        requires=frozenset({"ATLAS", service}),
    )
    for service, config_type, flag in ATLAS_HOOKS
)


# =============================================================================
# Catalog
# =============================================================================


class UpgradeCatalog250(UpgradeCatalog):
    """Schema and config changes for 2.5.0."""

    source_version = "2.4.2"
    target_version = "2.5.0"

    def ddl_groups(self) -> Sequence[DDLGroup]:
        return (
            DDLGroup(
                HOST_VERSION_TABLE,
                (
                    AddUniqueConstraint(
                        HOST_VERSION_TABLE, HOST_VERSION_UNIQUE, ("repo_version_id", "host_id")
                    ),
                ),
            ),
            DDLGroup(
                GROUPS_TABLE,
                (
                    AddColumn(
                        GROUPS_TABLE,
                        ColumnSpec(GROUP_TYPE_COL, LogicalType.STRING, default="LOCAL", nullable=False),
                    ),
                    DropConstraint(GROUPS_TABLE, GROUPS_UNIQUE, ConstraintKind.UNIQUE),
                    AddUniqueConstraint(GROUPS_TABLE, GROUPS_UNIQUE, ("group_name", GROUP_TYPE_COL)),
                ),
            ),
            DDLGroup(
                COMPONENT_VERSION_TABLE,
                (
                    AddTable(
                        COMPONENT_VERSION_TABLE,
                        (
                            ColumnSpec("id", LogicalType.LONG, nullable=False),
                            ColumnSpec("component_id", LogicalType.LONG, nullable=False),
                            ColumnSpec("repo_version_id", LogicalType.LONG, nullable=False),
                            ColumnSpec("state", LogicalType.STRING, length=32, nullable=False),
                            ColumnSpec("user_name", LogicalType.STRING, length=255, nullable=False),
                        ),
                        primary_key=("id",),
                        primary_key_name=COMPONENT_VERSION_PK,
                        foreign_keys=(
                            ForeignKeySpec(
                                COMPONENT_VERSION_FK_COMPONENT,
                                ("component_id",),
                                COMPONENT_TABLE,
                                ("id",),
                            ),
                            ForeignKeySpec(
                                COMPONENT_VERSION_FK_REPO_VERSION,
                                ("repo_version_id",),
                                REPO_VERSION_TABLE,
                                ("repo_version_id",),
                            ),
                        ),
                    ),
                    AddSequence(COMPONENT_VERSION_SEQUENCE, 0),
                ),
            ),
            DDLGroup(
                SERVICE_DESIRED_STATE_TABLE,
                (
                    AddColumn(
                        SERVICE_DESIRED_STATE_TABLE,
                        ColumnSpec(
                            CREDENTIAL_STORE_SUPPORTED_COL, LogicalType.SHORT, default=0, nullable=False
                        ),
                    ),
                    AddColumn(
                        SERVICE_DESIRED_STATE_TABLE,
                        ColumnSpec(
                            CREDENTIAL_STORE_ENABLED_COL, LogicalType.SHORT, default=0, nullable=False
                        ),
                    ),
                ),
            ),
        )

    def dml_routines(self) -> Sequence[DMLRoutine]:
        return (
            DMLRoutine("update_ams_configs", self.update_ams_configs),
            DMLRoutine("update_kafka_configs", self.update_kafka_configs),
            DMLRoutine("update_hive_interactive_configs", self.update_hive_interactive_configs),
            DMLRoutine("update_tez_interactive_configs", self.update_tez_interactive_configs),
            DMLRoutine("update_hive_llap_configs", self.update_hive_llap_configs),
            DMLRoutine(
                "update_tables_for_zeppelin_view_removal",
                self.update_tables_for_zeppelin_view_removal,
            ),
            DMLRoutine("update_atlas_configs", self.update_atlas_configs),
        )

    # ------------------------------------------------------------------
    # DML routines
    # ------------------------------------------------------------------

    def update_ams_configs(self) -> None:
        """Strip the normalizer and FIFO compaction exports from ``ams-env``."""
        self.update_config_type(AMS_ENV_RULES)

    def update_kafka_configs(self) -> None:
        self.update_config_type(KAFKA_BROKER_RULES)

    def update_hive_interactive_configs(self) -> None:
        for rules in HIVE_INTERACTIVE_RULES:
            self.update_config_type(rules)

    def update_tez_interactive_configs(self) -> None:
        self.update_config_type(TEZ_INTERACTIVE_RULES)

    def update_hive_llap_configs(self) -> None:
        self.update_config_type(HIVE_LLAP_RULES)

    def update_tables_for_zeppelin_view_removal(self) -> None:
        """Delete the retired Zeppelin view; tables missing on this backend are ignored."""
        ph = self.schema.dialect.placeholder(0)
        for table in ZEPPELIN_VIEW_TABLES:
            self.schema.execute_query(
                f"DELETE FROM {table} WHERE view_name = {ph}",
                (ZEPPELIN_VIEW_NAME,),
                ignore_failure=True,
            )
        logger.info("catalog.zeppelin.view_removed", view_name=ZEPPELIN_VIEW_NAME)

    def update_atlas_configs(self) -> None:
        """Turn on each installed service's Atlas hook when Atlas is installed."""
        for rules in ATLAS_HOOK_RULES:
            self.update_config_type(rules)


__all__ = [
    "UpgradeCatalog250",
    "AMS_ENV_RULES",
    "KAFKA_BROKER_RULES",
    "HIVE_INTERACTIVE_RULES",
    "TEZ_INTERACTIVE_RULES",
    "HIVE_LLAP_RULES",
    "ATLAS_HOOK_RULES",
]
