"""Read/write access to per-cluster configuration documents.

A configuration document is a flat ``str -> str`` map identified by
``(cluster name, config type)``. The store only ever *adds* versions:
:meth:`ConfigStore.create_config` writes a new immutable version and makes
it the desired one, leaving every earlier version readable.

Manifesto:
    Upgrade routines must never edit a document in place. An operator who
    disagrees with a migrated value needs the previous version to compare
    against, and a re-run must see exactly what the last run wrote.

    - **Immutable documents:** properties and attributes are read-only views
    - **Append-only history:** every write is a new version
    - **Narrow interface:** get-current, create-new-version, read history

Architecture::

    ConfigStore (protocol)
    ├── InMemoryConfigStore: dict-backed; dry runs and tests
    └── SqlConfigStore: clusters / clusterservices / clusterconfig tables

    Cluster (protocol)
    ├── name
    ├── get_desired_config_by_type(config_type) → ConfigDocument | None
    └── get_services() → set[str]

Tags:
    config, cluster, versioning, stratum
"""

from __future__ import annotations

import json
import time
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol, runtime_checkable

from stratum.core.dialect import Dialect, get_dialect
from stratum.core.errors import ConfigError, QueryError
from stratum.core.logging import get_logger
from stratum.core.protocols import Connection
from stratum.core.settings import UpgradeSettings, get_settings

logger = get_logger(__name__)

Attributes = Mapping[str, Mapping[str, str]]


@dataclass(frozen=True)
class ConfigDocument:
    """One version of a cluster's config document.

    ``attributes`` maps an attribute name (e.g. ``final``) to a
    ``property key -> value`` map. Both mappings are frozen on creation.
    """

    config_type: str
    tag: str
    version: int
    properties: Mapping[str, str] = field(default_factory=dict)
    attributes: Attributes = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))
        frozen = {name: MappingProxyType(dict(values)) for name, values in self.attributes.items()}
        object.__setattr__(self, "attributes", MappingProxyType(frozen))

    def properties_dict(self) -> dict[str, str]:
        """Mutable copy of the properties."""
        return dict(self.properties)

    def attributes_dict(self) -> dict[str, dict[str, str]]:
        """Mutable deep copy of the attributes."""
        return {name: dict(values) for name, values in self.attributes.items()}


@runtime_checkable
class Cluster(Protocol):
    """Narrow read view of one cluster."""

    @property
    def name(self) -> str:
        ...

    def get_desired_config_by_type(self, config_type: str) -> ConfigDocument | None:
        ...

    def get_services(self) -> set[str]:
        ...


@runtime_checkable
class ConfigStore(Protocol):
    """Read clusters, write new config versions."""

    def get_clusters(self) -> dict[str, Cluster]:
        ...

    def create_config(
        self,
        cluster: Cluster,
        config_type: str,
        properties: Mapping[str, str],
        tag: str,
        attributes: Attributes | None = None,
    ) -> ConfigDocument:
        ...


# =============================================================================
# In-memory implementation
# =============================================================================


class InMemoryCluster:
    """Dict-backed cluster holding the full version history per config type."""

    def __init__(self, name: str, services: Iterable[str] = ()) -> None:
        self._name = name
        self._services = set(services)
        self._history: dict[str, list[ConfigDocument]] = defaultdict(list)
        self._desired: dict[str, ConfigDocument] = {}

    @property
    def name(self) -> str:
        return self._name

    def get_desired_config_by_type(self, config_type: str) -> ConfigDocument | None:
        return self._desired.get(config_type)

    def get_services(self) -> set[str]:
        return set(self._services)

    def add_service(self, service: str) -> None:
        self._services.add(service)

    def get_config_history(self, config_type: str) -> list[ConfigDocument]:
        return list(self._history.get(config_type, ()))

    def add_config(
        self,
        config_type: str,
        properties: Mapping[str, str],
        tag: str,
        attributes: Attributes | None = None,
    ) -> ConfigDocument:
        """Append a new version and make it desired."""
        document = ConfigDocument(
            config_type=config_type,
            tag=tag,
            version=len(self._history[config_type]) + 1,
            properties=properties,
            attributes=attributes or {},
        )
        self._history[config_type].append(document)
        self._desired[config_type] = document
        return document

    def __repr__(self) -> str:
        return f"InMemoryCluster({self._name!r}, services={sorted(self._services)})"


class InMemoryConfigStore:
    """:class:`ConfigStore` over :class:`InMemoryCluster` objects."""

    def __init__(self, clusters: Iterable[InMemoryCluster] = ()) -> None:
        self._clusters: dict[str, InMemoryCluster] = {}
        for cluster in clusters:
            self.add_cluster(cluster)

    def add_cluster(self, cluster: InMemoryCluster) -> None:
        self._clusters[cluster.name] = cluster

    def get_clusters(self) -> dict[str, Cluster]:
        return dict(self._clusters)

    def create_config(
        self,
        cluster: Cluster,
        config_type: str,
        properties: Mapping[str, str],
        tag: str,
        attributes: Attributes | None = None,
    ) -> ConfigDocument:
        target = self._clusters.get(cluster.name)
        if target is None:
            raise ConfigError(f"Unknown cluster {cluster.name!r}").with_context(
                cluster=cluster.name, config_type=config_type
            )
        document = target.add_config(config_type, properties, tag, attributes)
        logger.info(
            "config.version.created",
            cluster=cluster.name,
            config_type=config_type,
            tag=tag,
            version=document.version,
        )
        return document

    def get_config_history(self, cluster_name: str, config_type: str) -> list[ConfigDocument]:
        return self._clusters[cluster_name].get_config_history(config_type)


# =============================================================================
# SQL implementation
# =============================================================================


class SqlCluster:
    """Cluster row read lazily through a :class:`SqlConfigStore`."""

    def __init__(self, store: SqlConfigStore, cluster_id: int, name: str) -> None:
        self._store = store
        self.cluster_id = cluster_id
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def get_desired_config_by_type(self, config_type: str) -> ConfigDocument | None:
        return self._store.desired_config(self.cluster_id, config_type)

    def get_services(self) -> set[str]:
        return self._store.services(self.cluster_id)

    def __repr__(self) -> str:
        return f"SqlCluster({self._name!r}, cluster_id={self.cluster_id})"


class SqlConfigStore:
    """:class:`ConfigStore` over the managed system's own tables.

    Tables used::

        clusters        (cluster_id, cluster_name)
        clusterservices (service_name, cluster_id)
        clusterconfig   (config_id, cluster_id, type_name, version_tag, version,
                         config_data, config_attributes, selected, create_timestamp)

    ``config_data`` and ``config_attributes`` hold JSON objects. Exactly one
    row per ``(cluster_id, type_name)`` has ``selected = 1``: the desired
    version. ``config_id`` and ``version`` are allocated as ``MAX + 1``,
    which is safe because an upgrade has exclusive write access.
    """

    def __init__(self, conn: Connection, dialect: Dialect) -> None:
        self.conn = conn
        self.dialect = dialect

    @classmethod
    def from_settings(
        cls, conn: Connection, settings: UpgradeSettings | None = None
    ) -> SqlConfigStore:
        settings = settings or get_settings()
        return cls(conn, get_dialect(settings.database_type))

    def ph(self, index: int) -> str:
        return self.dialect.placeholder(index)

    # ------------------------------------------------------------------
    # ConfigStore
    # ------------------------------------------------------------------

    def get_clusters(self) -> dict[str, Cluster]:
        rows = self._query("SELECT cluster_id, cluster_name FROM clusters ORDER BY cluster_name")
        return {row[1]: SqlCluster(self, row[0], row[1]) for row in rows}

    def create_config(
        self,
        cluster: Cluster,
        config_type: str,
        properties: Mapping[str, str],
        tag: str,
        attributes: Attributes | None = None,
    ) -> ConfigDocument:
        cluster_id = self._cluster_id(cluster.name)
        ph = self.ph
        version = (
            self._scalar(
                f"SELECT MAX(version) FROM clusterconfig "
                f"WHERE cluster_id = {ph(0)} AND type_name = {ph(1)}",
                (cluster_id, config_type),
            )
            or 0
        ) + 1
        config_id = (self._scalar("SELECT MAX(config_id) FROM clusterconfig") or 0) + 1

        document = ConfigDocument(
            config_type=config_type,
            tag=tag,
            version=version,
            properties=properties,
            attributes=attributes or {},
        )
        insert = (
            "INSERT INTO clusterconfig (config_id, cluster_id, type_name, version_tag, version, "
            "config_data, config_attributes, selected, create_timestamp) "
            f"VALUES ({self.dialect.placeholders(9)})"
        )
        params = (
            config_id,
            cluster_id,
            config_type,
            tag,
            version,
            json.dumps(document.properties_dict(), sort_keys=True),
            json.dumps(document.attributes_dict(), sort_keys=True),
            1,
            int(time.time() * 1000),
        )
        try:
            self.conn.execute(
                f"UPDATE clusterconfig SET selected = 0 "
                f"WHERE cluster_id = {ph(0)} AND type_name = {ph(1)}",
                (cluster_id, config_type),
            )
            self.conn.execute(insert, params)
            self.conn.commit()
        except Exception as exc:
            self.conn.rollback()
            raise QueryError(
                f"Failed to store {config_type} for cluster {cluster.name}: {exc}",
                sql=insert,
                cause=exc,
            ).with_context(cluster=cluster.name, config_type=config_type) from exc

        logger.info(
            "config.version.created",
            cluster=cluster.name,
            config_type=config_type,
            tag=tag,
            version=version,
        )
        return document

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def desired_config(self, cluster_id: int, config_type: str) -> ConfigDocument | None:
        rows = self._query(
            f"SELECT type_name, version_tag, version, config_data, config_attributes "
            f"FROM clusterconfig WHERE cluster_id = {self.ph(0)} AND type_name = {self.ph(1)} "
            f"AND selected = 1 ORDER BY version DESC",
            (cluster_id, config_type),
        )
        return self._to_document(rows[0]) if rows else None

    def services(self, cluster_id: int) -> set[str]:
        rows = self._query(
            f"SELECT service_name FROM clusterservices WHERE cluster_id = {self.ph(0)}",
            (cluster_id,),
        )
        return {row[0] for row in rows}

    def get_config_history(self, cluster_name: str, config_type: str) -> list[ConfigDocument]:
        rows = self._query(
            f"SELECT type_name, version_tag, version, config_data, config_attributes "
            f"FROM clusterconfig WHERE cluster_id = {self.ph(0)} AND type_name = {self.ph(1)} "
            f"ORDER BY version",
            (self._cluster_id(cluster_name), config_type),
        )
        return [self._to_document(row) for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _cluster_id(self, cluster_name: str) -> int:
        cluster_id = self._scalar(
            f"SELECT cluster_id FROM clusters WHERE cluster_name = {self.ph(0)}", (cluster_name,)
        )
        if cluster_id is None:
            raise ConfigError(f"Unknown cluster {cluster_name!r}").with_context(cluster=cluster_name)
        return cluster_id

    def _query(self, sql: str, params: tuple = ()) -> list[Any]:
        try:
            return list(self.conn.execute(sql, params).fetchall())
        except Exception as exc:
            raise QueryError(f"Config store query failed: {exc}", sql=sql, cause=exc) from exc

    def _scalar(self, sql: str, params: tuple = ()) -> Any:
        rows = self._query(sql, params)
        return rows[0][0] if rows else None

    @staticmethod
    def _to_document(row: Any) -> ConfigDocument:
        type_name, tag, version, data, attributes = row[0], row[1], row[2], row[3], row[4]
        return ConfigDocument(
            config_type=type_name,
            tag=tag,
            version=version,
            properties=json.loads(data) if data else {},
            attributes=json.loads(attributes) if attributes else {},
        )


__all__ = [
    "Attributes",
    "ConfigDocument",
    "Cluster",
    "ConfigStore",
    "InMemoryCluster",
    "InMemoryConfigStore",
    "SqlCluster",
    "SqlConfigStore",
]
