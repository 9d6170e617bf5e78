"""Upgrade catalogs: one release's schema and config migration.

An :class:`UpgradeCatalog` owns the two phases of a single version's
upgrade and the order inside each:

- ``execute_ddl_updates()`` applies every :class:`DDLGroup` in order
  through the :class:`SchemaAccessor`. The first failure is fatal.
- ``execute_dml_updates()`` runs every :class:`DMLRoutine` in order. A
  failing routine does not stop the others; the first error is re-raised
  once all routines have been attempted.

:class:`CatalogChain` runs several catalogs in version order and reports a
failure as :class:`UpgradeError` with version, phase and cause.

Manifesto:
    Upgrades run once, against production, with exclusive access to the
    schema. Nothing about their order may be implicit: DDL groups and DML
    routines are public, enumerable sequences so they can be reviewed,
    listed and invoked one by one in tests.

Architecture::

    NOT_STARTED ──execute_ddl──▶ DDL_IN_PROGRESS ──▶ DDL_DONE
                                        │                │
                                        ▼           execute_dml
                                      FAILED ◀── DML_IN_PROGRESS ──▶ DONE
                                        │
                                        └──▶ re-run (existence checks make DDL idempotent)

Tags:
    upgrade, catalog, migration, ddl, dml, stratum
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from stratum.core.errors import (
    CatalogChainError,
    CatalogStateError,
    StratumError,
    UpgradeError,
)
from stratum.core.logging import LogContext, get_logger
from stratum.core.protocols import Connection
from stratum.core.settings import UpgradeSettings, get_settings
from stratum.upgrade.config_store import ConfigStore, SqlConfigStore
from stratum.upgrade.rules import ConfigTypeRules
from stratum.upgrade.schema import DDLGroup, SchemaAccessor

logger = get_logger(__name__)


class CatalogState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    DDL_IN_PROGRESS = "DDL_IN_PROGRESS"
    DDL_DONE = "DDL_DONE"
    DML_IN_PROGRESS = "DML_IN_PROGRESS"
    DONE = "DONE"
    FAILED = "FAILED"


class Phase(str, Enum):
    DDL = "ddl"
    DML = "dml"


@dataclass(frozen=True)
class DMLRoutine:
    """A named DML step; ``func`` takes no arguments."""

    name: str
    func: Callable[[], None]

    def __call__(self) -> None:
        self.func()


@dataclass
class RoutineFailure:
    routine: str
    error: BaseException


@dataclass
class ConfigUpdateResult:
    """Outcome of one ``update_config_type`` call across all clusters."""

    config_type: str
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def parse_version(version: str) -> tuple[int, ...]:
    """``"2.5.0"`` → ``(2, 5, 0)``. Trailing zero components are ignored when comparing."""
    try:
        parts = [int(p) for p in version.strip().split(".")]
    except ValueError:
        raise CatalogChainError(f"Invalid catalog version {version!r}") from None
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


class UpgradeCatalog(ABC):
    """Base class for one version's upgrade.

    Subclasses set ``source_version`` / ``target_version`` and implement
    :meth:`ddl_groups` and :meth:`dml_routines`. Collaborators are passed
    in explicitly.

    Parameters:
        schema: Accessor for the managed database.
        configs: Store holding the clusters' config documents.
        tag_prefix: Prefix of generated config version tags.
    """

    source_version: str = ""
    target_version: str = ""

    def __init__(
        self,
        schema: SchemaAccessor,
        configs: ConfigStore,
        *,
        tag_prefix: str = "version",
    ) -> None:
        self.schema = schema
        self.configs = configs
        self.tag_prefix = tag_prefix
        self.state = CatalogState.NOT_STARTED
        self.failures: list[RoutineFailure] = []
        self._ddl_complete = False
        self._last_tag_millis = 0

    @classmethod
    def from_settings(
        cls, conn: Connection, settings: UpgradeSettings | None = None
    ) -> UpgradeCatalog:
        """Build a catalog whose schema and config store share ``conn``."""
        settings = settings or get_settings()
        return cls(
            SchemaAccessor.from_settings(conn, settings),
            SqlConfigStore.from_settings(conn, settings),
            tag_prefix=settings.config_tag_prefix,
        )

    # ------------------------------------------------------------------
    # Declared steps
    # ------------------------------------------------------------------

    @abstractmethod
    def ddl_groups(self) -> Sequence[DDLGroup]:
        """Ordered schema change groups. Referenced tables come first."""

    @abstractmethod
    def dml_routines(self) -> Sequence[DMLRoutine]:
        """Ordered, independent DML routines."""

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def execute_ddl_updates(self) -> None:
        if self.state not in (CatalogState.NOT_STARTED, CatalogState.FAILED):
            raise CatalogStateError(self.target_version, self.state.value, "run DDL for")

        self._ddl_complete = False
        self.state = CatalogState.DDL_IN_PROGRESS
        with LogContext(catalog_version=self.target_version, phase=Phase.DDL.value):
            logger.info("catalog.ddl.started")
            for group in self.ddl_groups():
                try:
                    for change in group.changes:
                        self.schema.apply(change)
                except StratumError as exc:
                    self.state = CatalogState.FAILED
                    exc.with_context(
                        catalog_version=self.target_version,
                        phase=Phase.DDL.value,
                        routine=group.name,
                    )
                    logger.error("catalog.ddl.failed", group=group.name, **exc.to_dict())
                    raise
                except Exception:
                    self.state = CatalogState.FAILED
                    logger.exception("catalog.ddl.failed", group=group.name)
                    raise
                logger.info("catalog.ddl.group.done", group=group.name)

        self._ddl_complete = True
        self.state = CatalogState.DDL_DONE
        logger.info("catalog.ddl.done", catalog_version=self.target_version)

    def execute_dml_updates(self) -> None:
        if not self._ddl_complete or self.state not in (CatalogState.DDL_DONE, CatalogState.FAILED):
            raise CatalogStateError(self.target_version, self.state.value, "run DML for")

        self.state = CatalogState.DML_IN_PROGRESS
        self.failures = []
        with LogContext(catalog_version=self.target_version, phase=Phase.DML.value):
            logger.info("catalog.dml.started")
            for routine in self.dml_routines():
                try:
                    routine()
                except Exception as exc:
                    self.failures.append(RoutineFailure(routine.name, exc))
                    logger.exception("catalog.dml.routine.failed", routine=routine.name)
                    continue
                logger.info("catalog.dml.routine.done", routine=routine.name)

        if self.failures:
            self.state = CatalogState.FAILED
            first = self.failures[0]
            logger.error(
                "catalog.dml.failed",
                catalog_version=self.target_version,
                failed_routines=[f.routine for f in self.failures],
            )
            if isinstance(first.error, StratumError):
                first.error.with_context(
                    catalog_version=self.target_version,
                    phase=Phase.DML.value,
                    routine=first.routine,
                )
            raise first.error

        self.state = CatalogState.DONE
        logger.info("catalog.dml.done", catalog_version=self.target_version)

    # ------------------------------------------------------------------
    # Helpers for routines
    # ------------------------------------------------------------------

    def new_tag(self) -> str:
        """Epoch-millisecond tag, strictly increasing per catalog."""
        millis = max(int(time.time() * 1000), self._last_tag_millis + 1)
        self._last_tag_millis = millis
        return f"{self.tag_prefix}{millis}"

    def update_config_type(self, rules: ConfigTypeRules) -> ConfigUpdateResult:
        """Read, transform and conditionally write one config type on every cluster.

        Clusters missing a required service or the document itself are
        skipped; a document whose properties do not change is left alone.
        """
        result = ConfigUpdateResult(rules.config_type)
        for name, cluster in self.configs.get_clusters().items():
            services = cluster.get_services()
            if not rules.applies_to(services):
                logger.info(
                    "config.update.skipped",
                    cluster=name,
                    config_type=rules.config_type,
                    reason="service_not_installed",
                    requires=sorted(rules.requires),
                )
                result.skipped.append(name)
                continue

            document = cluster.get_desired_config_by_type(rules.config_type)
            if document is None:
                logger.info(
                    "config.update.skipped",
                    cluster=name,
                    config_type=rules.config_type,
                    reason="config_absent",
                )
                result.skipped.append(name)
                continue

            new_properties = rules.apply(document.properties, services)
            if new_properties == dict(document.properties):
                logger.info("config.update.unchanged", cluster=name, config_type=rules.config_type)
                result.unchanged.append(name)
                continue

            self.configs.create_config(
                cluster,
                rules.config_type,
                new_properties,
                self.new_tag(),
                rules.transform_attributes(document.attributes, new_properties),
            )
            result.updated.append(name)
        return result

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.source_version} -> {self.target_version}, "
            f"state={self.state.value})"
        )


class CatalogChain:
    """Runs catalogs in strictly increasing version order.

    Catalogs must link: each ``source_version`` equals the previous
    catalog's ``target_version``.
    """

    def __init__(self, catalogs: Iterable[UpgradeCatalog]) -> None:
        self.catalogs = sorted(catalogs, key=lambda c: parse_version(c.target_version))
        self._validate()

    def _validate(self) -> None:
        seen: set[tuple[int, ...]] = set()
        previous: UpgradeCatalog | None = None
        for catalog in self.catalogs:
            target = parse_version(catalog.target_version)
            if target in seen:
                raise CatalogChainError(f"Duplicate catalog for version {catalog.target_version}")
            seen.add(target)
            if parse_version(catalog.source_version) >= target:
                raise CatalogChainError(
                    f"Catalog {catalog.target_version} does not move forward "
                    f"from {catalog.source_version}"
                )
            if previous is not None and parse_version(catalog.source_version) != parse_version(
                previous.target_version
            ):
                raise CatalogChainError(
                    f"Catalog {catalog.target_version} expects {catalog.source_version} "
                    f"but follows {previous.target_version}"
                )
            previous = catalog

    def pending(self, current_version: str) -> list[UpgradeCatalog]:
        current = parse_version(current_version)
        return [c for c in self.catalogs if parse_version(c.target_version) > current]

    def run(self, current_version: str) -> str:
        """Upgrade from ``current_version``; return the version reached."""
        reached = current_version
        for catalog in self.pending(current_version):
            if parse_version(catalog.source_version) != parse_version(reached):
                raise CatalogChainError(
                    f"Catalog {catalog.target_version} expects {catalog.source_version}, "
                    f"schema is at {reached}"
                )
            for phase, step in (
                (Phase.DDL, catalog.execute_ddl_updates),
                (Phase.DML, catalog.execute_dml_updates),
            ):
                try:
                    step()
                except Exception as exc:
                    raise UpgradeError(
                        f"Upgrade to {catalog.target_version} failed during {phase.value}: {exc}",
                        cause=exc,
                    ).with_context(catalog_version=catalog.target_version, phase=phase.value) from exc
            reached = catalog.target_version
            logger.info("catalog.chain.reached", catalog_version=reached)
        return reached


__all__ = [
    "CatalogState",
    "Phase",
    "DMLRoutine",
    "RoutineFailure",
    "ConfigUpdateResult",
    "parse_version",
    "UpgradeCatalog",
    "CatalogChain",
]
