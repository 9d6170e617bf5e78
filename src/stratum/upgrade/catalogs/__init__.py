"""Release catalogs, in version order."""

from __future__ import annotations

from stratum.upgrade.catalog import CatalogChain, UpgradeCatalog
from stratum.upgrade.catalogs.catalog_250 import UpgradeCatalog250
from stratum.upgrade.config_store import ConfigStore
from stratum.upgrade.schema import SchemaAccessor

CATALOGS: tuple[type[UpgradeCatalog], ...] = (UpgradeCatalog250,)


def build_chain(
    schema: SchemaAccessor, configs: ConfigStore, *, tag_prefix: str = "version"
) -> CatalogChain:
    """Instantiate every known catalog against one schema and config store."""
    return CatalogChain(cls(schema, configs, tag_prefix=tag_prefix) for cls in CATALOGS)


__all__ = ["CATALOGS", "UpgradeCatalog250", "build_chain"]
