"""
Settings for the upgrade engine.

Manifesto:
    The engine has very few knobs, but the one that matters (which
    database backend the schema lives in) must be explicit and validated
    before a single DDL statement is issued. A wrong dialect produces
    statements the backend rejects halfway through a catalog.

    - **Pydantic validation:** ``database_type`` is checked at startup
    - **Environment-driven:** ``STRATUM_*`` variables and ``.env`` files
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> import os
    >>> os.environ["STRATUM_DATABASE_TYPE"] = "postgresql"
    >>> get_settings.cache_clear()
    >>> get_settings().database_type
    <DatabaseType.POSTGRESQL: 'postgresql'>

Tags:
    settings, configuration, pydantic, environment, stratum

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseType(str, Enum):
    """Supported database backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    ORACLE = "oracle"
    DB2 = "db2"


class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"


class UpgradeSettings(BaseSettings):
    """Upgrade engine configuration.

    Fields
    ──────
    database_type     : Backend holding the managed schema; selects the SQL dialect
    sequence_table    : Table holding named id sequences
    config_tag_prefix : Prefix of generated config version tags
    log_level         : Structlog log level
    log_format        : ``json`` or ``console``
    service_name      : ``service.name`` attached to every log line
    """

    model_config = SettingsConfigDict(
        env_prefix="STRATUM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database_type: DatabaseType = Field(default=DatabaseType.SQLITE)
    sequence_table: str = Field(default="ambari_sequences")

    # ── Config documents ─────────────────────────────────────────
    config_tag_prefix: str = Field(default="version")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default=LogFormat.JSON)
    service_name: str = Field(default="stratum")

    @field_validator("database_type", mode="before")
    @classmethod
    def _normalise_database_type(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().lower()
            if value == "postgres":
                return DatabaseType.POSTGRESQL.value
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> UpgradeSettings:
    """Return the process-wide settings, loaded once."""
    return UpgradeSettings()


def configure_logging_from_settings(settings: UpgradeSettings | None = None) -> None:
    """Apply the logging fields of ``settings`` to structlog."""
    from stratum.core.logging import configure_logging

    settings = settings or get_settings()
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format is LogFormat.JSON,
        service=settings.service_name,
    )


__all__ = [
    "DatabaseType",
    "LogFormat",
    "UpgradeSettings",
    "get_settings",
    "configure_logging_from_settings",
]
