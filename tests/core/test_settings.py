"""Tests for core.settings module.

Covers:
- UpgradeSettings defaults
- STRATUM_* environment overrides
- Validation of database type and log level
- Cached settings and logging configuration from settings
"""

import pytest
import structlog
from pydantic import ValidationError

from stratum.core.settings import (
    DatabaseType,
    LogFormat,
    UpgradeSettings,
    configure_logging_from_settings,
    get_settings,
)


class TestUpgradeSettingsDefaults:
    def test_default_database_type(self):
        assert UpgradeSettings().database_type is DatabaseType.SQLITE

    def test_default_sequence_table(self):
        assert UpgradeSettings().sequence_table == "ambari_sequences"

    def test_default_tag_prefix(self):
        assert UpgradeSettings().config_tag_prefix == "version"

    def test_default_logging(self):
        s = UpgradeSettings()
        assert s.log_level == "INFO"
        assert s.log_format is LogFormat.JSON
        assert s.service_name == "stratum"


class TestUpgradeSettingsEnvOverride:
    def test_database_type_from_env(self, monkeypatch):
        monkeypatch.setenv("STRATUM_DATABASE_TYPE", "oracle")
        assert UpgradeSettings().database_type is DatabaseType.ORACLE

    def test_postgres_alias(self, monkeypatch):
        monkeypatch.setenv("STRATUM_DATABASE_TYPE", "Postgres")
        assert UpgradeSettings().database_type is DatabaseType.POSTGRESQL

    def test_log_level_upper_cased(self, monkeypatch):
        monkeypatch.setenv("STRATUM_LOG_LEVEL", "debug")
        assert UpgradeSettings().log_level == "DEBUG"

    def test_unprefixed_env_ignored(self, monkeypatch):
        monkeypatch.setenv("DATABASE_TYPE", "mysql")
        assert UpgradeSettings().database_type is DatabaseType.SQLITE


class TestUpgradeSettingsValidation:
    def test_unknown_database_type(self):
        with pytest.raises(ValidationError):
            UpgradeSettings(database_type="derby")

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            UpgradeSettings(log_level="LOUD")

    def test_kwargs_override(self):
        s = UpgradeSettings(database_type="mysql", sequence_table="seq")
        assert s.database_type is DatabaseType.MYSQL
        assert s.sequence_table == "seq"


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_cache_clear_rereads_env(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("STRATUM_CONFIG_TAG_PREFIX", "upgrade")
        get_settings.cache_clear()
        second = get_settings()
        assert second is not first
        assert second.config_tag_prefix == "upgrade"


class TestConfigureLoggingFromSettings:
    def teardown_method(self):
        structlog.reset_defaults()

    def test_json_format_uses_json_renderer(self):
        configure_logging_from_settings(UpgradeSettings(log_format="json"))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_format_uses_console_renderer(self):
        configure_logging_from_settings(UpgradeSettings(log_format="console"))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
