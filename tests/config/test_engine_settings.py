"""
Tests for flow_config.settings.
"""

from pathlib import Path

import pytest

from flow_config.settings import DEFAULT_DATABASE_URL, EngineSettings


class TestEngineSettings:
    def test_defaults(self):
        settings = EngineSettings.from_env({})

        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.log_level == "INFO"
        assert settings.sql_echo is False
        assert settings.config_dir is None

    def test_from_environment(self):
        settings = EngineSettings.from_env({
            "APPROVAL_FLOW_DATABASE_URL": "postgresql://flows@db/approvals",
            "APPROVAL_FLOW_LOG_LEVEL": "debug",
            "APPROVAL_FLOW_SQL_ECHO": "true",
            "APPROVAL_FLOW_CONFIG_DIR": "/etc/flows",
        })

        assert settings.database_url == "postgresql://flows@db/approvals"
        assert settings.log_level == "DEBUG"
        assert settings.sql_echo is True
        assert settings.config_dir == Path("/etc/flows")

    @pytest.mark.parametrize("value, expected", [
        ("1", True), ("YES", True), (" on ", True), ("0", False), ("no", False), ("", False),
    ])
    def test_sql_echo_values(self, value, expected):
        assert EngineSettings.from_env({"APPROVAL_FLOW_SQL_ECHO": value}).sql_echo is expected

    def test_empty_values_fall_back_to_defaults(self):
        settings = EngineSettings.from_env({
            "APPROVAL_FLOW_DATABASE_URL": "",
            "APPROVAL_FLOW_LOG_LEVEL": "",
        })
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.log_level == "INFO"

    def test_unknown_log_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            EngineSettings.from_env({"APPROVAL_FLOW_LOG_LEVEL": "chatty"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("APPROVAL_FLOW_LOG_LEVEL", "warning")
        assert EngineSettings.from_env().log_level == "WARNING"

    def test_frozen(self):
        settings = EngineSettings()
        with pytest.raises(AttributeError):
            settings.log_level = "DEBUG"
