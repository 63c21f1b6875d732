"""
Tests for settings loading and logging setup.
"""

from __future__ import annotations

import logging

import pytest

from truetime.config import get_settings
from truetime.logging_config import configure_logging

_ENV_NAMES = (
    "NTP_HOST",
    "NTP_PORT",
    "NTP_VERSION",
    "NTP_TIMEOUT_SECONDS",
    "SYNC_ON_STARTUP",
    "RESYNC_INTERVAL_SECONDS",
    "SYNC_API_KEY",
    "LOG_LEVEL",
    "PORT",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Clear sync-related environment variables and the settings cache."""
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestGetSettings:
    """Tests for get_settings()."""

    def test_defaults(self, clean_env) -> None:
        settings = get_settings()

        assert settings.ntp_host == "time.android.com"
        assert settings.ntp_port == 123
        assert settings.ntp_version == 3
        assert settings.ntp_timeout_seconds == 5.0
        assert settings.sync_on_startup is True
        assert settings.resync_interval_seconds == 0.0
        assert settings.sync_api_key is None
        assert settings.log_level == "INFO"

    def test_environment_overrides(self, clean_env) -> None:
        clean_env.setenv("NTP_HOST", "pool.ntp.org")
        clean_env.setenv("NTP_PORT", "1123")
        clean_env.setenv("NTP_TIMEOUT_SECONDS", "1.5")
        clean_env.setenv("SYNC_ON_STARTUP", "false")
        clean_env.setenv("RESYNC_INTERVAL_SECONDS", "900")
        clean_env.setenv("SYNC_API_KEY", "secret")
        clean_env.setenv("LOG_LEVEL", "debug")

        settings = get_settings()

        assert settings.ntp_host == "pool.ntp.org"
        assert settings.ntp_port == 1123
        assert settings.ntp_timeout_seconds == 1.5
        assert settings.sync_on_startup is False
        assert settings.resync_interval_seconds == 900.0
        assert settings.sync_api_key == "secret"
        assert settings.log_level == "DEBUG"

    def test_blank_host_uses_default(self, clean_env) -> None:
        clean_env.setenv("NTP_HOST", "   ")
        assert get_settings().ntp_host == "time.android.com"

    def test_invalid_numbers_fall_back(self, clean_env, caplog) -> None:
        clean_env.setenv("NTP_PORT", "not-a-port")
        clean_env.setenv("NTP_TIMEOUT_SECONDS", "soon")

        settings = get_settings()

        assert settings.ntp_port == 123
        assert settings.ntp_timeout_seconds == 5.0
        assert "Invalid NTP_PORT" in caplog.text

    def test_settings_are_cached(self, clean_env) -> None:
        assert get_settings() is get_settings()


class TestConfigureLogging:
    """Tests for configure_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers = root.handlers[:]
        level = root.level
        yield
        for handler in root.handlers[:]:
            handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_writes_to_file(self, tmp_path) -> None:
        log_file = tmp_path / "logs" / "truetime.log"

        path = configure_logging(str(log_file), "debug")
        logging.getLogger("truetime.test").debug("hello from test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert path == log_file
        assert "hello from test" in log_file.read_text(encoding="utf-8")
        assert logging.getLogger().level == logging.DEBUG

    def test_console_only_without_file(self) -> None:
        assert configure_logging("", "warning") is None
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING

    def test_unknown_level_defaults_to_info(self) -> None:
        configure_logging(None, "chatty")
        assert logging.getLogger().level == logging.INFO
