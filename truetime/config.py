"""
Application settings helpers.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from truetime.services.ntp_time import (
    DEFAULT_NTP_HOST,
    DEFAULT_NTP_PORT,
    DEFAULT_NTP_VERSION,
    DEFAULT_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _parse_bool(env_name: str, default: bool) -> bool:
    raw = os.getenv(env_name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _parse_int(env_name: str, default: int) -> int:
    raw = os.getenv(env_name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", env_name, raw, default)
        return default


def _parse_float(env_name: str, default: float) -> float:
    raw = os.getenv(env_name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", env_name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    """Centralized configuration values."""

    app_version: str
    host: str
    port: int
    log_file: str
    log_level: str
    ntp_host: str
    ntp_port: int
    ntp_version: int
    ntp_timeout_seconds: float
    sync_on_startup: bool
    resync_interval_seconds: float
    sync_api_key: str | None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings derived from the environment."""
    return Settings(
        app_version=os.getenv("APP_VERSION", "0.1.0"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_parse_int("PORT", 8000),
        log_file=os.getenv("LOG_FILE", "truetime.log"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        ntp_host=os.getenv("NTP_HOST", "").strip() or DEFAULT_NTP_HOST,
        ntp_port=_parse_int("NTP_PORT", DEFAULT_NTP_PORT),
        ntp_version=_parse_int("NTP_VERSION", DEFAULT_NTP_VERSION),
        ntp_timeout_seconds=_parse_float(
            "NTP_TIMEOUT_SECONDS",
            DEFAULT_TIMEOUT_SECONDS,
        ),
        sync_on_startup=_parse_bool("SYNC_ON_STARTUP", True),
        resync_interval_seconds=_parse_float("RESYNC_INTERVAL_SECONDS", 0.0),
        sync_api_key=os.getenv("SYNC_API_KEY") or None,
    )


__all__ = ["Settings", "get_settings"]
