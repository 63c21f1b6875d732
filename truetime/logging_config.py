"""
Logging setup for the sync server.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[%(filename)s:%(lineno)d] - %(message)s"
)

# Third-party loggers kept at INFO regardless of the configured level.
_INFO_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "asyncio")


def configure_logging(log_file: str | None, log_level: str) -> Path | None:
    """
    Install stdout and (optionally) file handlers on the root logger.

    Args:
        log_file: Path of the append-mode log file; empty or None logs to
            stdout only. "~" is expanded.
        log_level: Level name such as "DEBUG" or "info". Unknown names fall
            back to INFO.

    Returns:
        The resolved log file path, or None when file logging is off.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    log_path: Path | None = None
    if log_file:
        log_path = Path(os.path.expanduser(log_file))
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="a", encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    if log_path is not None:
        root_logger.info("Logging to file: %s", log_path)

    for name in _INFO_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)

    return log_path


__all__ = ["LOG_FORMAT", "configure_logging"]
