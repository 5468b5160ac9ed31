"""Application-wide logging configuration utilities."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from sheetsync import app_paths

_LOG_PATH: Optional[Path] = None

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "%(message)s"


def configure_logging(level: int = logging.INFO, *, log_path: Optional[Path] = None) -> Path:
    """Configure logging to write to the sheetsync log file and the console.

    Parameters
    ----------
    level:
        The minimum logging level for the root logger. ``logging.INFO`` is used
        by default so every field divergence found during an import is shown.
    log_path:
        Optional override for the log file location, mostly used by tests.

    Returns
    -------
    pathlib.Path
        The path to the log file.
    """

    global _LOG_PATH

    if _LOG_PATH is not None and log_path is None:
        logging.getLogger().setLevel(level)
        return _LOG_PATH

    path = log_path or app_paths.logs_path("sheetsync.log")
    path.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    already_configured = any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(path)
        for handler in root_logger.handlers
    )
    if not already_configured:
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)

    has_console = any(
        type(handler) is logging.StreamHandler for handler in root_logger.handlers
    )
    if not has_console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root_logger.addHandler(console)

    _LOG_PATH = path
    root_logger.debug("Logging configured. Writing to %s", path)
    return path


__all__ = ["configure_logging"]
