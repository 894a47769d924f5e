"""
Centralized logging setup with optional rotating file handler.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level_name: str = "WARNING", log_file: Optional[Path] = None) -> None:
    """
    Configure console + optional rotating file logging for the package.

    Args:
        level_name: "DEBUG" | "INFO" | "WARNING" | "ERROR"
        log_file: optional path of a log file (5 MB x 3 rotation)
    """
    level = getattr(logging, level_name.upper(), logging.WARNING)

    pkg_logger = logging.getLogger("metaclean")
    pkg_logger.setLevel(logging.DEBUG if log_file else level)

    # Reconfiguring (e.g. repeated main() calls in tests) replaces handlers
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    pkg_logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        pkg_logger.addHandler(file_handler)
