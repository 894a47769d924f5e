"""
Global configuration and environment handling.

This module is responsible for:
- Defining global constants and compiled-in defaults
- Loading optional settings from the environment
- Providing normalized, ready-to-use configuration values

Nothing in this file should depend on:
- the filesystem
- the manifest structure
- rule evaluation
- CLI arguments

If something here changes, the *entire tool* behavior changes.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Final, List, Tuple

# ---------------------------------------------------------------------------
# Tool / format versioning
# ---------------------------------------------------------------------------

SUPPORTED_MANIFEST_VERSION: Final[int] = 1
TOOL_VERSION: Final[str] = "1.0.0"
DEFAULT_MANIFEST_NAME: Final[str] = "metaclean.yml"

# ---------------------------------------------------------------------------
# Exclusions
# ---------------------------------------------------------------------------

DEFAULT_EXCLUDED_DIRS: Final[Tuple[str, ...]] = (
    ".git",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    "env",
    ".env",
    "dist",
    "build",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
)

DEFAULT_EXCLUDED_FILES: Final[Tuple[str, ...]] = (
    "*.pyc",
    "*.pyo",
    "*.so",
    "*.dylib",
    "*.dll",
    "*.exe",
    "*.o",
    "*.a",
)

# Compressed backups skip these even though they are not all exclusions
BACKUP_EXCLUDES: Final[Tuple[str, ...]] = (
    ".venv",
    "venv",
    "env",
    "node_modules",
    "__pycache__",
    ".git",
    "*.pyc",
    "metadata_backup",
)

# ---------------------------------------------------------------------------
# File kinds
# ---------------------------------------------------------------------------

NOTEBOOK_EXTENSIONS: Final[Tuple[str, ...]] = (".ipynb",)
JSON_EXTENSIONS: Final[Tuple[str, ...]] = (".json",)
YAML_EXTENSIONS: Final[Tuple[str, ...]] = (".yml", ".yaml")

DEFAULT_TEXT_EXTENSIONS: Final[Tuple[str, ...]] = (
    ".md",
    ".txt",
    ".py",
    ".sql",
    ".csv",
    ".json",
    ".sh",
    ".bash",
    ".yml",
    ".yaml",
    ".xml",
    ".html",
    ".css",
    ".js",
    ".ts",
)

SNIFF_SAMPLE_SIZE: Final[int] = 1024

# ---------------------------------------------------------------------------
# Default behavior
# ---------------------------------------------------------------------------

DEFAULT_JOBS: Final[int] = 4
DEFAULT_TOOL_TIMEOUT: Final[float] = 120.0
DEFAULT_BACKUP_DIR: Final[str] = "./metadata_backup"
DEFAULT_PREFERRED_TOOL: Final[str] = "mat2"
DEFAULT_FALLBACK_TOOL: Final[str] = "exiftool"
SUPPORTED_TOOLS: Final[Tuple[str, ...]] = ("mat2", "exiftool")

# Tools the run cannot start without
REQUIRED_TOOLS: Final[Tuple[str, ...]] = ("exiftool",)

# 2000-01-01 00:00:00 local time, same as `touch -t 200001010000.00`
NEUTRAL_EPOCH: Final[float] = datetime(2000, 1, 1, 0, 0, 0).timestamp()

NOTEBOOK_METADATA_TEMPLATE: Final[dict] = {
    "kernelspec": {
        "display_name": "Python 3",
        "language": "python",
        "name": "python3",
    },
    "language_info": {"name": "python"},
}

# ---------------------------------------------------------------------------
# Redaction placeholders
# ---------------------------------------------------------------------------

EMAIL_PLACEHOLDER: Final[str] = "[EMAIL_REMOVED]"
HOME_PLACEHOLDER_USER: Final[str] = "user"
IP_PLACEHOLDER: Final[str] = "XXX.XXX.XXX.XXX"

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------

ENV_SENSITIVE_PATTERNS: Final[str] = "METACLEAN_SENSITIVE_PATTERNS"
ENV_MODE: Final[str] = "METACLEAN_MODE"  # e.g. dev / prod

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_sensitive_patterns() -> List[str]:
    """
    Load extra sensitive substrings from the environment.

    The variable holds a comma-separated list. Blank entries are dropped
    and surrounding whitespace is trimmed.

    Returns:
        list[str]: patterns in declaration order (possibly empty)
    """

    raw = os.getenv(ENV_SENSITIVE_PATTERNS, "")
    return [part.strip() for part in raw.split(",") if part.strip()]


def get_execution_mode() -> str:
    """
    Return the current execution mode.

    Only the default log level depends on it; cleaning behaves
    identically in every mode.

    Returns:
        str: execution mode name
    """

    return os.getenv(ENV_MODE, "prod")
