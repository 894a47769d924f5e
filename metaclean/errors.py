"""
Exception taxonomy.

Fatal errors (usage, dependencies, backup) abort the run from the CLI.
Per-file problems never surface as exceptions past the pipeline: they
are captured into the file's record and the run continues.
"""

from __future__ import annotations


class MetacleanError(RuntimeError):
    """Base class for all errors raised by metaclean."""


class UsageError(MetacleanError):
    """Bad arguments, missing target or invalid configuration."""


class ManifestError(UsageError):
    """The YAML manifest could not be loaded or is invalid."""


class DependencyMissing(MetacleanError):
    """A required external tool is not installed."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(
            "Missing required dependencies: " + ", ".join(self.missing)
        )


class BackupError(MetacleanError):
    """A requested backup could not be created."""


class NotebookError(MetacleanError):
    """A notebook could not be parsed or has an unexpected shape."""


class InvalidTransition(MetacleanError):
    """A file record was moved out of a terminal state."""
