"""
Filesystem scanning and rule application.

This module is responsible for:
- walking the target tree
- pruning excluded directories before descending into them
- yielding the regular files that survive exclusion

This module does NOT:
- clean or verify files
- load configuration or manifest files
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from .rules import RuleEngine, PathClass

logger = logging.getLogger(__name__)


class FileScanner:
    def __init__(self, root: str | Path, rule_engine: RuleEngine, recursive: bool = True):
        self.root = Path(root)
        self.rule_engine = rule_engine
        self.recursive = recursive

    def scan(self) -> Iterator[Path]:
        """
        Walk the filesystem and yield every non-excluded regular file.

        Excluded directories are removed from the walk in place, so
        nothing below them is ever listed. Output is sorted per
        directory to keep runs reproducible.

        Yields:
            Path
        """

        logger.debug("Scanning %s (recursive=%s)", self.root, self.recursive)

        for dirpath, dirnames, filenames in os.walk(self.root, onerror=self._on_error):
            current = Path(dirpath)

            kept = []
            for name in sorted(dirnames):
                if self.rule_engine.is_excluded(current / name, self.root):
                    logger.debug("Excluding directory: %s", current / name)
                    continue
                kept.append(name)
            dirnames[:] = kept if self.recursive else []

            for name in sorted(filenames):
                path = current / name
                path_class = self.rule_engine.classify(path, self.root)
                if path_class is PathClass.EXCLUDED:
                    logger.debug("Excluding file: %s", path)
                    continue
                if path_class is not PathClass.REGULAR_FILE:
                    continue
                yield path

    @staticmethod
    def _on_error(error: OSError) -> None:
        logger.warning("Cannot list %s: %s", error.filename, error.strerror)
