"""
Post-cleaning integrity verification.

A file only counts as cleaned after it passes here. A notebook left
unparseable by a cleaning step is a failure even if every step
reported success.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .config import JSON_EXTENSIONS, YAML_EXTENSIONS
from .models import FileKind, FileRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    reason: str = ""


def parses_as_structured(path: Path) -> Optional[bool]:
    """
    Check whether a JSON/YAML/notebook file parses.

    Returns None for files that are not structured formats.
    """

    suffix = path.suffix.lower()
    try:
        if suffix == ".ipynb":
            with path.open("r", encoding="utf-8") as fh:
                return isinstance(json.load(fh), dict)
        if suffix in JSON_EXTENSIONS:
            with path.open("r", encoding="utf-8") as fh:
                json.load(fh)
            return True
        if suffix in YAML_EXTENSIONS:
            with path.open("r", encoding="utf-8") as fh:
                # multi-document files are valid YAML too
                for _ in yaml.safe_load_all(fh):
                    pass
            return True
    except (OSError, UnicodeDecodeError, ValueError, yaml.YAMLError):
        return False
    return None


class IntegrityVerifier:
    def verify(self, record: FileRecord) -> VerificationResult:
        path = record.path

        if not path.is_file():
            return VerificationResult(False, "file not found")

        if not os.access(path, os.R_OK):
            return VerificationResult(False, "file not readable")

        try:
            with path.open("rb") as fh:
                fh.read(1)
            size = path.stat().st_size
        except OSError as e:
            return VerificationResult(False, f"file not readable: {e}")

        if size == 0 and record.size > 0:
            return VerificationResult(False, "file was emptied by cleaning")

        if record.kind is FileKind.NOTEBOOK:
            if not parses_as_structured(path):
                return VerificationResult(False, "invalid JSON in notebook")
        elif record.structured_valid:
            # only blame the cleaner for content that parsed beforehand
            if not parses_as_structured(path):
                return VerificationResult(False, f"{path.suffix} content no longer parses")

        logger.debug("Integrity verified: %s", path)
        return VerificationResult(True)
