"""
Version-control metadata sanitization.

For a repository root: drop remote URLs from ``.git/config`` and unset
the local identity. History and objects are left alone.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from .config import DEFAULT_TOOL_TIMEOUT
from .utils import atomic_write_bytes, run_command, which

logger = logging.getLogger(__name__)

URL_LINE_RE = re.compile(r"^\s*(?:push)?url\s*=", re.MULTILINE)
IDENTITY_KEYS = ("user.name", "user.email")


@dataclass
class GitSanitizeResult:
    repository: Path
    removed_urls: int = 0
    unset_keys: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed_urls or self.unset_keys)


def is_repository(directory: Path) -> bool:
    return (directory / ".git").is_dir()


def strip_remote_urls(config_text: str) -> Tuple[str, int]:
    """Remove every url/pushurl line from git config text."""

    kept = []
    removed = 0
    for line in config_text.splitlines(keepends=True):
        if URL_LINE_RE.match(line):
            removed += 1
            continue
        kept.append(line)
    return "".join(kept), removed


def sanitize_repository(directory: str | Path, timeout: float = DEFAULT_TOOL_TIMEOUT) -> GitSanitizeResult:
    """
    Sanitize a repository in place.

    Missing ``git`` only skips the identity step; URL stripping edits
    the config file directly.
    """

    directory = Path(directory)
    result = GitSanitizeResult(repository=directory)
    config_path = directory / ".git" / "config"

    if config_path.is_file():
        text = config_path.read_text(encoding="utf-8")
        cleaned, removed = strip_remote_urls(text)
        if removed:
            atomic_write_bytes(config_path, cleaned.encode("utf-8"))
            logger.debug("Removed %d remote URL(s) from %s", removed, config_path)
        result.removed_urls = removed

    if which("git") is None:
        result.notes.append("git not installed: local identity left unchanged")
        return result

    for key in IDENTITY_KEYS:
        probe = run_command(["git", "config", "--local", key], timeout=timeout, cwd=directory)
        if not probe.ok:
            continue
        unset = run_command(["git", "config", "--local", "--unset", key], timeout=timeout, cwd=directory)
        if unset.ok:
            logger.debug("Removed local Git %s", key)
            result.unset_keys.append(key)
        else:
            result.notes.append(f"could not unset {key}: {unset.stderr.strip()}")

    return result
