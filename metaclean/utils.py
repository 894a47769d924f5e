"""
Shared utility helpers.

This module contains small, reusable helpers that do not belong
to classification, cleaning strategies, or run orchestration.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .config import SNIFF_SAMPLE_SIZE

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def file_sha256(path: Path, block_size: int = 65536) -> str:
    """Return the hex SHA-256 digest of a file's content."""
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for block in iter(lambda: fh.read(block_size), b""):
            digest.update(block)
    return digest.hexdigest()


# ---------------------------------------------------------------------------
# Content sniffing
# ---------------------------------------------------------------------------


def is_binary_file(path: Path, sample_size: int = SNIFF_SAMPLE_SIZE) -> bool:
    """Heuristically determine whether a file is binary."""
    try:
        with path.open("rb") as fh:
            sample = fh.read(sample_size)
        return b"\x00" in sample
    except OSError:
        return False


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def ensure_parent_dir(path: Path) -> None:
    """Ensure the parent directory of a file exists."""
    path.parent.mkdir(parents=True, exist_ok=True)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Replace a file's content in one step.

    The data goes to a sibling temp file first and is moved over the
    original with os.replace, so a crash never leaves a half-written
    file. Permission bits of the original are preserved.
    """

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        try:
            shutil.copymode(path, tmp_path)
        except OSError as e:
            logger.debug("Could not copy mode bits to %s: %s", tmp_path, e)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


# ---------------------------------------------------------------------------
# External commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def which(tool: str) -> Optional[str]:
    """Return the absolute path of an executable, or None."""
    return shutil.which(tool)


def find_missing_tools(tools: Sequence[str]) -> List[str]:
    """Return the tools from the list that are not on PATH."""
    return [tool for tool in tools if which(tool) is None]


def run_command(
    command: Sequence[str],
    timeout: Optional[float] = None,
    cwd: Optional[Path] = None,
) -> CommandResult:
    """
    Run an external command to completion or timeout.

    Never raises for ordinary failures: a missing executable maps to
    return code 127, a timeout to ``timed_out=True``.
    """

    logger.debug("Running: %s", " ".join(command))
    try:
        cp = subprocess.run(
            list(command),
            text=True,
            capture_output=True,
            timeout=timeout,
            cwd=str(cwd) if cwd else None,
            check=False,
        )
    except FileNotFoundError:
        return CommandResult(127, "", f"command not found: {command[0]}")
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out after %ss: %s", timeout, command[0])
        return CommandResult(-1, "", f"timed out after {timeout}s", timed_out=True)
    except OSError as exc:
        return CommandResult(126, "", str(exc))

    return CommandResult(cp.returncode, cp.stdout or "", cp.stderr or "")
