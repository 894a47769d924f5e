"""
Cleaning strategies.

Each strategy is one step of the per-file sanitization pipeline. The
selector runs them in a fixed order; every step decides on its own
whether it applies and reports a typed StepResult instead of raising.

Order:
    notebook -> external tool (preferred, then fallback) -> comments
    -> sensitive (aggressive only) -> xattrs -> timestamps
"""

from __future__ import annotations

import logging
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Tuple

from .config import (
    NEUTRAL_EPOCH,
    DEFAULT_TOOL_TIMEOUT,
    DEFAULT_PREFERRED_TOOL,
    DEFAULT_FALLBACK_TOOL,
)
from .errors import NotebookError
from .models import FileKind, FileRecord, StepResult, StepStatus
from .notebook import clean_notebook_bytes
from .redaction import redact_sensitive, strip_comment_markers
from .utils import atomic_write_bytes, run_command, which

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleaningOptions:
    aggressive: bool = False
    sensitive_patterns: Tuple[str, ...] = ()
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT
    preferred_tool: str = DEFAULT_PREFERRED_TOOL
    fallback_tool: str = DEFAULT_FALLBACK_TOOL
    text_extensions: Tuple[str, ...] = field(default_factory=tuple)


class CleaningStrategy(ABC):
    name: str = ""

    @abstractmethod
    def applies_to(self, record: FileRecord, options: CleaningOptions) -> bool:
        raise NotImplementedError

    @abstractmethod
    def apply(self, record: FileRecord, options: CleaningOptions) -> StepResult:
        raise NotImplementedError

    def run(self, record: FileRecord, options: CleaningOptions) -> StepResult:
        """Apply the step, turning any exception into a failed result."""

        if not self.applies_to(record, options):
            return StepResult.skipped(self.name)
        try:
            return self.apply(record, options)
        except Exception as e:  # a failed step never stops the later ones
            logger.debug("%s failed on %s: %s", self.name, record.path, e)
            return StepResult.failed(self.name, str(e))


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def _read_text(path: Path) -> str:
    # surrogateescape keeps undecodable bytes intact on the way back out
    return path.read_bytes().decode("utf-8", errors="surrogateescape")


def _write_text(path: Path, text: str) -> None:
    atomic_write_bytes(path, text.encode("utf-8", errors="surrogateescape"))


def set_neutral_timestamps(path: Path) -> None:
    os.utime(path, (NEUTRAL_EPOCH, NEUTRAL_EPOCH))


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class NotebookStrategy(CleaningStrategy):
    """Reset notebook metadata, execution counts and outputs."""

    name = "notebook"

    def applies_to(self, record: FileRecord, options: CleaningOptions) -> bool:
        return record.kind is FileKind.NOTEBOOK

    def apply(self, record: FileRecord, options: CleaningOptions) -> StepResult:
        original = record.path.read_bytes()
        try:
            cleaned = clean_notebook_bytes(original)
        except NotebookError as e:
            logger.warning("Failed to clean Jupyter notebook %s: %s", record.path, e)
            return StepResult.failed(self.name, str(e))

        if cleaned != original:
            atomic_write_bytes(record.path, cleaned)
        return StepResult.ok(self.name, "execution data and metadata cleared")


class ExternalToolStrategy(CleaningStrategy):
    """
    Strip embedded metadata with an external tool.

    The preferred tool is tried first; when it is missing or fails the
    fallback runs. Either success counts as one applied step.
    """

    name = "metadata"

    def applies_to(self, record: FileRecord, options: CleaningOptions) -> bool:
        return True

    @staticmethod
    def command_for(tool: str, path: Path) -> List[str]:
        if tool == "mat2":
            return ["mat2", "--inplace", str(path)]
        if tool == "exiftool":
            return ["exiftool", "-all=", "-overwrite_original", str(path)]
        raise ValueError(f"Unsupported metadata tool: {tool}")

    def apply(self, record: FileRecord, options: CleaningOptions) -> StepResult:
        errors = []
        for tool in (options.preferred_tool, options.fallback_tool):
            if which(tool) is None:
                errors.append(f"{tool}: not installed")
                continue

            result = run_command(self.command_for(tool, record.path), timeout=options.tool_timeout)
            if result.ok:
                return StepResult.ok(self.name, f"cleaned with {tool}")

            detail = result.stderr.strip().splitlines()[-1] if result.stderr.strip() else f"exit {result.returncode}"
            logger.debug("%s could not process %s: %s", tool, record.path, detail)
            errors.append(f"{tool}: {detail}")

        return StepResult.failed(self.name, "; ".join(errors))


class CommentStrategy(CleaningStrategy):
    """Drop author/date comment lines from text and source files."""

    name = "comments"

    def applies_to(self, record: FileRecord, options: CleaningOptions) -> bool:
        return record.path.suffix.lower() in options.text_extensions

    def apply(self, record: FileRecord, options: CleaningOptions) -> StepResult:
        text = _read_text(record.path)
        cleaned, removed = strip_comment_markers(text)

        if removed and cleaned:
            _write_text(record.path, cleaned)
            return StepResult.ok(self.name, f"removed {removed} comment line(s)")
        if removed:
            return StepResult.skipped(self.name, "left unchanged: every line is a metadata comment")
        return StepResult.skipped(self.name, "no metadata comments")


class SensitiveDataStrategy(CleaningStrategy):
    """Redact emails, home paths, private IPs and configured patterns."""

    name = "sensitive"

    def applies_to(self, record: FileRecord, options: CleaningOptions) -> bool:
        return options.aggressive and record.kind.is_textual

    def apply(self, record: FileRecord, options: CleaningOptions) -> StepResult:
        text = _read_text(record.path)
        outcome = redact_sensitive(text, options.sensitive_patterns)

        if not outcome.changed:
            return StepResult.skipped(self.name, "nothing to redact")
        if text and not outcome.text:
            logger.warning("Every line of %s holds a sensitive pattern; leaving it unchanged", record.path)
            return StepResult.failed(self.name, "left unchanged: redaction would empty the file")

        _write_text(record.path, outcome.text)
        categories = ", ".join(sorted(outcome.counts))
        logger.info("Removed %d sensitive pattern(s) from %s", outcome.total, record.path)
        return StepResult.ok(self.name, f"redacted {categories}", redactions=outcome.total)


class XattrStrategy(CleaningStrategy):
    """Remove user extended attributes."""

    name = "xattrs"

    def applies_to(self, record: FileRecord, options: CleaningOptions) -> bool:
        return True

    def apply(self, record: FileRecord, options: CleaningOptions) -> StepResult:
        path = record.path

        if hasattr(os, "listxattr"):
            try:
                names = os.listxattr(path, follow_symlinks=False)
            except OSError as e:
                return StepResult.skipped(self.name, f"extended attributes unsupported: {e}")
            removed = 0
            for attr in names:
                if not attr.startswith("user."):
                    continue
                os.removexattr(path, attr, follow_symlinks=False)
                removed += 1
            return StepResult.ok(self.name, f"removed {removed} attribute(s)")

        if sys.platform == "darwin" and which("xattr"):
            result = run_command(["xattr", "-c", str(path)], timeout=options.tool_timeout)
            if result.ok:
                return StepResult.ok(self.name, "cleared with xattr")
            return StepResult.failed(self.name, result.stderr.strip())

        return StepResult.skipped(self.name, "no extended attribute support")


class TimestampStrategy(CleaningStrategy):
    """Set access and modification time to the neutral epoch."""

    name = "timestamps"

    def applies_to(self, record: FileRecord, options: CleaningOptions) -> bool:
        return True

    def apply(self, record: FileRecord, options: CleaningOptions) -> StepResult:
        set_neutral_timestamps(record.path)
        return StepResult.ok(self.name, "timestamps set to 2000-01-01")


def default_strategies() -> List[CleaningStrategy]:
    return [
        NotebookStrategy(),
        ExternalToolStrategy(),
        CommentStrategy(),
        SensitiveDataStrategy(),
        XattrStrategy(),
        TimestampStrategy(),
    ]


class StrategySelector:
    def __init__(self, strategies: Sequence[CleaningStrategy] | None = None):
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    def planned(self, record: FileRecord, options: CleaningOptions) -> List[str]:
        """Names of the steps that would run, without running them."""
        return [s.name for s in self.strategies if s.applies_to(record, options)]

    def clean(self, record: FileRecord, options: CleaningOptions) -> List[StepResult]:
        """Run every step in order, recording each result on the record."""

        results = []
        for strategy in self.strategies:
            result = strategy.run(record, options)
            record.add_step(result)
            results.append(result)
            if result.status is not StepStatus.NOT_APPLICABLE:
                logger.debug("%s: %s %s %s", record.path, strategy.name, result.status.value, result.detail)
        return results
