"""
Run orchestration.

This module is responsible for:
- turning a target path into the list of files to clean
- running the per-file pipeline (strategies, verification, checksum)
- fanning files out over a thread pool in parallel mode
- sequencing backup, git sanitization and the post-run audit

Per-file problems are captured in the file's record. Only fatal
conditions (missing target, failed backup) raise.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from .audit import AuditScanner
from .backup import create_backup
from .config import (
    DEFAULT_BACKUP_DIR,
    DEFAULT_JOBS,
    JSON_EXTENSIONS,
    NOTEBOOK_EXTENSIONS,
    YAML_EXTENSIONS,
)
from .errors import UsageError
from .file_scanner import FileScanner
from .git_sanitizer import GitSanitizeResult, is_repository, sanitize_repository
from .models import AuditResult, FileKind, FileRecord, FileState, RunStatistics
from .rules import PathClass, RuleEngine
from .strategies import CleaningOptions, StrategySelector, TimestampStrategy, set_neutral_timestamps
from .utils import file_sha256, is_binary_file
from .verifier import IntegrityVerifier, parses_as_structured

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOptions:
    recursive: bool = False
    dry_run: bool = False
    parallel: bool = False
    jobs: int = DEFAULT_JOBS
    checksums: bool = False
    sanitize_git: bool = False
    backup: bool = False
    backup_dir: str = DEFAULT_BACKUP_DIR
    compress: bool = False
    cleaning: CleaningOptions = field(default_factory=CleaningOptions)


@dataclass
class RunResult:
    target: Path
    options: RunOptions
    stats: RunStatistics
    started_at: datetime
    elapsed: float = 0.0
    excluded_target: bool = False
    backup_path: Optional[Path] = None
    git: Optional[GitSanitizeResult] = None
    git_planned: bool = False
    audit: Optional[AuditResult] = None


def detect_kind(path: Path, text_extensions: Sequence[str]) -> FileKind:
    """Classify file content by extension, then by sniffing for NUL bytes."""

    suffix = path.suffix.lower()
    if suffix in NOTEBOOK_EXTENSIONS:
        return FileKind.NOTEBOOK
    if suffix in JSON_EXTENSIONS or suffix in YAML_EXTENSIONS:
        return FileKind.STRUCTURED
    if suffix in text_extensions:
        return FileKind.TEXT
    if is_binary_file(path):
        return FileKind.BINARY
    return FileKind.SNIFFED_TEXT


class Pipeline:
    def __init__(
        self,
        rule_engine: RuleEngine,
        options: RunOptions,
        selector: Optional[StrategySelector] = None,
        verifier: Optional[IntegrityVerifier] = None,
        on_record: Optional[Callable[[FileRecord], None]] = None,
    ):
        self.rule_engine = rule_engine
        self.options = options
        self.selector = selector or StrategySelector()
        self.verifier = verifier or IntegrityVerifier()
        self.on_record = on_record

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self, target: Path) -> Iterator[Path]:
        path_class = self.rule_engine.classify(target)

        if path_class is PathClass.EXCLUDED:
            logger.info("Target is excluded: %s", target)
            return
        if path_class is PathClass.REGULAR_FILE:
            yield target
            return
        if path_class is PathClass.DIRECTORY:
            yield from FileScanner(target, self.rule_engine, recursive=self.options.recursive).scan()
            return

        logger.warning("Not a regular file or directory: %s", target)

    # ------------------------------------------------------------------
    # Per-file pipeline
    # ------------------------------------------------------------------

    def new_record(self, path: Path) -> FileRecord:
        try:
            size = path.stat().st_size
        except OSError:
            size = 0
        kind = detect_kind(path, self.options.cleaning.text_extensions)
        record = FileRecord(path=path, size=size, kind=kind)
        if kind is FileKind.STRUCTURED:
            record.structured_valid = parses_as_structured(path)
        return record

    def process_file(self, path: Path) -> FileRecord:
        """
        Run the whole per-file pipeline and return the finished record.

        Never raises: every outcome ends in a terminal state.
        """

        record = self.new_record(path)
        cleaning = self.options.cleaning

        if self.options.dry_run:
            planned = self.selector.planned(record, cleaning)
            record.transition(FileState.SKIPPED, "dry run; would apply: " + ", ".join(planned))
            return record

        record.transition(FileState.PROCESSING)
        try:
            self.selector.clean(record, cleaning)
        except Exception as e:  # a broken strategy must not take the run down
            logger.exception("Unexpected error while cleaning %s", path)
            record.transition(FileState.FAILED, f"unexpected error: {e}")
            return record

        verification = self.verifier.verify(record)
        if not verification.ok:
            logger.error("Integrity check failed after cleaning %s: %s", path, verification.reason)
            record.transition(FileState.FAILED, f"integrity check failed: {verification.reason}")
            return record

        if self.options.checksums:
            try:
                record.checksum = file_sha256(path)
            except OSError as e:
                logger.warning("Could not checksum %s: %s", path, e)

        # verification and checksumming read the file, which can move atime
        if TimestampStrategy.name in record.applied_steps:
            try:
                set_neutral_timestamps(path)
            except OSError as e:
                logger.warning("Could not reset timestamps of %s: %s", path, e)

        if record.applied_steps:
            record.transition(FileState.CLEANED)
        else:
            record.transition(FileState.SKIPPED, "no cleaning step applied")
        return record

    # ------------------------------------------------------------------
    # Runners
    # ------------------------------------------------------------------

    def _emit(self, stats: RunStatistics, record: FileRecord) -> None:
        stats.record(record)
        if self.on_record is not None:
            self.on_record(record)

    def process_all(self, paths: Sequence[Path], stats: RunStatistics) -> None:
        if self.options.parallel and self.options.jobs > 1 and len(paths) > 1:
            logger.debug("Using parallel processing with %d jobs", self.options.jobs)
            with concurrent.futures.ThreadPoolExecutor(max_workers=self.options.jobs) as ex:
                futures = [ex.submit(self.process_file, p) for p in paths]
                for future in concurrent.futures.as_completed(futures):
                    self._emit(stats, future.result())
            return

        for path in paths:
            self._emit(stats, self.process_file(path))

    def run(self, target: str | Path) -> RunResult:
        """
        Clean one target end to end.

        Raises:
            UsageError: if the target does not exist
            BackupError: if a requested backup could not be made
        """

        target = Path(target)
        if not target.exists():
            raise UsageError(f"Path does not exist: {target}")

        started = time.monotonic()
        result = RunResult(
            target=target,
            options=self.options,
            stats=RunStatistics(),
            started_at=datetime.now(),
        )

        if self.rule_engine.classify(target) is PathClass.EXCLUDED:
            result.excluded_target = True

        if self.options.backup and not self.options.dry_run and not result.excluded_target:
            result.backup_path = create_backup(
                target, self.options.backup_dir, compress=self.options.compress
            )

        if self.options.sanitize_git and target.is_dir() and not result.excluded_target and is_repository(target):
            result.git_planned = True
            if not self.options.dry_run:
                result.git = sanitize_repository(target, timeout=self.options.cleaning.tool_timeout)

        paths: List[Path] = list(self.discover(target))
        self.process_all(paths, result.stats)

        if not self.options.dry_run and target.is_dir() and not result.excluded_target:
            auditor = AuditScanner(self.rule_engine, self.options.cleaning.sensitive_patterns)
            result.audit = auditor.scan(target)
            result.stats.add_audit(result.audit)

        result.elapsed = time.monotonic() - started
        return result
