"""
Plain data shapes shared across the pipeline.

Per-file lifecycle::

    DISCOVERED -> PROCESSING -> CLEANED | SKIPPED | FAILED
    DISCOVERED ------------->  SKIPPED  (dry run)

Terminal states are final: a record that reached one refuses any
further transition.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from .errors import InvalidTransition


class FileKind(Enum):
    NOTEBOOK = "notebook"
    STRUCTURED = "structured"
    TEXT = "text"
    SNIFFED_TEXT = "sniffed_text"
    BINARY = "binary"

    @property
    def is_textual(self) -> bool:
        return self is not FileKind.BINARY


class FileState(Enum):
    DISCOVERED = "discovered"
    PROCESSING = "processing"
    CLEANED = "cleaned"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FileState.CLEANED, FileState.SKIPPED, FileState.FAILED)


_ALLOWED = {
    FileState.DISCOVERED: {FileState.PROCESSING, FileState.SKIPPED, FileState.FAILED},
    FileState.PROCESSING: {FileState.CLEANED, FileState.SKIPPED, FileState.FAILED},
}


class StepStatus(Enum):
    APPLIED = "applied"
    NOT_APPLICABLE = "not_applicable"
    FAILED = "failed"


@dataclass(frozen=True)
class StepResult:
    step: str
    status: StepStatus
    detail: str = ""
    redactions: int = 0

    @property
    def applied(self) -> bool:
        return self.status is StepStatus.APPLIED

    @classmethod
    def ok(cls, step: str, detail: str = "", redactions: int = 0) -> "StepResult":
        return cls(step, StepStatus.APPLIED, detail, redactions)

    @classmethod
    def skipped(cls, step: str, detail: str = "") -> "StepResult":
        return cls(step, StepStatus.NOT_APPLICABLE, detail)

    @classmethod
    def failed(cls, step: str, detail: str = "") -> "StepResult":
        return cls(step, StepStatus.FAILED, detail)


@dataclass
class FileRecord:
    path: Path
    size: int
    kind: FileKind
    state: FileState = FileState.DISCOVERED
    steps: List[StepResult] = field(default_factory=list)
    reason: str = ""
    checksum: Optional[str] = None
    structured_valid: Optional[bool] = None

    def transition(self, new_state: FileState, reason: str = "") -> None:
        if new_state not in _ALLOWED.get(self.state, set()):
            raise InvalidTransition(
                f"{self.path}: cannot move from {self.state.value} to {new_state.value}"
            )
        self.state = new_state
        if reason:
            self.reason = reason

    def add_step(self, result: StepResult) -> None:
        if self.state is not FileState.PROCESSING:
            raise InvalidTransition(f"{self.path}: steps can only be added while processing")
        self.steps.append(result)

    @property
    def applied_steps(self) -> List[str]:
        return [s.step for s in self.steps if s.applied]

    @property
    def redactions(self) -> int:
        return sum(s.redactions for s in self.steps)


@dataclass(frozen=True)
class AuditFinding:
    category: str
    path: Path
    count: int


@dataclass
class AuditResult:
    categories: List[str]
    findings: List[AuditFinding] = field(default_factory=list)
    unreadable: List[Path] = field(default_factory=list)

    def files_for(self, category: str) -> List[Path]:
        return [f.path for f in self.findings if f.category == category]

    @property
    def by_category(self) -> Dict[str, List[AuditFinding]]:
        grouped: Dict[str, List[AuditFinding]] = {c: [] for c in self.categories}
        for finding in self.findings:
            grouped.setdefault(finding.category, []).append(finding)
        return grouped

    @property
    def warnings(self) -> int:
        return sum(1 for items in self.by_category.values() if items)

    @property
    def passed(self) -> bool:
        return self.warnings == 0


@dataclass
class RunStatistics:
    """
    Counters for one invocation.

    Workers never touch this directly: they return FileRecords and the
    runner folds them in through record(), which serializes updates.
    """

    total: int = 0
    cleaned: int = 0
    skipped: int = 0
    failed: int = 0
    bytes_processed: int = 0
    sensitive_redacted: int = 0
    audit_warnings: int = 0
    records: List[FileRecord] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, rec: FileRecord) -> None:
        if not rec.state.is_terminal:
            raise InvalidTransition(f"{rec.path}: record is not finished ({rec.state.value})")

        with self._lock:
            self.total += 1
            self.bytes_processed += rec.size
            self.sensitive_redacted += rec.redactions
            if rec.state is FileState.CLEANED:
                self.cleaned += 1
            elif rec.state is FileState.SKIPPED:
                self.skipped += 1
            else:
                self.failed += 1
            self.records.append(rec)

    def add_audit(self, result: AuditResult) -> None:
        with self._lock:
            self.audit_warnings += result.warnings

    def in_state(self, state: FileState) -> List[FileRecord]:
        with self._lock:
            return [r for r in self.records if r.state is state]

    @property
    def consistent(self) -> bool:
        return self.total == self.cleaned + self.skipped + self.failed
