"""
Metadata Cleaner

Strips identifying metadata from files and directories before they
are shared: embedded document/media metadata, notebook execution data,
author comments, extended attributes and timestamps. An optional
aggressive mode redacts emails, home paths and private IPs, and a
read-only audit reports what is left.
"""

__version__ = "1.0.0"

from .config import NEUTRAL_EPOCH
from .manifest import Manifest
from .models import FileKind, FileRecord, FileState, RunStatistics, StepResult, StepStatus
from .pipeline import Pipeline, RunOptions, RunResult
from .rules import RuleEngine, RuleDecision, PathClass
from .strategies import CleaningOptions, StrategySelector
from .audit import AuditScanner

__all__ = [
    "NEUTRAL_EPOCH",
    "Manifest",
    "FileKind",
    "FileRecord",
    "FileState",
    "RunStatistics",
    "StepResult",
    "StepStatus",
    "Pipeline",
    "RunOptions",
    "RunResult",
    "RuleEngine",
    "RuleDecision",
    "PathClass",
    "CleaningOptions",
    "StrategySelector",
    "AuditScanner",
]
