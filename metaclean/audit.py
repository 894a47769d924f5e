"""
Post-sanitization audit.

Re-walks the cleaned tree and reports residual sensitive content per
category. The audit is read-only: findings are informational and never
trigger changes to any file.
"""

from __future__ import annotations

import logging
import os
from collections import Counter
from pathlib import Path
from typing import List, Sequence

from .file_scanner import FileScanner
from .models import AuditFinding, AuditResult
from .redaction import (
    CATEGORY_SENSITIVE,
    CATEGORY_EMAIL,
    CATEGORY_HOME_PATH,
    CATEGORY_PRIVATE_IP,
    count_matches,
)
from .rules import RuleEngine

logger = logging.getLogger(__name__)


class AuditScanner:
    def __init__(self, rule_engine: RuleEngine, sensitive_patterns: Sequence[str] = ()):
        self.rule_engine = rule_engine
        self.sensitive_patterns = [p for p in sensitive_patterns if p]

    @property
    def categories(self) -> List[str]:
        categories = [CATEGORY_EMAIL, CATEGORY_HOME_PATH, CATEGORY_PRIVATE_IP]
        if self.sensitive_patterns:
            categories.insert(0, CATEGORY_SENSITIVE)
        return categories

    def scan_file(self, path: Path) -> List[AuditFinding]:
        """
        Test one file against every category.

        The file is streamed line by line, and its access and
        modification times are put back afterwards.

        Raises:
            OSError: if the file cannot be read
        """

        st = path.stat()
        counts: Counter = Counter()
        try:
            with path.open("r", encoding="utf-8", errors="replace") as fh:
                for line in fh:
                    counts.update(count_matches(line, self.sensitive_patterns))
        finally:
            try:
                os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns))
            except OSError as e:
                logger.debug("Could not restore timestamps of %s: %s", path, e)

        return [
            AuditFinding(category=category, path=path, count=counts[category])
            for category in self.categories
            if counts.get(category)
        ]

    def scan(self, root: str | Path) -> AuditResult:
        """Audit every surviving file below ``root`` (always recursive)."""

        result = AuditResult(categories=self.categories)
        scanner = FileScanner(root, self.rule_engine, recursive=True)

        for path in scanner.scan():
            try:
                result.findings.extend(self.scan_file(path))
            except (OSError, MemoryError, ValueError) as e:
                logger.debug("Audit skipped unreadable file %s: %s", path, e)
                result.unreadable.append(path)

        logger.debug(
            "Audit of %s finished: %d finding(s), %d warning(s)",
            root, len(result.findings), result.warnings,
        )
        return result
