"""
Exclusion rule evaluation and path classification.

Given a path and a table of exclusion rules, this module decides:
- whether the path is excluded
- which rule excluded it
- otherwise, whether it is a regular file or a directory

Rules DO NOT perform actions. They only return decisions.
"""

from __future__ import annotations

import fnmatch
import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath
from typing import Iterable, List, Optional, Protocol


class PathClass(Enum):
    EXCLUDED = "excluded"
    REGULAR_FILE = "file"
    DIRECTORY = "directory"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------


class Matcher(Protocol):
    def matches(self, path: PurePath) -> bool: ...

    def describe(self) -> str: ...


@dataclass(frozen=True)
class SegmentMatcher:
    """Matches when any path segment equals ``name``."""

    name: str

    def matches(self, path: PurePath) -> bool:
        return self.name in path.parts

    def describe(self) -> str:
        return f"segment '{self.name}'"


@dataclass(frozen=True)
class GlobMatcher:
    """Matches the basename against a shell glob (case-sensitive)."""

    pattern: str

    def matches(self, path: PurePath) -> bool:
        return fnmatch.fnmatchcase(path.name, self.pattern)

    def describe(self) -> str:
        return f"glob '{self.pattern}'"


@dataclass(frozen=True)
class RegexMatcher:
    """Matches when the regex is found anywhere in the POSIX form of the path."""

    pattern: re.Pattern

    @classmethod
    def compile(cls, expression: str) -> "RegexMatcher":
        return cls(re.compile(expression))

    def matches(self, path: PurePath) -> bool:
        return self.pattern.search(path.as_posix()) is not None

    def describe(self) -> str:
        return f"regex '{self.pattern.pattern}'"


@dataclass(frozen=True)
class PathMatcher:
    """Matches one absolute path and everything below it."""

    root: Path

    def matches(self, path: PurePath) -> bool:
        candidate = Path(os.path.abspath(path))
        return candidate == self.root or self.root in candidate.parents

    def describe(self) -> str:
        return f"path '{self.root}'"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExclusionRule:
    matcher: Matcher
    kind: str  # "directory", "file", "pattern" or "path"

    def matches(self, path: PurePath) -> bool:
        return self.matcher.matches(path)

    def describe(self) -> str:
        return f"{self.kind} {self.matcher.describe()}"


@dataclass(frozen=True)
class RuleDecision:
    excluded: bool
    rule_index: Optional[int] = None
    rule: Optional[ExclusionRule] = None


class RuleEngine:
    def __init__(self, rules: List[ExclusionRule]):
        self.rules = rules

    @classmethod
    def build(
        cls,
        directories: Iterable[str],
        files: Iterable[str],
        extra_paths: Iterable[str | Path] = (),
        patterns: Iterable[str] = (),
    ) -> "RuleEngine":
        """
        Build the rule table from exclusion names and globs.

        ``patterns`` are regular expressions searched in the relative path.
        ``extra_paths`` are absolute locations the current run writes to
        (backup directory, report file); they are excluded wholesale.
        """

        rules: List[ExclusionRule] = []
        rules.extend(ExclusionRule(SegmentMatcher(name), "directory") for name in directories)
        rules.extend(ExclusionRule(GlobMatcher(pattern), "file") for pattern in files)
        rules.extend(ExclusionRule(RegexMatcher.compile(expr), "pattern") for expr in patterns)
        rules.extend(
            ExclusionRule(PathMatcher(Path(os.path.abspath(p))), "path") for p in extra_paths
        )
        return cls(rules)

    def evaluate(self, path: str | Path, root: Optional[Path] = None) -> RuleDecision:
        """
        Decide whether a path is excluded.

        Segment and glob rules see the path relative to ``root`` when one
        is given, so the location of the traversal root itself never
        matters. Path rules always compare absolute locations.
        """

        path = Path(path)
        relative = path
        if root is not None:
            try:
                relative = path.relative_to(root)
            except ValueError:
                relative = path

        for idx, rule in enumerate(self.rules):
            subject = path if isinstance(rule.matcher, PathMatcher) else relative
            if rule.matches(subject):
                return RuleDecision(excluded=True, rule_index=idx, rule=rule)

        return RuleDecision(excluded=False)

    def is_excluded(self, path: str | Path, root: Optional[Path] = None) -> bool:
        return self.evaluate(path, root).excluded

    def classify(self, path: str | Path, root: Optional[Path] = None) -> PathClass:
        """
        Classify a path as excluded, regular file, directory or other.

        Symbolic links are never followed and classify as OTHER.
        """

        path = Path(path)
        if self.is_excluded(path, root):
            return PathClass.EXCLUDED
        if path.is_symlink():
            return PathClass.OTHER
        if path.is_dir():
            return PathClass.DIRECTORY
        if path.is_file():
            return PathClass.REGULAR_FILE
        return PathClass.OTHER
