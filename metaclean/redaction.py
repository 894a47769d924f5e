"""
Text redaction tables and pure transforms.

Everything here works on strings and returns new strings plus counts.
File I/O lives in the strategies; the audit scanner reuses the same
matchers so a redacted placeholder can never be reported as a finding.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Pattern, Sequence, Tuple

from .config import EMAIL_PLACEHOLDER, HOME_PLACEHOLDER_USER, IP_PLACEHOLDER

# ---------------------------------------------------------------------------
# Comment markers
# ---------------------------------------------------------------------------

_MARKER = (
    r"(?:[Aa]uthor"
    r"|[Cc]reated\s*(?:on|at|by)?"
    r"|[Dd]ate"
    r"|[Mm]odified\s*(?:on|at|by)?"
    r"|[Ll]ast\s*[Mm]odified)"
)

COMMENT_MARKER_RE: Pattern[str] = re.compile(rf"^[ \t]*(?:#|//)[ \t]*{_MARKER}[ \t]*:")

# ---------------------------------------------------------------------------
# Sensitive content
# ---------------------------------------------------------------------------

EMAIL_RE: Pattern[str] = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

# The placeholder user is left alone so redaction is a fixed point
HOME_PATH_RE: Pattern[str] = re.compile(
    rf"/home/(?!{HOME_PLACEHOLDER_USER}(?![a-zA-Z0-9_-]))[a-zA-Z0-9_-]+"
)

_OCTET = r"\d{1,3}"
PRIVATE_IP_RE: Pattern[str] = re.compile(
    r"(?<![\d.])"
    r"(?:10\.{o}\.{o}\.{o}"
    r"|172\.(?:1[6-9]|2\d|3[01])\.{o}\.{o}"
    r"|192\.168\.{o}\.{o})"
    r"(?!\.?\d)".format(o=_OCTET)
)

CATEGORY_SENSITIVE = "sensitive"
CATEGORY_EMAIL = "email"
CATEGORY_HOME_PATH = "home_path"
CATEGORY_PRIVATE_IP = "private_ip"

CATEGORY_LABELS: Dict[str, str] = {
    CATEGORY_SENSITIVE: "Sensitive patterns",
    CATEGORY_EMAIL: "Email addresses",
    CATEGORY_HOME_PATH: "Absolute home paths",
    CATEGORY_PRIVATE_IP: "Private IP addresses",
}

# (category, regex, replacement) applied after sensitive-line deletion.
# Addresses go first: "a@10.0.0.1" must become one email placeholder.
SUBSTITUTIONS: Tuple[Tuple[str, Pattern[str], str], ...] = (
    (CATEGORY_PRIVATE_IP, PRIVATE_IP_RE, IP_PLACEHOLDER),
    (CATEGORY_EMAIL, EMAIL_RE, EMAIL_PLACEHOLDER),
    (CATEGORY_HOME_PATH, HOME_PATH_RE, f"/home/{HOME_PLACEHOLDER_USER}"),
)


def sensitive_regexes(patterns: Sequence[str]) -> List[Pattern[str]]:
    """Compile literal substrings into case-insensitive regexes."""
    return [re.compile(re.escape(p), re.IGNORECASE) for p in patterns if p]


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


@dataclass
class RedactionOutcome:
    text: str
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def changed(self) -> bool:
        return self.total > 0


def strip_comment_markers(text: str) -> Tuple[str, int]:
    """
    Remove author/created/date/modified comment lines.

    Lines keep their original endings; nothing but whole matching lines
    is removed.

    Returns:
        (new_text, removed_line_count)
    """

    kept: List[str] = []
    removed = 0
    for line in text.splitlines(keepends=True):
        if COMMENT_MARKER_RE.match(line):
            removed += 1
            continue
        kept.append(line)
    return "".join(kept), removed


def redact_sensitive(text: str, patterns: Sequence[str] = ()) -> RedactionOutcome:
    """
    Redact sensitive content.

    Each configured pattern that hits deletes every line containing it
    and counts once. Each substitution category that changes anything
    counts once.
    """

    counts: Dict[str, int] = {}

    for regex in sensitive_regexes(patterns):
        lines = text.splitlines(keepends=True)
        kept = [line for line in lines if not regex.search(line)]
        if len(kept) != len(lines):
            text = "".join(kept)
            counts[CATEGORY_SENSITIVE] = counts.get(CATEGORY_SENSITIVE, 0) + 1

    for category, regex, replacement in SUBSTITUTIONS:
        text, n = regex.subn(replacement, text)
        if n:
            counts[category] = 1

    return RedactionOutcome(text=text, counts=counts)


def count_matches(text: str, patterns: Sequence[str] = ()) -> Dict[str, int]:
    """Count occurrences per category without changing anything."""

    counts: Dict[str, int] = {}
    sensitive = sum(len(r.findall(text)) for r in sensitive_regexes(patterns))
    if sensitive:
        counts[CATEGORY_SENSITIVE] = sensitive
    for category, regex, _ in SUBSTITUTIONS:
        n = len(regex.findall(text))
        if n:
            counts[category] = n
    return counts
