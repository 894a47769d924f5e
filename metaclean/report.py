"""
Run report rendering.

Two formats carry the same information:
- ``text``: sectioned plain text meant for people
- ``json``: one JSON document meant for tooling
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from .models import FileRecord, FileState
from .pipeline import RunResult
from .redaction import CATEGORY_LABELS
from .utils import ensure_parent_dir

RULE = "=" * 40
REPORT_FORMATS = ("text", "json")


def format_elapsed(seconds: float) -> str:
    seconds = int(seconds)
    return f"{seconds // 60}m {seconds % 60}s"


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _outcome_line(record: FileRecord) -> str:
    if record.state is FileState.CLEANED:
        return f"[SUCCESS] Cleaned: {record.path} (size: {record.size} bytes)"
    if record.state is FileState.FAILED:
        return f"[FAILED] {record.path}: {record.reason}"
    if record.reason.startswith("dry run"):
        return f"[DRY RUN] Would clean: {record.path} (size: {record.size} bytes)"
    return f"[SKIPPED] {record.path}: {record.reason}"


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def render_text(result: RunResult) -> str:
    opts = result.options
    stats = result.stats
    lines: List[str] = [
        RULE,
        "Metadata Cleaner Report",
        RULE,
        f"Date: {result.started_at:%Y-%m-%d %H:%M:%S}",
        f"Target: {result.target}",
        f"Mode: {'DRY RUN' if opts.dry_run else 'LIVE'}",
        f"Recursive: {opts.recursive}",
        f"Backup: {opts.backup}",
        f"Compress Backup: {opts.compress}",
        f"Generate Checksums: {opts.checksums}",
        f"Sanitize Git: {opts.sanitize_git}",
        f"Aggressive: {opts.cleaning.aggressive}",
        RULE,
        "",
    ]

    if result.backup_path is not None:
        lines.append(f"Backup created: {result.backup_path}")
    if result.excluded_target:
        lines.append(f"Target excluded by rule: {result.target}")

    records = sorted(stats.records, key=lambda r: str(r.path))

    if opts.checksums:
        lines += ["", "=== FILE CHECKSUMS (SHA256) ==="]
        lines += [f"SHA256: {r.checksum} | {r.path}" for r in records if r.checksum]

    lines += ["", f"=== Processing: {result.target} ==="]
    lines += [_outcome_line(r) for r in records]

    if result.git is not None:
        lines.append(
            f"[GIT] Sanitized repository: {result.git.repository} "
            f"(urls removed: {result.git.removed_urls}, "
            f"identity unset: {', '.join(result.git.unset_keys) or 'none'})"
        )
        lines += [f"[GIT] Note: {note}" for note in result.git.notes]
    elif result.git_planned:
        lines.append(f"[DRY RUN] Would sanitize Git repo: {result.target}")

    if result.audit is not None:
        lines += ["", "=== POST-SANITIZATION AUDIT ==="]
        for category, findings in result.audit.by_category.items():
            if not findings:
                continue
            label = CATEGORY_LABELS.get(category, category)
            lines.append(f"[AUDIT WARNING] {label} found in {len(findings)} file(s)")
            lines.append(f"  Files with {label.lower()}:")
            lines += [f"    - {f.path} ({f.count} match(es))" for f in findings]
        if result.audit.passed:
            lines += ["", "[AUDIT RESULT] PASSED - No sensitive data detected"]
        else:
            lines += ["", f"[AUDIT RESULT] FAILED - {result.audit.warnings} warning(s) found"]

    mb = stats.bytes_processed // (1024 * 1024)
    parallel = f"Yes ({opts.jobs} jobs)" if opts.parallel else "No"
    lines += [
        "",
        RULE,
        "Final Statistics:",
        RULE,
        f"Total files found:     {stats.total}",
        f"Successfully cleaned:  {stats.cleaned}",
        f"Skipped:               {stats.skipped}",
        f"Failed:                {stats.failed}",
        f"Sensitive data items:  {stats.sensitive_redacted}",
        f"Audit warnings:        {stats.audit_warnings}",
        f"Data processed:        {mb} MB ({stats.bytes_processed} bytes)",
        f"Time elapsed:          {format_elapsed(result.elapsed)}",
        f"Parallel processing:   {parallel}",
        f"Aggressive mode:       {_yes_no(opts.cleaning.aggressive)}",
        RULE,
    ]

    skipped = [r for r in records if r.state is FileState.SKIPPED]
    if skipped:
        lines += ["", f"=== SKIPPED FILES ({len(skipped)}) ==="]
        lines += [f"  - {r.path} ({r.reason})" for r in skipped]

    failed = [r for r in records if r.state is FileState.FAILED]
    if failed:
        lines += ["", f"=== FAILED FILES ({len(failed)}) ==="]
        lines += [f"  - {r.path} ({r.reason})" for r in failed]

    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def _record_dict(record: FileRecord) -> Dict[str, Any]:
    return {
        "path": str(record.path),
        "size": record.size,
        "kind": record.kind.value,
        "outcome": record.state.value,
        "reason": record.reason,
        "checksum": record.checksum,
        "steps": [
            {
                "step": s.step,
                "status": s.status.value,
                "detail": s.detail,
                "redactions": s.redactions,
            }
            for s in record.steps
        ],
    }


def build_json(result: RunResult) -> Dict[str, Any]:
    opts = result.options
    stats = result.stats

    audit = None
    if result.audit is not None:
        audit = {
            "passed": result.audit.passed,
            "warnings": result.audit.warnings,
            "categories": {
                category: [{"path": str(f.path), "count": f.count} for f in findings]
                for category, findings in result.audit.by_category.items()
            },
            "unreadable": [str(p) for p in result.audit.unreadable],
        }

    git = None
    if result.git is not None:
        git = {
            "repository": str(result.git.repository),
            "removed_urls": result.git.removed_urls,
            "unset_keys": result.git.unset_keys,
            "notes": result.git.notes,
        }

    return {
        "date": result.started_at.isoformat(timespec="seconds"),
        "target": str(result.target),
        "configuration": {
            "mode": "dry-run" if opts.dry_run else "live",
            "recursive": opts.recursive,
            "backup": opts.backup,
            "backup_path": str(result.backup_path) if result.backup_path else None,
            "compress_backup": opts.compress,
            "checksums": opts.checksums,
            "sanitize_git": opts.sanitize_git,
            "aggressive": opts.cleaning.aggressive,
            "parallel": opts.parallel,
            "jobs": opts.jobs,
        },
        "files": [_record_dict(r) for r in sorted(stats.records, key=lambda r: str(r.path))],
        "git": git,
        "audit": audit,
        "statistics": {
            "total": stats.total,
            "cleaned": stats.cleaned,
            "skipped": stats.skipped,
            "failed": stats.failed,
            "bytes_processed": stats.bytes_processed,
            "sensitive_items_redacted": stats.sensitive_redacted,
            "audit_warnings": stats.audit_warnings,
            "elapsed_seconds": round(result.elapsed, 3),
        },
    }


def write_report(result: RunResult, path: str | Path, fmt: str = "text") -> Path:
    """Render the run result and write it to ``path``."""

    if fmt not in REPORT_FORMATS:
        raise ValueError(f"Unknown report format: {fmt}")

    path = Path(path)
    ensure_parent_dir(path)

    if fmt == "json":
        content = json.dumps(build_json(result), indent=2) + "\n"
    else:
        content = render_text(result)

    path.write_text(content, encoding="utf-8")
    return path
