"""
Command-line interface for the metaclean tool.

This module orchestrates all other components and provides the
user-facing command:

    metaclean [OPTIONS] <path>

Exit codes:
- 0: run completed (audit warnings and failed files included)
- 1: missing dependency, failed backup or unexpected error
- 2: usage error (bad flag, missing target, invalid manifest)
- 130: interrupted
"""

from __future__ import annotations

import sys
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .config import (
    DEFAULT_BACKUP_DIR,
    DEFAULT_JOBS,
    DEFAULT_MANIFEST_NAME,
    REQUIRED_TOOLS,
    TOOL_VERSION,
    get_execution_mode,
    load_sensitive_patterns,
)
from .errors import BackupError, DependencyMissing, MetacleanError, UsageError
from .logging_config import configure_logging
from .manifest import Manifest
from .models import FileRecord, FileState
from .pipeline import Pipeline, RunOptions, RunResult
from .report import REPORT_FORMATS, format_elapsed, write_report
from .rules import RuleEngine
from .strategies import CleaningOptions
from .utils import find_missing_tools, which

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Color output helpers
# ---------------------------------------------------------------------------


class Colors:
    """ANSI color codes for terminal output."""
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colored(text: str, color: str) -> str:
    """Return colored text for terminal output."""
    return f"{color}{text}{Colors.RESET}"


def print_error(msg: str) -> None:
    """Print error message to stderr."""
    print(colored(f"✗ Error: {msg}", Colors.RED), file=sys.stderr)


def print_success(msg: str) -> None:
    """Print success message."""
    print(colored(f"✓ {msg}", Colors.GREEN))


def print_warning(msg: str) -> None:
    """Print warning message."""
    print(colored(f"⚠ Warning: {msg}", Colors.YELLOW))


def print_info(msg: str) -> None:
    """Print info message."""
    print(colored(f"ℹ {msg}", Colors.CYAN))


# ---------------------------------------------------------------------------
# CLI context
# ---------------------------------------------------------------------------


class CLIContext:
    """Shared context for the command."""

    def __init__(
        self,
        manifest_path: Optional[str],
        verbose: bool,
        quiet: bool,
        dry_run: bool,
    ):
        self.manifest_path = Path(manifest_path) if manifest_path else None
        self.verbose = verbose
        self.quiet = quiet
        self.dry_run = dry_run

        # Lazy-loaded
        self._manifest: Optional[Manifest] = None

    @property
    def manifest(self) -> Manifest:
        """
        Load the manifest lazily.

        An explicit --manifest must exist; otherwise ./metaclean.yml is
        used when present and compiled-in defaults when not.
        """
        if self._manifest is None:
            if self.manifest_path is not None:
                self._manifest = Manifest.load(self.manifest_path)
            elif Path(DEFAULT_MANIFEST_NAME).is_file():
                self._manifest = Manifest.load(DEFAULT_MANIFEST_NAME)
            else:
                self._manifest = Manifest.defaults()
        return self._manifest

    def log(self, msg: str) -> None:
        """Log message if not quiet."""
        if not self.quiet:
            print(msg)

    def log_verbose(self, msg: str) -> None:
        """Log message if verbose."""
        if self.verbose:
            print(colored(f"  → {msg}", Colors.BLUE))

    def show_record(self, record: FileRecord) -> None:
        """Per-file progress line, called as each file finishes."""
        if record.state is FileState.CLEANED:
            self.log(f"  {colored('✓', Colors.GREEN)} {record.path}")
        elif record.state is FileState.FAILED:
            print_error(f"{record.path}: {record.reason}")
        elif record.reason.startswith("dry run"):
            self.log(f"  {colored('→', Colors.CYAN)} [DRY RUN] Would clean: {record.path}")
        else:
            self.log(f"  {colored('-', Colors.YELLOW)} {record.path} ({record.reason})")

        if self.verbose:
            for step in record.steps:
                if step.detail:
                    self.log_verbose(f"{step.step}: {step.status.value} ({step.detail})")


# ---------------------------------------------------------------------------
# Command implementation
# ---------------------------------------------------------------------------


def check_dependencies(ctx: CLIContext) -> None:
    """
    Raise DependencyMissing when a required tool is not installed.
    """
    missing = find_missing_tools(REQUIRED_TOOLS)
    if missing:
        raise DependencyMissing(missing)

    if which("mat2") is None:
        ctx.log_verbose("Optional tool 'mat2' not found. Install it for enhanced cleaning.")


def build_options(ctx: CLIContext, args: argparse.Namespace) -> RunOptions:
    """Merge manifest, environment and flags (flags win)."""
    manifest = ctx.manifest

    patterns: List[str] = []
    for pattern in manifest.sensitive_patterns + load_sensitive_patterns() + list(args.sensitive_pattern):
        if pattern not in patterns:
            patterns.append(pattern)

    timeout = args.timeout if args.timeout is not None else manifest.tools.timeout

    cleaning = CleaningOptions(
        aggressive=args.aggressive,
        sensitive_patterns=tuple(patterns),
        tool_timeout=timeout,
        preferred_tool=manifest.tools.preferred,
        fallback_tool=manifest.tools.fallback,
        text_extensions=tuple(manifest.text_extensions),
    )

    return RunOptions(
        recursive=args.recursive,
        dry_run=args.dry_run,
        parallel=args.parallel,
        jobs=args.jobs,
        checksums=args.checksums,
        sanitize_git=args.sanitize_git,
        backup=args.backup or args.backup_dir is not None,
        backup_dir=args.backup_dir or DEFAULT_BACKUP_DIR,
        compress=args.compress,
        cleaning=cleaning,
    )


def build_rule_engine(ctx: CLIContext, args: argparse.Namespace, options: RunOptions) -> RuleEngine:
    extra: List[Path] = []
    if options.backup:
        extra.append(Path(options.backup_dir))
    if args.report:
        extra.append(Path(args.report))
    if args.log_file:
        extra.append(Path(args.log_file))

    exclusions = ctx.manifest.exclusions
    return RuleEngine.build(
        exclusions.directories,
        exclusions.files,
        extra_paths=extra,
        patterns=exclusions.patterns,
    )


def print_summary(result: RunResult) -> None:
    """Final statistics block. Printed even with --quiet."""
    stats = result.stats
    opts = result.options

    print("")
    print_info("=" * 40)
    print_info("Statistics:")
    print_info("=" * 40)
    print_info(f"Total files found:     {stats.total}")
    print_info(f"Successfully cleaned:  {stats.cleaned}")
    print_info(f"Skipped:               {stats.skipped}")
    print_info(f"Failed:                {stats.failed}")
    if opts.cleaning.aggressive:
        print_info(f"Sensitive data items:  {stats.sensitive_redacted}")
    if not opts.dry_run:
        if stats.audit_warnings > 0:
            print_warning(f"Audit warnings:        {stats.audit_warnings}")
        else:
            print_success("Audit warnings:        0 (PASSED)")
    print_info(f"Data processed:        {stats.bytes_processed // (1024 * 1024)} MB")
    print_info(f"Time elapsed:          {format_elapsed(result.elapsed)}")
    if opts.parallel:
        print_info(f"Parallel jobs:         {opts.jobs}")
    if opts.compress and opts.backup:
        print_info("Backup compressed:     Yes")
    if opts.checksums:
        print_info("Checksums generated:   Yes (see report)")
    if opts.sanitize_git:
        print_info(f"Git sanitized:         {'Yes' if result.git is not None else 'No'}")
    print_info("=" * 40)


def print_audit(ctx: CLIContext, result: RunResult) -> None:
    audit = result.audit
    if audit is None:
        return

    ctx.log("")
    print_info("Post-sanitization audit:")
    for category, findings in audit.by_category.items():
        if findings:
            print_warning(f"Found {category.replace('_', ' ')} in {len(findings)} file(s)")
            for finding in findings:
                ctx.log_verbose(f"{finding.path} ({finding.count})")

    if audit.passed:
        print_success("Audit passed! No sensitive data detected.")
    else:
        print_warning(f"Audit completed with {audit.warnings} warning(s)")
        print_warning("Some sensitive data may still be present!")
        if not result.options.cleaning.aggressive:
            print_info("TIP: Run with -a (--aggressive) to remove sensitive data")


def cmd_clean(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Clean metadata from the target file or directory.
    """
    target = Path(args.target)
    if not target.exists():
        raise UsageError(f"Path does not exist: {target}")
    if args.jobs < 1:
        raise UsageError(f"--jobs must be at least 1, got {args.jobs}")
    if args.timeout is not None and args.timeout <= 0:
        raise UsageError(f"--timeout must be positive, got {args.timeout}")

    check_dependencies(ctx)

    options = build_options(ctx, args)
    rule_engine = build_rule_engine(ctx, args, options)

    if ctx.dry_run:
        print_warning("DRY RUN MODE - No changes will be made")
    if options.cleaning.aggressive:
        print_warning("Aggressive mode: sensitive data patterns will be removed from files")
    if ctx.manifest.source is not None:
        ctx.log_verbose(f"Using manifest: {ctx.manifest.source}")
    if args.report:
        print_info(f"Report will be saved to: {args.report}")

    if options.backup and ctx.dry_run:
        ctx.log(f"  [DRY RUN] Would create backup in: {options.backup_dir}")

    ctx.log(colored(f"Processing: {target}", Colors.BOLD))

    pipeline = Pipeline(rule_engine, options, on_record=ctx.show_record)
    result = pipeline.run(target)

    if result.backup_path is not None:
        print_success(f"Backup created: {result.backup_path}")
    if result.excluded_target:
        print_warning(f"Target is excluded and was not processed: {target}")
    if result.git is not None:
        print_success(f"Git repository sanitized: {result.git.repository}")
        for note in result.git.notes:
            print_warning(note)
    elif result.git_planned:
        ctx.log(f"  [DRY RUN] Would sanitize Git repo: {target}")

    print_audit(ctx, result)

    if ctx.dry_run:
        ctx.log(colored("\n[DRY RUN] Preview complete - no files were modified", Colors.YELLOW))
    else:
        print_success("Metadata cleaning completed")

    print_summary(result)

    if args.report:
        write_report(result, args.report, args.report_format)
        print_success(f"Report saved to: {args.report}")

    return 0


def cmd_help() -> int:
    """
    Show help message.
    """
    help_text = f"""
{colored('metaclean', Colors.BOLD)}: strip identifying metadata from files before sharing

{colored('USAGE:', Colors.CYAN)}
  metaclean [options] <path>

{colored('DESCRIPTION:', Colors.CYAN)}
  Removes embedded metadata (via mat2 / exiftool), Jupyter execution data,
  author/date comments, extended attributes and timestamps. With
  --aggressive, also redacts emails, home paths and private IPs. A
  read-only audit reports residual sensitive content after each live run.

{colored('OPTIONS:', Colors.CYAN)}
  -h, --help                Show this help message and exit
  --version                 Show version and exit
  -v, --verbose             Enable verbose output
  -q, --quiet               Suppress per-file output
  -d, --dry-run             Show what would be done without making changes
  -r, --recursive           Process directories recursively
  -b, --backup              Create a backup first (default: {DEFAULT_BACKUP_DIR})
  --backup-dir PATH         Custom backup directory (implies --backup)
  -c, --compress            Compress the backup as tar.gz
  --report FILE             Write a detailed report
  --report-format FORMAT    text (default) or json
  -p, --parallel            Process files in parallel
  -j, --jobs N              Number of parallel jobs (default: {DEFAULT_JOBS})
  -a, --aggressive          Redact sensitive data patterns from files
  -s, --sensitive-pattern TEXT
                            Extra sensitive substring (repeatable)
  --checksums               Record SHA256 checksums in the report
  --sanitize-git            Strip remote URLs and local identity from .git
  -m, --manifest PATH       YAML configuration (default: ./{DEFAULT_MANIFEST_NAME} if present)
  --timeout SECONDS         Timeout for each external tool invocation
  --log-file PATH           Also write debug logs to a rotating file

{colored('ENVIRONMENT:', Colors.CYAN)}
  METACLEAN_SENSITIVE_PATTERNS   Comma-separated extra sensitive substrings
  METACLEAN_MODE                 dev enables debug logging

{colored('DEPENDENCIES:', Colors.CYAN)}
  Required:  exiftool
  Optional:  mat2 (preferred when installed), git (for --sanitize-git)

{colored('EXAMPLES:', Colors.CYAN)}
  metaclean document.pdf
  metaclean -r -v /path/to/directory
  metaclean -d -r ~/Pictures
  metaclean -b -c -r --report report.txt important_files/

{colored('VERSION:', Colors.CYAN)}
  {TOOL_VERSION}
"""
    print(help_text)
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = _ArgumentParser(
        prog="metaclean",
        description="Strip identifying metadata from files before sharing",
        add_help=False,
    )

    parser.add_argument("target", nargs="?", help="File or directory to clean")

    parser.add_argument("-h", "--help", action="store_true", help="Show help message")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress per-file output")
    parser.add_argument("-d", "--dry-run", action="store_true", help="Do not modify anything")
    parser.add_argument("-r", "--recursive", action="store_true", help="Recurse into directories")
    parser.add_argument("-b", "--backup", action="store_true", help="Create a backup first")
    parser.add_argument("--backup-dir", help="Custom backup directory (implies --backup)")
    parser.add_argument("-c", "--compress", action="store_true", help="Compress the backup")
    parser.add_argument("--report", help="Write a detailed report to this file")
    parser.add_argument("--report-format", choices=REPORT_FORMATS, default="text", help="Report format")
    parser.add_argument("-p", "--parallel", action="store_true", help="Process files in parallel")
    parser.add_argument("-j", "--jobs", type=int, default=DEFAULT_JOBS, help="Number of parallel jobs")
    parser.add_argument("-a", "--aggressive", action="store_true", help="Redact sensitive data")
    parser.add_argument(
        "-s", "--sensitive-pattern",
        action="append",
        default=[],
        help="Extra sensitive substring (repeatable)",
    )
    parser.add_argument("--checksums", action="store_true", help="Generate SHA256 checksums")
    parser.add_argument("--sanitize-git", action="store_true", help="Clean version control metadata")
    parser.add_argument("-m", "--manifest", help="Path to YAML configuration")
    parser.add_argument("--timeout", type=float, help="Timeout per external tool invocation")
    parser.add_argument("--log-file", help="Write debug logs to this file")

    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        print_error(str(e))
        print("Run 'metaclean --help' for usage.", file=sys.stderr)
        return 2

    if args.help:
        return cmd_help()
    if args.version:
        print(f"metaclean {TOOL_VERSION}")
        return 0

    level = "DEBUG" if args.verbose or get_execution_mode() == "dev" else "WARNING"
    configure_logging(level, Path(args.log_file) if args.log_file else None)

    ctx = CLIContext(
        manifest_path=args.manifest,
        verbose=args.verbose,
        quiet=args.quiet,
        dry_run=args.dry_run,
    )

    try:
        if not args.target:
            raise UsageError("No target path specified")
        return cmd_clean(ctx, args)
    except UsageError as e:
        print_error(str(e))
        return 2
    except DependencyMissing as e:
        print_error("Missing required dependencies:")
        for dep in e.missing:
            print(f"  - {dep}", file=sys.stderr)
        return 1
    except BackupError as e:
        print_error(str(e))
        print_error("Refusing to clean without the requested backup")
        return 1
    except KeyboardInterrupt:
        print_error("Interrupted")
        return 130
    except MetacleanError as e:
        print_error(str(e))
        return 1
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
