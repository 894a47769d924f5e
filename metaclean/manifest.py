"""
Manifest loading, validation, and normalization.

This module answers one question:
    "How does the user want this tool configured?"

Responsibilities:
- Load the optional manifest YAML file
- Validate structure and version
- Normalize defaults
- Expose a clean Python representation

This module does NOT:
- Match files
- Clean or verify anything
- Walk the filesystem

Example manifest::

    version: 1
    exclusions:
      directories: [.git, node_modules]
      files: ["*.pyc"]
      patterns: ['[.]min[.]js$']
    text_extensions: [.py, .md]
    sensitive_patterns: [ACME-INTERNAL]
    tools:
      timeout: 60
      preferred: mat2
      fallback: exiftool
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .config import (
    SUPPORTED_MANIFEST_VERSION,
    DEFAULT_EXCLUDED_DIRS,
    DEFAULT_EXCLUDED_FILES,
    DEFAULT_TEXT_EXTENSIONS,
    DEFAULT_TOOL_TIMEOUT,
    DEFAULT_PREFERRED_TOOL,
    DEFAULT_FALLBACK_TOOL,
    SUPPORTED_TOOLS,
)
from .errors import ManifestError


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass
class ExclusionConfig:
    directories: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS))
    files: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_FILES))
    patterns: List[str] = field(default_factory=list)


@dataclass
class ToolConfig:
    timeout: float = DEFAULT_TOOL_TIMEOUT
    preferred: str = DEFAULT_PREFERRED_TOOL
    fallback: str = DEFAULT_FALLBACK_TOOL


@dataclass
class Manifest:
    version: int = SUPPORTED_MANIFEST_VERSION
    exclusions: ExclusionConfig = field(default_factory=ExclusionConfig)
    text_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_TEXT_EXTENSIONS))
    sensitive_patterns: List[str] = field(default_factory=list)
    tools: ToolConfig = field(default_factory=ToolConfig)
    source: Optional[Path] = None

    # ------------------------------------------------------------------
    # Loading API
    # ------------------------------------------------------------------

    @classmethod
    def defaults(cls) -> "Manifest":
        """Return the compiled-in configuration."""
        return cls()

    @classmethod
    def load(cls, path: str | Path) -> "Manifest":
        """
        Load and validate a manifest file.

        Args:
            path: Path to the manifest YAML file

        Raises:
            ManifestError: if the manifest is missing or invalid

        Returns:
            Manifest
        """

        path = Path(path)
        if not path.exists():
            raise ManifestError(f"Manifest file not found: {path}")

        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise ManifestError(f"Invalid YAML in manifest {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ManifestError(f"Manifest {path} must be a mapping")

        manifest = cls._from_dict(raw)
        manifest.source = path
        return manifest

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        version = data.get("version")
        if version != SUPPORTED_MANIFEST_VERSION:
            raise ManifestError(
                f"Unsupported manifest version: {version}"
            )

        return cls(
            version=version,
            exclusions=cls._parse_exclusions(data.get("exclusions") or {}),
            text_extensions=cls._parse_extensions(
                data.get("text_extensions", list(DEFAULT_TEXT_EXTENSIONS))
            ),
            sensitive_patterns=cls._string_list(
                data.get("sensitive_patterns") or [], "sensitive_patterns"
            ),
            tools=cls._parse_tools(data.get("tools") or {}),
        )

    @classmethod
    def _parse_exclusions(cls, data: Dict[str, Any]) -> ExclusionConfig:
        if not isinstance(data, dict):
            raise ManifestError("'exclusions' must be a mapping")

        return ExclusionConfig(
            directories=cls._string_list(
                data.get("directories", list(DEFAULT_EXCLUDED_DIRS)),
                "exclusions.directories",
            ),
            files=cls._string_list(
                data.get("files", list(DEFAULT_EXCLUDED_FILES)),
                "exclusions.files",
            ),
            patterns=cls._parse_patterns(data.get("patterns", [])),
        )

    @classmethod
    def _parse_patterns(cls, data: Any) -> List[str]:
        patterns = cls._string_list(data, "exclusions.patterns")
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ManifestError(f"Invalid exclusion pattern {pattern!r}: {e}") from e
        return patterns

    @classmethod
    def _parse_extensions(cls, data: Any) -> List[str]:
        extensions = cls._string_list(data, "text_extensions")
        # Accept both "py" and ".py"
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions]

    @staticmethod
    def _parse_tools(data: Dict[str, Any]) -> ToolConfig:
        if not isinstance(data, dict):
            raise ManifestError("'tools' must be a mapping")

        timeout = data.get("timeout", DEFAULT_TOOL_TIMEOUT)
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
            raise ManifestError(f"'tools.timeout' must be a positive number, got {timeout!r}")

        preferred = str(data.get("preferred", DEFAULT_PREFERRED_TOOL))
        fallback = str(data.get("fallback", DEFAULT_FALLBACK_TOOL))
        for key, tool in (("preferred", preferred), ("fallback", fallback)):
            if tool not in SUPPORTED_TOOLS:
                raise ManifestError(
                    f"'tools.{key}' must be one of {', '.join(SUPPORTED_TOOLS)}, got {tool!r}"
                )

        return ToolConfig(timeout=float(timeout), preferred=preferred, fallback=fallback)

    @staticmethod
    def _string_list(value: Any, key: str) -> List[str]:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ManifestError(f"'{key}' must be a list of strings")
        return list(value)
