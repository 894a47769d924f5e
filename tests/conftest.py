"""Shared fixtures."""

import json
from pathlib import Path

import pytest

from metaclean.config import DEFAULT_EXCLUDED_DIRS, DEFAULT_EXCLUDED_FILES, DEFAULT_TEXT_EXTENSIONS
from metaclean.pipeline import Pipeline, RunOptions
from metaclean.rules import RuleEngine
from metaclean.strategies import CleaningOptions


@pytest.fixture(autouse=True)
def no_metadata_tools(monkeypatch):
    """Make mat2/exiftool look uninstalled so runs do not depend on the host."""
    monkeypatch.setattr("metaclean.strategies.which", lambda tool: None)


@pytest.fixture
def rule_engine():
    return RuleEngine.build(DEFAULT_EXCLUDED_DIRS, DEFAULT_EXCLUDED_FILES)


def make_options(**overrides) -> RunOptions:
    cleaning_keys = {"aggressive", "sensitive_patterns", "tool_timeout"}
    cleaning_args = {k: overrides.pop(k) for k in list(overrides) if k in cleaning_keys}
    if "sensitive_patterns" in cleaning_args:
        cleaning_args["sensitive_patterns"] = tuple(cleaning_args["sensitive_patterns"])
    cleaning = CleaningOptions(text_extensions=DEFAULT_TEXT_EXTENSIONS, **cleaning_args)
    return RunOptions(cleaning=cleaning, **overrides)


@pytest.fixture
def make_pipeline(rule_engine):
    def _make(**overrides) -> Pipeline:
        return Pipeline(rule_engine, make_options(**overrides))

    return _make


NOTEBOOK = {
    "cells": [
        {
            "cell_type": "code",
            "execution_count": 5,
            "metadata": {"collapsed": False, "tags": ["secret"]},
            "outputs": [{"output_type": "stream", "name": "stdout", "text": ["hi\n"]}],
            "source": ["print('hi')\n"],
        },
        {
            "cell_type": "markdown",
            "metadata": {"author": "jane"},
            "source": ["# Title\n"],
        },
    ],
    "metadata": {
        "kernelspec": {"display_name": "venv-jane", "language": "python", "name": "jane"},
        "widgets": {"state": {}},
    },
    "nbformat": 4,
    "nbformat_minor": 5,
}


@pytest.fixture
def notebook_path(tmp_path) -> Path:
    path = tmp_path / "a.ipynb"
    path.write_text(json.dumps(NOTEBOOK, indent=2), encoding="utf-8")
    return path
