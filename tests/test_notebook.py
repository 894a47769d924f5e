"""
Tests for the notebook transform.
"""

import json

import pytest

from metaclean.config import NOTEBOOK_METADATA_TEMPLATE
from metaclean.errors import NotebookError
from metaclean.models import FileKind, FileRecord, FileState, StepStatus
from metaclean.notebook import clean_notebook, clean_notebook_bytes
from metaclean.strategies import CleaningOptions, NotebookStrategy

from tests.conftest import NOTEBOOK


class TestCleanNotebook:
    def test_execution_data_cleared(self):
        cleaned = clean_notebook(NOTEBOOK)
        code, markdown = cleaned["cells"]

        assert code["execution_count"] is None
        assert code["outputs"] == []
        assert code["metadata"] == {}
        assert markdown["metadata"] == {}
        assert "execution_count" not in markdown
        assert "outputs" not in markdown

    def test_sources_untouched(self):
        cleaned = clean_notebook(NOTEBOOK)
        assert [c["source"] for c in cleaned["cells"]] == [c["source"] for c in NOTEBOOK["cells"]]
        assert cleaned["nbformat"] == 4
        assert cleaned["nbformat_minor"] == 5

    def test_metadata_replaced_with_template(self):
        cleaned = clean_notebook(NOTEBOOK)
        assert cleaned["metadata"] == NOTEBOOK_METADATA_TEMPLATE
        assert "widgets" not in cleaned["metadata"]

    def test_input_not_mutated(self):
        snapshot = json.dumps(NOTEBOOK, sort_keys=True)
        clean_notebook(NOTEBOOK)
        assert json.dumps(NOTEBOOK, sort_keys=True) == snapshot

    def test_notebook_without_cells(self):
        cleaned = clean_notebook({"metadata": {"x": 1}, "nbformat": 4})
        assert cleaned["metadata"] == NOTEBOOK_METADATA_TEMPLATE

    def test_bad_cells_rejected(self):
        with pytest.raises(NotebookError):
            clean_notebook({"cells": {"not": "a list"}})
        with pytest.raises(NotebookError):
            clean_notebook({"cells": ["not a cell"]})


class TestCleanNotebookBytes:
    def test_idempotent(self):
        once = clean_notebook_bytes(json.dumps(NOTEBOOK).encode("utf-8"))
        twice = clean_notebook_bytes(once)
        assert once == twice

    def test_serialization_format(self):
        out = clean_notebook_bytes(json.dumps(NOTEBOOK).encode("utf-8"))
        assert out.endswith(b"\n")
        assert out.startswith(b'{\n "cells"')

    def test_unicode_preserved(self):
        nb = {"cells": [{"cell_type": "markdown", "metadata": {}, "source": ["héllo ✓"]}]}
        out = clean_notebook_bytes(json.dumps(nb).encode("utf-8"))
        assert "héllo ✓" in out.decode("utf-8")

    @pytest.mark.parametrize("data", [b"{not json", b"[1, 2]", b"\xff\xfe"])
    def test_malformed_rejected(self, data):
        with pytest.raises(NotebookError):
            clean_notebook_bytes(data)


class TestNotebookStrategy:
    def _record(self, path):
        record = FileRecord(path=path, size=path.stat().st_size, kind=FileKind.NOTEBOOK)
        record.transition(FileState.PROCESSING)
        return record

    def test_cleans_file_in_place(self, notebook_path):
        result = NotebookStrategy().run(self._record(notebook_path), CleaningOptions())

        assert result.status is StepStatus.APPLIED
        data = json.loads(notebook_path.read_text(encoding="utf-8"))
        assert data["cells"][0]["outputs"] == []
        assert data["cells"][0]["execution_count"] is None

    def test_malformed_notebook_left_byte_identical(self, tmp_path):
        path = tmp_path / "broken.ipynb"
        original = b'{"cells": [ {"cell_type": "code", '
        path.write_bytes(original)

        result = NotebookStrategy().run(self._record(path), CleaningOptions())

        assert result.status is StepStatus.FAILED
        assert path.read_bytes() == original
        assert list(tmp_path.iterdir()) == [path]

    def test_not_applicable_to_other_kinds(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("x")
        record = FileRecord(path=path, size=1, kind=FileKind.TEXT)
        record.transition(FileState.PROCESSING)
        assert NotebookStrategy().run(record, CleaningOptions()).status is StepStatus.NOT_APPLICABLE


def test_malformed_notebook_is_logged(tmp_path, caplog):
    path = tmp_path / "broken.ipynb"
    path.write_text("{")
    record = FileRecord(path=path, size=1, kind=FileKind.NOTEBOOK)
    record.transition(FileState.PROCESSING)

    with caplog.at_level("WARNING", logger="metaclean.strategies"):
        NotebookStrategy().run(record, CleaningOptions())

    assert "Failed to clean Jupyter notebook" in caplog.text
