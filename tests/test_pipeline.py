"""
End-to-end tests for the run pipeline.
"""

import json
import os

import pytest

from metaclean.config import NEUTRAL_EPOCH
from metaclean.errors import UsageError
from metaclean.models import FileKind, FileState, StepResult
from metaclean.pipeline import Pipeline, detect_kind
from metaclean.strategies import CleaningStrategy, StrategySelector, TimestampStrategy
from metaclean.verifier import IntegrityVerifier

from tests.conftest import make_options


def records_by_name(result):
    return {r.path.name: r for r in result.stats.records}


class TestDetectKind:
    @pytest.mark.parametrize("name,kind", [
        ("a.ipynb", FileKind.NOTEBOOK),
        ("a.json", FileKind.STRUCTURED),
        ("a.YAML", FileKind.STRUCTURED),
        ("a.py", FileKind.TEXT),
    ])
    def test_by_extension(self, tmp_path, name, kind):
        path = tmp_path / name
        path.write_text("x")
        assert detect_kind(path, (".py",)) is kind

    def test_sniffing(self, tmp_path):
        text = tmp_path / "README"
        text.write_text("plain")
        blob = tmp_path / "data.bin"
        blob.write_bytes(b"ab\x00cd")
        assert detect_kind(text, ()) is FileKind.SNIFFED_TEXT
        assert detect_kind(blob, ()) is FileKind.BINARY


class TestSingleFile:
    def test_comment_lines_removed(self, tmp_path, make_pipeline):
        path = tmp_path / "mod.py"
        path.write_text("# Author: Jane Doe\nimport os\n")

        result = make_pipeline().run(path)

        record = result.stats.records[0]
        assert record.state is FileState.CLEANED
        assert "comments" in record.applied_steps
        st = path.stat()
        assert st.st_mtime == NEUTRAL_EPOCH
        assert st.st_atime == NEUTRAL_EPOCH
        assert path.read_text() == "import os\n"
        assert result.audit is None

    def test_aggressive_redaction_counted(self, tmp_path, make_pipeline):
        path = tmp_path / "notes.txt"
        path.write_text("ping ops@corp.example.com\n")

        result = make_pipeline(aggressive=True).run(path)

        assert path.read_text() == "ping [EMAIL_REMOVED]\n"
        assert result.stats.sensitive_redacted == 1
        assert result.stats.cleaned == 1

    def test_notebook_cleaned_and_verified(self, notebook_path, make_pipeline):
        result = make_pipeline().run(notebook_path)

        record = result.stats.records[0]
        assert record.state is FileState.CLEANED
        data = json.loads(notebook_path.read_text(encoding="utf-8"))
        assert data["cells"][0]["outputs"] == []

    def test_broken_notebook_fails_and_is_untouched(self, tmp_path, make_pipeline):
        path = tmp_path / "broken.ipynb"
        path.write_bytes(b'{"cells": [')

        result = make_pipeline().run(path)

        record = result.stats.records[0]
        assert record.state is FileState.FAILED
        assert "invalid JSON in notebook" in record.reason
        assert path.read_bytes() == b'{"cells": ['
        assert result.stats.failed == 1

    def test_missing_target(self, tmp_path, make_pipeline):
        with pytest.raises(UsageError):
            make_pipeline().run(tmp_path / "nope")

    def test_checksums_recorded(self, tmp_path, make_pipeline):
        path = tmp_path / "a.txt"
        path.write_text("abc")

        result = make_pipeline(checksums=True).run(path)

        assert result.stats.records[0].checksum == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_reads_after_cleaning_keep_neutral_timestamps(self, tmp_path, rule_engine):
        path = tmp_path / "a.txt"
        path.write_text("abc")

        class TouchingVerifier(IntegrityVerifier):
            def verify(self, record):
                os.utime(record.path, None)
                return super().verify(record)

        pipeline = Pipeline(rule_engine, make_options(checksums=True), verifier=TouchingVerifier())
        record = pipeline.process_file(path)

        assert record.state is FileState.CLEANED
        st = path.stat()
        assert st.st_atime == NEUTRAL_EPOCH
        assert st.st_mtime == NEUTRAL_EPOCH

    def test_file_of_only_sensitive_lines_left_intact(self, tmp_path, make_pipeline):
        path = tmp_path / "token.txt"
        path.write_text("ACME-SECRET token\n")

        result = make_pipeline(aggressive=True, sensitive_patterns=["ACME-SECRET"]).run(path)

        record = result.stats.records[0]
        assert path.read_text() == "ACME-SECRET token\n"
        assert record.state is FileState.CLEANED
        assert "sensitive" not in record.applied_steps
        assert result.stats.sensitive_redacted == 0


class TestDirectory:
    @pytest.fixture
    def project(self, tmp_path):
        root = tmp_path / "project"
        (root / "src").mkdir(parents=True)
        (root / "src" / "app.py").write_text("# Created on: 2020-01-01\nprint('hi')\n")
        (root / "README.md").write_text("Contact: dev@example.com\n")
        (root / "node_modules").mkdir()
        (root / "node_modules" / "lib.js").write_text("// Author: someone\n")
        (root / "cache.pyc").write_bytes(b"\x00")
        return root

    def test_non_recursive_by_default(self, project, make_pipeline):
        result = make_pipeline().run(project)
        assert [r.path.name for r in result.stats.records] == ["README.md"]

    def test_recursive_run_skips_excluded(self, project, make_pipeline):
        result = make_pipeline(recursive=True).run(project)

        names = sorted(records_by_name(result))
        assert names == ["README.md", "app.py"]
        assert (project / "node_modules" / "lib.js").read_text() == "// Author: someone\n"
        assert (project / "src" / "app.py").read_text() == "print('hi')\n"

    def test_audit_reports_leftovers(self, project, make_pipeline):
        result = make_pipeline(recursive=True).run(project)

        assert result.audit is not None
        assert result.audit.files_for("email") == [project / "README.md"]
        assert result.stats.audit_warnings == 1

    def test_aggressive_run_passes_audit(self, project, make_pipeline):
        result = make_pipeline(recursive=True, aggressive=True).run(project)

        assert result.audit.passed
        assert result.stats.sensitive_redacted == 1

    def test_cleaned_files_carry_neutral_timestamps(self, project, make_pipeline):
        result = make_pipeline(recursive=True).run(project)

        cleaned = result.stats.in_state(FileState.CLEANED)
        assert len(cleaned) == 2
        for record in cleaned:
            st = record.path.stat()
            assert st.st_mtime == NEUTRAL_EPOCH
            assert st.st_atime == NEUTRAL_EPOCH

    def test_notebook_in_directory(self, tmp_path, notebook_path, make_pipeline):
        result = make_pipeline().run(tmp_path)

        assert result.stats.cleaned == 1
        data = json.loads(notebook_path.read_text(encoding="utf-8"))
        code = data["cells"][0]
        assert code["execution_count"] is None
        assert code["outputs"] == []
        assert code["source"] == ["print('hi')\n"]

    def test_dry_run_changes_nothing(self, project, make_pipeline):
        before = {p: (p.read_bytes(), p.stat().st_mtime_ns) for p in project.rglob("*") if p.is_file()}

        result = make_pipeline(recursive=True, dry_run=True, aggressive=True).run(project)

        after = {p: (p.read_bytes(), p.stat().st_mtime_ns) for p in project.rglob("*") if p.is_file()}
        assert before == after
        assert result.stats.total == 2
        assert result.stats.skipped == 2
        assert result.stats.cleaned == 0
        assert result.audit is None
        record = records_by_name(result)["app.py"]
        assert record.reason.startswith("dry run; would apply:")
        assert "comments" in record.reason

    def test_parallel_matches_sequential(self, tmp_path, make_pipeline):
        seq_root = tmp_path / "seq"
        par_root = tmp_path / "par"
        for root in (seq_root, par_root):
            root.mkdir()
            for i in range(12):
                (root / f"f{i}.py").write_text(f"# Author: dev{i}\nx = {i}\n")

        seq = make_pipeline().run(seq_root)
        par = make_pipeline(parallel=True, jobs=4).run(par_root)

        assert par.stats.total == seq.stats.total == 12
        assert par.stats.cleaned == seq.stats.cleaned
        assert par.stats.consistent
        for i in range(12):
            assert (par_root / f"f{i}.py").read_text() == (seq_root / f"f{i}.py").read_text()

    def test_excluded_target_produces_no_records(self, tmp_path, make_pipeline):
        target = tmp_path / "node_modules"
        target.mkdir()
        (target / "a.js").write_text("// Author: x\n")

        result = make_pipeline(recursive=True).run(target)

        assert result.excluded_target
        assert result.stats.total == 0
        assert result.audit is None
        assert (target / "a.js").read_text() == "// Author: x\n"


class _Broken(CleaningStrategy):
    name = "broken"

    def applies_to(self, record, options):
        return True

    def apply(self, record, options):
        raise OSError("disk on fire")


class _NeverApplies(CleaningStrategy):
    name = "never"

    def applies_to(self, record, options):
        return False

    def apply(self, record, options):
        return StepResult.ok(self.name)


class TestOutcomes:
    def test_nothing_applied_is_skipped(self, tmp_path, rule_engine):
        path = tmp_path / "a.txt"
        path.write_text("x")
        pipeline = Pipeline(rule_engine, make_options(), selector=StrategySelector([_NeverApplies()]))

        record = pipeline.process_file(path)

        assert record.state is FileState.SKIPPED
        assert record.reason == "no cleaning step applied"

    def test_failed_step_does_not_fail_file(self, tmp_path, rule_engine):
        path = tmp_path / "a.txt"
        path.write_text("x")
        selector = StrategySelector([_Broken(), TimestampStrategy()])
        pipeline = Pipeline(rule_engine, make_options(), selector=selector)

        record = pipeline.process_file(path)

        assert record.state is FileState.CLEANED
        assert record.applied_steps == ["timestamps"]

    def test_callback_sees_every_record(self, tmp_path, rule_engine):
        for name in ("a.txt", "b.txt", "c.txt"):
            (tmp_path / name).write_text("x")
        seen = []
        pipeline = Pipeline(rule_engine, make_options(parallel=True, jobs=2), on_record=seen.append)

        result = pipeline.run(tmp_path)

        assert sorted(r.path.name for r in seen) == ["a.txt", "b.txt", "c.txt"]
        assert result.stats.total == 3
        assert result.stats.consistent

    def test_backup_created_before_cleaning(self, tmp_path, rule_engine):
        target = tmp_path / "proj"
        target.mkdir()
        (target / "a.py").write_text("# Author: me\nx = 1\n")
        backups = tmp_path / "backups"
        pipeline = Pipeline(rule_engine, make_options(backup=True, backup_dir=str(backups)))

        result = pipeline.run(target)

        assert result.backup_path is not None
        assert (result.backup_path / "a.py").read_text() == "# Author: me\nx = 1\n"
        assert (target / "a.py").read_text() == "x = 1\n"

    def test_no_backup_on_dry_run(self, tmp_path, rule_engine):
        target = tmp_path / "proj"
        target.mkdir()
        (target / "a.py").write_text("x = 1\n")
        backups = tmp_path / "backups"
        pipeline = Pipeline(rule_engine, make_options(backup=True, backup_dir=str(backups), dry_run=True))

        result = pipeline.run(target)

        assert result.backup_path is None
        assert not backups.exists()

    def test_no_backup_of_excluded_target(self, tmp_path, rule_engine):
        target = tmp_path / "node_modules"
        target.mkdir()
        (target / "a.js").write_text("// Author: x\n")
        backups = tmp_path / "backups"
        pipeline = Pipeline(rule_engine, make_options(backup=True, backup_dir=str(backups)))

        result = pipeline.run(target)

        assert result.excluded_target
        assert result.backup_path is None
        assert not backups.exists()
