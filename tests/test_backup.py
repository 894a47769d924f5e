"""
Tests for pre-run backups.
"""

import tarfile
from datetime import datetime

import pytest

from metaclean.backup import create_backup
from metaclean.errors import BackupError

NOW = datetime(2024, 3, 1, 12, 30, 45)


@pytest.fixture
def source(tmp_path):
    root = tmp_path / "proj"
    (root / "pkg").mkdir(parents=True)
    (root / "pkg" / "mod.py").write_text("x = 1\n")
    (root / ".venv" / "lib").mkdir(parents=True)
    (root / ".venv" / "lib" / "site.py").write_text("")
    (root / "stale.pyc").write_bytes(b"\x00")
    return root


def test_plain_copy(tmp_path, source):
    path = create_backup(source, tmp_path / "backups", now=NOW)

    assert path == tmp_path / "backups" / "proj_backup_20240301_123045"
    assert (path / "pkg" / "mod.py").read_text() == "x = 1\n"
    assert (path / ".venv" / "lib" / "site.py").exists()


def test_single_file(tmp_path):
    src = tmp_path / "a.txt"
    src.write_text("hello")

    path = create_backup(src, tmp_path / "backups", now=NOW)

    assert path.name == "a.txt_backup_20240301_123045"
    assert path.read_text() == "hello"


def test_compressed_archive_skips_excludes(tmp_path, source):
    path = create_backup(source, tmp_path / "backups", compress=True, now=NOW)

    assert path.name == "proj_backup_20240301_123045.tar.gz"
    with tarfile.open(path, "r:gz") as tar:
        names = tar.getnames()
    assert "proj/pkg/mod.py" in names
    assert not any(".venv" in n for n in names)
    assert "proj/stale.pyc" not in names


def test_nested_backup_dir_not_copied_into_itself(tmp_path, source):
    backups = source / "metadata_backup"

    path = create_backup(source, backups, now=NOW)

    assert (path / "pkg" / "mod.py").exists()
    assert not (path / "metadata_backup").exists()


def test_nested_backup_dir_not_archived(tmp_path, source):
    backups = source / "snapshots"

    path = create_backup(source, backups, compress=True, now=NOW)

    with tarfile.open(path, "r:gz") as tar:
        names = tar.getnames()
    assert not any(n.startswith("proj/snapshots") for n in names)


def test_unwritable_destination_raises(tmp_path, source):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    with pytest.raises(BackupError):
        create_backup(source, blocker / "backups", now=NOW)
