"""
Pre-run safety copy of the target.

A backup is a blocking, single operation: either a plain copy of the
file/tree or a gzip-compressed tar archive. Any failure raises
BackupError and the run must not continue.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import shutil
import tarfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import BACKUP_EXCLUDES
from .errors import BackupError

logger = logging.getLogger(__name__)


def _backup_name(source: Path, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{source.name}_backup_{stamp}"


def _make_tar_filter(skip: Optional[str]):
    """Build a tar filter dropping BACKUP_EXCLUDES and the archive member ``skip``."""

    def _filter(info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
        if skip is not None and (info.name == skip or info.name.startswith(skip + "/")):
            return None
        parts = Path(info.name).parts
        for pattern in BACKUP_EXCLUDES:
            if any(fnmatch.fnmatchcase(part, pattern) for part in parts[1:]):
                return None
        return info

    return _filter


def create_backup(
    source: str | Path,
    backup_dir: str | Path,
    compress: bool = False,
    now: Optional[datetime] = None,
) -> Path:
    """
    Copy or archive ``source`` into ``backup_dir``.

    Compressed directory backups leave out virtualenvs, caches, VCS data
    and earlier backups. Plain copies keep everything.

    Raises:
        BackupError: if the backup could not be written

    Returns:
        Path: the created backup file or directory
    """

    source = Path(os.path.abspath(source))
    backup_dir = Path(os.path.abspath(backup_dir))
    name = _backup_name(source, now)

    # a backup directory nested in the source must not back itself up
    nested: Optional[str] = None
    if source in backup_dir.parents:
        nested = (Path(source.name) / backup_dir.relative_to(source)).as_posix()

    try:
        backup_dir.mkdir(parents=True, exist_ok=True)

        if compress:
            backup_path = backup_dir / f"{name}.tar.gz"
            logger.info("Creating compressed backup of %s", source)
            with tarfile.open(backup_path, "w:gz") as tar:
                tar.add(
                    str(source),
                    arcname=source.name,
                    filter=_make_tar_filter(nested) if source.is_dir() else None,
                )
        else:
            backup_path = backup_dir / name
            if source.is_dir():
                ignore_self = str(backup_dir)

                def _ignore(directory: str, names: list) -> list:
                    return [n for n in names if os.path.join(directory, n) == ignore_self]

                shutil.copytree(source, backup_path, symlinks=True, ignore=_ignore)
            else:
                shutil.copy2(source, backup_path)
    except (OSError, tarfile.TarError, shutil.Error) as e:
        raise BackupError(
            f"Failed to create backup of {source}: {e}. Check permissions and disk space."
        ) from e

    if not backup_path.exists():
        raise BackupError(f"Backup was not created: {backup_path}")

    logger.debug("Backup written to %s", backup_path)
    return backup_path
