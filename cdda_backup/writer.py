"""Backup writer for CDDA Backup.

Turns a settled save folder into ``<save name> <timestamp>.zip`` inside
the backup directory: copy the folder, compress the copy, delete the copy.
"""

from __future__ import annotations

import logging
import os
import shutil
import zipfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from cdda_backup import TRACE
from cdda_backup.config import Settings
from cdda_backup.copier import Copier

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".zip"


def archive_directory(directory: Path, archive_path: Path) -> int:
    """
    Compress *directory* into a new zip at *archive_path*.

    Entry names are relative to *directory*. Empty directories are stored
    as ``name/`` entries so extraction rebuilds the same tree. Fails if
    *archive_path* already exists.

    Returns the number of files written.
    """
    count = 0
    with zipfile.ZipFile(
        archive_path, "x", compression=zipfile.ZIP_DEFLATED, compresslevel=9
    ) as zf:
        for root, dirs, files in os.walk(directory):
            root_path = Path(root)
            if root_path != directory and not dirs and not files:
                zf.write(root_path, root_path.relative_to(directory).as_posix() + "/")
                continue
            for name in files:
                file_path = root_path / name
                zf.write(file_path, file_path.relative_to(directory).as_posix())
                count += 1
    return count


class BackupWriter:
    """Writes one compressed snapshot per call. Holds no per-backup state."""

    def __init__(
        self,
        settings: Settings,
        copier: Copier | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._settings = settings
        self._copier = copier or Copier()
        self._clock = clock

        self._settings.backup_directory.mkdir(parents=True, exist_ok=True)

    def backup_name(self, save_path: Path) -> str:
        """Return ``<save name> <formatted now>`` for *save_path*."""
        stamp = self._clock().strftime(self._settings.timestamp_format)
        return f"{Path(save_path).name} {stamp}"

    def backup_save(self, save_path: Path) -> Path:
        """
        Snapshot *save_path* into the backup directory.

        Raises SourceMissingError when the save has vanished, and
        FileExistsError when an archive with the same name already exists.
        A failure after the copy leaves the raw snapshot folder behind.

        Returns the path of the written archive.
        """
        save_path = Path(save_path)
        backup_path = self._settings.backup_directory / self.backup_name(save_path)
        archive_path = backup_path.with_name(backup_path.name + ARCHIVE_EXTENSION)

        if archive_path.exists():
            raise FileExistsError(f"Backup already exists: {archive_path}")

        logger.log(TRACE, "Making backup of %s to %s", save_path, backup_path)
        copied = self._copier.copy_directory(save_path, backup_path)

        logger.log(TRACE, "Compressing unzipped backup: %s (%d files)", backup_path, copied)
        archive_directory(backup_path, archive_path)

        logger.log(TRACE, "Deleting unzipped backup: %s", backup_path)
        shutil.rmtree(backup_path)

        logger.info("Wrote backup: %s", archive_path)
        return archive_path
