"""
Directory copy engine for CDDA Backup.

Duplicates a save folder into the backup folder before it is archived.
Copies never overwrite: an existing destination file is an error.
Traversal is driven by an explicit stack, so deeply nested trees do
not grow the Python call stack.
"""

import logging
import os
import shutil
from pathlib import Path

from cdda_backup import TRACE

logger = logging.getLogger(__name__)


class SourceMissingError(FileNotFoundError):
    """The file or directory to copy does not exist."""


class Copier:
    """Synchronous file and directory copier. Holds no state between calls."""

    def copy_file(self, source: Path, destination: Path) -> None:
        """Copy *source* to *destination*, refusing to overwrite."""
        source = Path(source)
        destination = Path(destination)
        if not source.is_file():
            logger.error("File does not exist to copy: %s", source)
            raise SourceMissingError(f"Cannot copy non-existent file: {source}")
        if destination.exists():
            raise FileExistsError(f"Refusing to overwrite existing file: {destination}")

        logger.log(TRACE, "Copying file %s -> %s", source, destination)
        shutil.copy2(source, destination)

    def copy_directory(self, source: Path, destination: Path) -> int:
        """
        Recursively copy the directory *source* into *destination*.

        *destination* and every subdirectory are created as needed. Within
        each directory, files are copied before its subdirectories are
        visited. Sibling order is unspecified.

        Returns the number of files copied.
        """
        source = Path(source)
        destination = Path(destination)
        logger.log(TRACE, "Copying directory %s -> %s", source, destination)

        if not source.is_dir():
            logger.error("Directory does not exist to copy: %s", source)
            raise SourceMissingError(f"Cannot copy non-existent directory: {source}")

        copied = 0
        stack: list[tuple[Path, Path]] = [(source, destination)]
        while stack:
            src_dir, dst_dir = stack.pop()
            if not dst_dir.exists():
                logger.log(TRACE, "Creating directory: %s", dst_dir)
                dst_dir.mkdir(parents=True)

            with os.scandir(src_dir) as it:
                entries = list(it)

            subdirs: list[tuple[Path, Path]] = []
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append((Path(entry.path), dst_dir / entry.name))
                elif entry.is_file(follow_symlinks=False):
                    self.copy_file(Path(entry.path), dst_dir / entry.name)
                    copied += 1
                else:
                    logger.debug("Skipping unsupported entry: %s", entry.path)

            stack.extend(subdirs)

        return copied
