"""Save folder watcher for CDDA Backup.

Uses the watchdog library to monitor the save directory. Every change
inside a save folder refreshes that save's entry in a pending map; a
poll loop hands a save to the backup callback once no change has been
seen for the grace period.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

from cdda_backup import TRACE
from cdda_backup.config import Settings

logger = logging.getLogger(__name__)

# Filesystems with coarse timestamps (FAT: 2 s) can date a fresh write slightly early
_MTIME_SLACK_NS = 2_000_000_000


@dataclass(frozen=True)
class ChangeNotification:
    """A change seen inside the save folder at *path*."""

    path: Path
    timestamp: float


class PendingChanges:
    """Thread-safe map of save folder -> time of the last observed change."""

    def __init__(self) -> None:
        self._entries: dict[Path, float] = {}
        self._lock = threading.Lock()

    def record(self, note: ChangeNotification) -> None:
        """Create or refresh the entry for ``note.path``."""
        with self._lock:
            self._entries[note.path] = note.timestamp

    def drain_settled(self, now: float, grace_period: float) -> list[Path]:
        """Remove and return every save quiet for at least *grace_period*."""
        settled: list[Path] = []
        with self._lock:
            for path, last_seen in self._entries.items():
                if now - last_seen >= grace_period:
                    settled.append(path)
                else:
                    logger.log(TRACE, "Skipped save due to grace period: %s", path)
            for path in settled:
                del self._entries[path]
        return settled

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def paths(self) -> list[Path]:
        with self._lock:
            return list(self._entries)


def _normalized(path: str | Path) -> Path:
    """Absolute, case-folded form of *path* for containment checks."""
    return Path(os.path.normcase(os.path.abspath(path)))


class SaveEventHandler(FileSystemEventHandler):
    """
    Watchdog handler that feeds changes into a :class:`SaveWatcher`.

    Modified events for files only count when the file's mtime or size
    moved, so reading a save (which some platforms report as a
    modification) does not schedule another backup. Files first seen
    through a modified event count only if written since *since*.
    """

    def __init__(self, watcher: SaveWatcher, since: float | None = None):
        super().__init__()
        self._watcher = watcher
        since_ns = time.time_ns() if since is None else int(since * 1_000_000_000)
        self._since_ns = since_ns - _MTIME_SLACK_NS
        # file path -> (mtime_ns, size) at the last counted change
        self._seen: dict[str, tuple[int, int]] = {}

    def on_created(self, event: FileSystemEvent) -> None:
        path = os.fsdecode(event.src_path)
        if not event.is_directory:
            self._remember(path)
        self._watcher.record(path)

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory mtimes follow child creates/deletes, which arrive as their own events
        if event.is_directory:
            return
        path = os.fsdecode(event.src_path)
        if self._content_changed(path):
            self._watcher.record(path)
        else:
            logger.log(TRACE, "Ignored access-only change: %s", path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        path = os.fsdecode(event.src_path)
        self._seen.pop(path, None)
        # Dropped by record() when the save folder itself is gone
        self._watcher.record(path)

    def on_moved(self, event: FileSystemMovedEvent) -> None:  # type: ignore[override]
        src = os.fsdecode(event.src_path)
        dest = os.fsdecode(event.dest_path)
        self._seen.pop(src, None)
        if not event.is_directory:
            self._remember(dest)
        self._watcher.record(src)
        self._watcher.record(dest)

    @staticmethod
    def _stat(path: str) -> tuple[int, int] | None:
        try:
            st = os.stat(path)
        except OSError:
            return None
        return st.st_mtime_ns, st.st_size

    def _remember(self, path: str) -> None:
        state = self._stat(path)
        if state is not None:
            self._seen[path] = state

    def _content_changed(self, path: str) -> bool:
        current = self._stat(path)
        if current is None:
            return True
        previous = self._seen.get(path)
        self._seen[path] = current
        if previous is None:
            return current[0] >= self._since_ns
        return current != previous


class SaveWatcher:
    """
    Debounces filesystem changes into one callback per settled save.

    Usage:
        watcher = SaveWatcher(settings)
        watcher.watch(cancel_event, writer.backup_save)   # blocks
    """

    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self._settings = settings
        self._clock = clock
        self._observer_factory = observer_factory
        self._pending = PendingChanges()
        self._root = Path(os.path.abspath(settings.watched_root))
        self._backup_key = _normalized(self._root / settings.backup_folder_name)

    # ---- notifications ----

    def is_backup_path(self, path: str | Path) -> bool:
        """Return whether *path* is the backup directory or inside it."""
        return _normalized(path).is_relative_to(self._backup_key)

    def save_for(self, path: str | Path) -> Path | None:
        """
        Map a changed path to the save folder containing it.

        Returns None for the watched root itself, anything outside it,
        anything that is not an existing folder directly in it, the backup
        directory and its contents, and folders that hold the backup
        directory.
        """
        abs_path = Path(os.path.abspath(path))
        try:
            rel = abs_path.relative_to(self._root)
        except ValueError:
            return None
        if not rel.parts or self.is_backup_path(abs_path):
            return None

        save = self._root / rel.parts[0]
        if self._backup_key.is_relative_to(_normalized(save)):
            return None
        if not save.is_dir():
            return None
        return save

    def record(self, path: str | Path) -> bool:
        """
        Note a change at *path*, resetting its save's settle clock.

        Returns whether the change was accepted.
        """
        save = self.save_for(path)
        if save is None:
            logger.log(TRACE, "Ignored change outside any save: %s", path)
            return False
        self._pending.record(ChangeNotification(save, self._clock()))
        logger.log(TRACE, "Marked save as seen: %s", save)
        return True

    # ---- poll loop ----

    def tick(
        self,
        on_settled: Callable[[Path], None],
        cancel: threading.Event | None = None,
    ) -> list[Path]:
        """
        Run one poll: hand every settled save to *on_settled*.

        Settled entries leave the pending map before their callbacks run,
        so a failing callback is not retried and a change arriving during
        the callback starts a fresh entry. Callback errors are logged.

        Returns the saves whose callbacks were invoked.
        """
        settled = self._pending.drain_settled(self._clock(), self._settings.grace_period)
        handled: list[Path] = []
        for save in settled:
            if cancel is not None and cancel.is_set():
                logger.debug("Shutdown requested; abandoning settled save %s", save)
                break
            logger.debug("Triggering backup for settled save: %s", save)
            handled.append(save)
            try:
                on_settled(save)
            except Exception:
                logger.exception("Backup failed for %s", save)
        return handled

    def watch(
        self,
        cancel: threading.Event,
        on_settled: Callable[[Path], None],
    ) -> None:
        """Watch the save directory until *cancel* is set."""
        root = self._root
        if not root.is_dir():
            logger.error("Save directory does not exist: %s", root)
            return

        observer = self._observer_factory()
        try:
            observer.schedule(SaveEventHandler(self), str(root), recursive=True)
            observer.start()
        except OSError:
            logger.exception("Could not start watching %s", root)
            return

        logger.info(
            "Watching '%s' (grace=%.2fs, poll=%.2fs, backups in '%s')",
            root,
            self._settings.grace_period,
            self._settings.poll_interval,
            self._settings.backup_directory,
        )
        try:
            while not cancel.is_set():
                self.tick(on_settled, cancel)
                cancel.wait(self._settings.poll_interval)
        except Exception:
            logger.exception("Save watcher stopped unexpectedly")
        finally:
            observer.stop()
            observer.join(timeout=5)
            self._pending.clear()
            logger.info("Watcher stopped.")

    # ---- status ----

    @property
    def pending_count(self) -> int:
        """Return the number of saves awaiting their grace period."""
        return len(self._pending)

    @property
    def pending_saves(self) -> list[Path]:
        """Return the saves currently awaiting their grace period."""
        return self._pending.paths()
