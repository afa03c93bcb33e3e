"""
Main application controller for CDDA Backup.

Ties together configuration, logging, the save watcher and the backup
writer, and runs them in the foreground until the user asks to stop
(Enter on the console, Ctrl-C, or SIGTERM).
"""

import logging
import logging.handlers
import signal
import sys
import threading
from pathlib import Path

from cdda_backup import TRACE, __app_name__, __version__
from cdda_backup.config import Config, Settings, get_log_path
from cdda_backup.copier import Copier
from cdda_backup.watcher import SaveWatcher
from cdda_backup.writer import BackupWriter

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config, log_path: Path | None = None) -> None:
    """Configure rotating file log and stderr handler."""
    log_path = log_path or get_log_path()
    level_name = config.log_level.upper()
    level = TRACE if level_name == "TRACE" else getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter(_LOG_FORMAT)

    # Rotating file handler
    max_bytes = config.max_log_size_mb * 1024 * 1024
    fh = logging.handlers.RotatingFileHandler(
        str(log_path),
        maxBytes=max_bytes,
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root_logger.addHandler(fh)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)


class App:
    """
    Central orchestrator.

    Owns the cancellation event shared with the watcher; everything
    else is built from the resolved settings.
    """

    def __init__(self, config: Config, settings: Settings | None = None) -> None:
        self.config = config
        # Raises ConfigurationError when the save directory is unset
        self.settings = settings or config.to_settings()
        self.copier = Copier()
        self.writer = BackupWriter(self.settings, self.copier)
        self.watcher = SaveWatcher(self.settings)
        self._cancel = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def stop(self) -> None:
        """Request shutdown (thread-safe)."""
        if not self._cancel.is_set():
            logger.info("Shutting down…")
        self._cancel.set()

    def run(self, interactive: bool | None = None) -> None:
        """Watch for saves and back them up until :meth:`stop` is called."""
        if interactive is None:
            interactive = sys.stdin is not None and sys.stdin.isatty()

        logger.info("%s %s starting.", __app_name__, __version__)
        print(f"[{__app_name__}]")
        print("-" * (len(__app_name__) + 2))
        if interactive:
            print("Press Enter to stop.")
            threading.Thread(
                target=self._wait_for_enter, daemon=True, name="StopOnEnter"
            ).start()
        else:
            print("Press Ctrl-C to stop.")

        self.watcher.watch(self._cancel, self.writer.backup_save)
        print("done")

    def install_signal_handlers(self) -> None:
        """Stop cleanly on SIGINT/SIGTERM. Must run on the main thread."""

        def _handler(sig, frame):
            self.stop()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)

    def _wait_for_enter(self) -> None:
        try:
            sys.stdin.readline()
        except (OSError, ValueError):
            return
        self.stop()
