"""CDDA Backup — automatic snapshots of Cataclysm: DDA save folders.

Watches the game's save directory, waits for a save to settle, and
writes a timestamped zip archive of it into a backup folder.
"""

import logging

__version__ = "1.0.0"
__app_name__ = "CDDA Backup"

# Finer than DEBUG, used for per-file progress
TRACE = 5
logging.addLevelName(TRACE, "TRACE")
