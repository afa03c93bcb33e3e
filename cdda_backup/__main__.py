"""Entry point for CDDA Backup.

Usage:
    python -m cdda_backup                         Watch using the saved config
    python -m cdda_backup --config PATH           Use another config file
    python -m cdda_backup --save-directory PATH   Override the watched folder
"""

import argparse
import logging
import sys
from pathlib import Path

from cdda_backup import __app_name__, __version__

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cdda-backup",
        description=f"{__app_name__}: snapshot CDDA saves whenever they change.",
    )
    parser.add_argument("--config", type=Path, help="path to config.json")
    parser.add_argument(
        "--save-directory", help="watch this folder instead of the configured one"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Load config, wire up the app, and run until stopped."""
    from cdda_backup.app import App, setup_logging
    from cdda_backup.config import Config, ConfigurationError

    args = _parse_args(argv)
    cfg = Config(args.config)
    setup_logging(cfg)
    if args.save_directory:
        cfg.save_directory = args.save_directory

    try:
        app = App(cfg)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1

    app.install_signal_handlers()
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
