"""
unpackd - Main entry point

Watches release directories and unpacks completed archive sets:
- Change events from the watched trees trigger the archive pipeline
- SIGUSR1 rescans every watched directory
- SIGUSR2 reloads the configuration file
- SIGTERM / SIGINT shut down
"""

import argparse
import signal
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from app.utils.config import get_settings, read_config
from domains.release_watch.errors import ConfigError
from domains.release_watch.processors.unpacker import ArchiveHandler
from domains.release_watch.watchers.filesystem import SIGNAL_COMMANDS, Watcher

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str) -> None:
    """Configure loguru to log to stderr at ``level``."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Watch directories and unpack completed archive sets.",
    )
    parser.add_argument(
        "-f",
        "--config",
        type=Path,
        default=settings.get_config_file(),
        help="Path to the JSON config file (default: %(default)s).",
    )
    parser.add_argument(
        "-l",
        "--log-level",
        default=settings.log_level,
        help="Log level (default: %(default)s).",
    )
    parser.add_argument(
        "-t",
        "--test",
        action="store_true",
        help="Validate the config file, print it and exit.",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI."""

    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = read_config(args.config)
    except ConfigError as e:
        logger.error(f"Failed to read config: {e}")
        return 1

    if args.test:
        print(config.model_dump_json(indent=2, by_alias=True))
        return 0

    watcher = Watcher(config, ArchiveHandler())
    for signum in SIGNAL_COMMANDS:
        signal.signal(signum, watcher.on_signal)

    logger.info(f"Starting unpackd with {len(config.paths)} watched paths")
    watcher.run()
    logger.success("unpackd stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
