"""
Full rescan of watched directories.

Walks each watched tree once and feeds every regular file through the same
handler used for live change events.
"""

import os
import stat
from pathlib import Path
from typing import Callable, Iterable, Iterator

from loguru import logger

from domains.release_watch.errors import IncompleteError, RuleRejected


def _raise(error: OSError) -> None:
    raise error


def iter_regular_files(root: Path) -> Iterator[Path]:
    """
    Yield regular files below ``root`` depth-first in sorted order.

    Symlinks are not followed or yielded.

    Raises:
        OSError: If ``root`` or a directory below it cannot be listed
    """
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            try:
                mode = path.lstat().st_mode
            except FileNotFoundError:
                continue
            if stat.S_ISREG(mode):
                yield path


def rescan(roots: Iterable[Path], handle: Callable[[Path], None]) -> None:
    """
    Run ``handle`` on every regular file below each root.

    Args:
        roots: Watched directories
        handle: Called once per file; exceptions are logged and scanning continues
    """
    for root in roots:
        logger.info(f"Rescanning {root}")
        try:
            for path in iter_regular_files(root):
                try:
                    handle(path)
                except (RuleRejected, IncompleteError) as e:
                    logger.debug(f"Skipping file: {e}")
                except Exception as e:
                    logger.error(f"Skipping file: {e}")
        except OSError as e:
            logger.error(f"Rescanning {root} failed: {e}")
