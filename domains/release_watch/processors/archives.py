"""Archive decoding for RAR (including multi-volume sets) and ZIP."""

from __future__ import annotations

import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO, Callable, Iterator, Optional

import rarfile

from domains.release_watch.errors import ExtractionError


@dataclass(slots=True)
class ArchiveEntry:
    """One member produced by the decoder."""

    name: str
    is_dir: bool
    mtime: Optional[datetime]
    opener: Callable[[], IO[bytes]]

    def open(self) -> IO[bytes]:
        return self.opener()


def _to_datetime(date_time) -> Optional[datetime]:
    """Convert an archive date tuple to a datetime. Zero or invalid dates become None."""

    if isinstance(date_time, datetime):
        return date_time
    if not date_time or not any(date_time):
        return None
    try:
        return datetime(*date_time)
    except (TypeError, ValueError):
        return None


def _open(path: Path):
    if path.suffix.lower() == ".zip":
        return zipfile.ZipFile(path, "r")
    # Opening the first volume makes rarfile follow the remaining volumes
    return rarfile.RarFile(path, "r")


def iter_entries(path: Path) -> Iterator[ArchiveEntry]:
    """
    Yield the members of the archive starting at ``path``.

    The archive stays open while the iterator is consumed, so each entry's
    ``open()`` must be used before advancing.

    Raises:
        ExtractionError: If the archive cannot be opened or decoded
    """

    path = Path(path)
    try:
        archive = _open(path)
    except (rarfile.Error, zipfile.BadZipFile, OSError) as e:
        raise ExtractionError(f"failed to open {path}: {e}") from e

    with archive:
        if isinstance(archive, rarfile.RarFile) and archive.needs_password():
            raise ExtractionError(f"{path} is password protected")
        for info in archive.infolist():
            mtime = getattr(info, "mtime", None) or _to_datetime(info.date_time)
            yield ArchiveEntry(
                name=info.filename,
                is_dir=info.is_dir(),
                mtime=mtime,
                opener=lambda info=info: archive.open(info),
            )
