"""Reading and verifying SFV checksum lists."""

from __future__ import annotations

import re
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from loguru import logger

from domains.release_watch.errors import DiscoveryError

SFV_SUFFIX = ".sfv"
CHUNK_SIZE = 1024 * 1024
LINE_RE = re.compile(r"(.+?)\s+(\S+)$")


def calculate_crc32(path: Path) -> int:
    """Calculate the CRC32 of a file as an unsigned 32-bit integer."""

    crc = 0
    with open(path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            crc = zlib.crc32(chunk, crc)
    return crc & 0xFFFFFFFF


@dataclass(slots=True)
class ChecksumEntry:
    """One line of a checksum list."""

    filename: str
    path: Path
    crc32: int

    def exists(self) -> bool:
        return self.path.is_file()

    def verify(self) -> bool:
        """Return True if the file's CRC32 matches. Read errors propagate as OSError."""

        return calculate_crc32(self.path) == self.crc32


@dataclass(slots=True)
class ChecksumSet:
    """A checksum list file and the entries it references."""

    path: Path
    directory: Path
    entries: List[ChecksumEntry] = field(default_factory=list)

    def file_count(self) -> tuple[int, int]:
        """Return (existing, total) referenced files."""

        exists = sum(1 for entry in self.entries if entry.exists())
        return exists, len(self.entries)


def read_sfv(path: Path) -> ChecksumSet:
    """
    Parse an SFV file.

    Lines are ``<filename> <crc32 hex>`` separated by spaces or tabs; blank lines and lines starting with
    ``;`` are ignored. Filenames are relative to the file's directory and may
    contain spaces.
    """

    path = Path(path)
    directory = path.parent
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise DiscoveryError(f"failed to read {path}: {e}") from e

    entries = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith(";"):
            continue
        m = LINE_RE.match(line)
        if not m:
            raise DiscoveryError(f"{path}:{lineno}: malformed line: {line!r}")
        filename, checksum = m.groups()
        try:
            crc = int(checksum, 16)
        except ValueError as e:
            raise DiscoveryError(f"{path}:{lineno}: invalid checksum: {checksum!r}") from e
        entries.append(ChecksumEntry(filename=filename, path=directory / filename, crc32=crc))

    if not entries:
        raise DiscoveryError(f"no checksums found in {path}")
    return ChecksumSet(path=path, directory=directory, entries=entries)


def find_sfv(directory: Path) -> ChecksumSet:
    """
    Locate and parse the single checksum list in ``directory``.

    Raises:
        DiscoveryError: If there is no checksum file or more than one
    """

    directory = Path(directory)
    try:
        candidates = sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() == SFV_SUFFIX
        )
    except OSError as e:
        raise DiscoveryError(f"failed to list {directory}: {e}") from e

    if not candidates:
        raise DiscoveryError(f"no sfv file found in {directory}")
    if len(candidates) > 1:
        names = ", ".join(p.name for p in candidates)
        raise DiscoveryError(f"multiple sfv files found in {directory}: {names}")

    logger.debug(f"Found checksum file: {candidates[0]}")
    return read_sfv(candidates[0])
