"""
Archive pipeline for release directories.

A release directory holds an SFV checksum list and the archive volumes it
references. Once every referenced file is present and verifies, the first
volume is extracted into the directory (recursing into archives found
inside), the originals are optionally removed and a post-process command is
run.
"""

import re
import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from loguru import logger

from app.models.schemas import PathRule
from app.utils.config import get_settings
from app.utils.helpers import format_bytes, is_within, set_mtime
from domains.release_watch.errors import (
    CleanupError,
    DiscoveryError,
    ExtractionError,
    IncompleteError,
    PostProcessError,
    UnpackError,
    VerificationError,
)
from domains.release_watch.processors.archives import ArchiveEntry, iter_entries
from domains.release_watch.processors.checksums import ChecksumSet, find_sfv

Decoder = Callable[[Path], Iterator[ArchiveEntry]]


def _part_re(archive_ext: str) -> re.Pattern:
    return re.compile(r"\.part0*(\d+)" + re.escape(archive_ext) + "$", re.IGNORECASE)


def is_archive(name: str, archive_ext: str) -> bool:
    return name.lower().endswith(archive_ext.lower())


def is_first_volume(name: str, archive_ext: str) -> bool:
    """Check if ``name`` is an unnumbered archive or part 1 of a numbered set."""
    if not is_archive(name, archive_ext):
        return False
    m = _part_re(archive_ext).search(name)
    if m:
        return m.group(1) == "1"
    return True


def find_first_volume(checksums: ChecksumSet, archive_ext: str) -> Path:
    """
    Select the first volume among the files of a checksum list.

    Raises:
        DiscoveryError: If there is no candidate or more than one
    """
    candidates = [e.path for e in checksums.entries if is_first_volume(e.filename, archive_ext)]
    if not candidates:
        raise DiscoveryError(f"no {archive_ext} file found in {checksums.path}")
    if len(candidates) > 1:
        names = ", ".join(p.name for p in candidates)
        raise DiscoveryError(f"multiple first volumes found in {checksums.path}: {names}")
    return candidates[0]


class Unpacker:
    """Verifies and extracts the archive set described by one checksum list."""

    def __init__(
        self,
        directory: Path,
        archive_ext: str = ".rar",
        decoder: Decoder = iter_entries,
        max_nesting: Optional[int] = None,
    ):
        """
        Discover the checksum list and first volume in ``directory``.

        Args:
            directory: Release directory
            archive_ext: Extension of the archive volumes
            decoder: Callable yielding the entries of an archive
            max_nesting: Limit on archives nested inside archives

        Raises:
            DiscoveryError: If the checksum list or first volume is missing or ambiguous
        """
        self.dir = Path(directory)
        self.archive_ext = archive_ext
        self.decoder = decoder
        self.max_nesting = max_nesting if max_nesting is not None else get_settings().max_nesting
        self.sfv = find_sfv(self.dir)
        self.name = find_first_volume(self.sfv, archive_ext)
        self.extracted: List[Path] = []

    def file_count(self) -> tuple[int, int]:
        return self.sfv.file_count()

    def verify(self) -> None:
        """Verify every referenced file, failing on the first mismatch."""
        for entry in self.sfv.entries:
            try:
                ok = entry.verify()
            except OSError as e:
                raise VerificationError(
                    f"{self.sfv.path}: failed to read {entry.filename}: {e}", entry.filename
                ) from e
            if not ok:
                raise VerificationError(
                    f"{self.sfv.path}: failed checksum: {entry.filename}", entry.filename
                )
            logger.debug(f"Checksum OK: {entry.filename}")

    def _target(self, base: Path, name: str) -> Path:
        target = base / name
        if not is_within(target.resolve(), base.resolve()):
            raise ExtractionError(f"refusing to extract outside {base}: {name!r}")
        return target

    def _write(self, entry: ArchiveEntry, target: Path) -> None:
        parent = target.parent
        if not parent.exists():
            parent.mkdir(parents=True)
            set_mtime(parent, entry.mtime)
        with entry.open() as src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst)
        set_mtime(target, entry.mtime)

    def unpack(self, archive: Path, depth: int = 0) -> None:
        """
        Extract ``archive`` into the release directory, then any archives found inside it.

        Nested archives are extracted once the enclosing archive is fully
        written, so every volume of a nested multi-volume set exists. They are
        not checksum verified. Entry names of nested archives are relative to
        the release directory too, not to the folder the nested archive sits in.

        Raises:
            ExtractionError: On decode or I/O failure, or when nesting exceeds the limit
        """
        if depth > self.max_nesting:
            raise ExtractionError(f"{archive}: nesting exceeds {self.max_nesting} levels")

        base = self.dir
        nested: List[Path] = []
        try:
            for entry in self.decoder(archive):
                target = self._target(base, entry.name)
                if entry.is_dir:
                    target.mkdir(parents=True, exist_ok=True)
                    set_mtime(target, entry.mtime)
                    continue
                self._write(entry, target)
                self.extracted.append(target)
                logger.debug(f"Extracted: {target}")
                if is_first_volume(target.name, self.archive_ext):
                    nested.append(target)
        except UnpackError:
            raise
        except Exception as e:
            raise ExtractionError(f"failed to extract {archive}: {e}") from e

        for inner in nested:
            logger.info(f"Unpacking nested archive: {inner}")
            self.unpack(inner, depth + 1)

    def remove(self) -> None:
        """Delete every referenced file and the checksum list itself."""
        for entry in self.sfv.entries:
            try:
                entry.path.unlink()
            except OSError as e:
                raise CleanupError(f"failed to remove {entry.path}: {e}") from e
        try:
            self.sfv.path.unlink()
        except OSError as e:
            raise CleanupError(f"failed to remove {self.sfv.path}: {e}") from e

    def run(self, remove: bool) -> None:
        """
        Check completeness, verify, extract and optionally clean up.

        Raises:
            IncompleteError: If referenced files are missing
            VerificationError: If a checksum does not match
            ExtractionError: If extraction fails
            CleanupError: If removing the originals fails
        """
        exists, total = self.file_count()
        if exists != total:
            raise IncompleteError(self.dir, exists, total)

        try:
            self.verify()
        except VerificationError as e:
            raise VerificationError(f"verification of {self.dir} failed: {e}", e.filename) from e

        self.extracted = []
        try:
            self.unpack(self.name)
        except ExtractionError as e:
            raise ExtractionError(f"unpacking {self.dir} failed: {e}") from e

        size = sum(p.stat().st_size for p in self.extracted if p.exists())
        logger.success(f"Unpacked {self.name}: {len(self.extracted)} files, {format_bytes(size)}")

        if remove:
            try:
                self.remove()
            except CleanupError as e:
                raise CleanupError(f"cleaning up {self.dir} failed: {e}") from e
            logger.info(f"Removed {total} archive files and {self.sfv.path.name}")

    def command_values(self) -> dict:
        return {"name": str(self.name), "base": self.dir.name, "dir": str(self.dir)}

    def post_process(self, command: str) -> None:
        """
        Run the post-process command template.

        The template is split shell-style and placeholders ``{name}``,
        ``{base}`` and ``{dir}`` are substituted per argument, so values with
        spaces stay single arguments.

        Raises:
            PostProcessError: If the template is invalid or the command fails
        """
        if not command:
            return

        values = self.command_values()
        try:
            args = [arg.format(**values) for arg in shlex.split(command)]
        except (KeyError, IndexError, ValueError) as e:
            raise PostProcessError(f"invalid command template {command!r}: {e}") from e
        if not args:
            return

        logger.info(f"Running post-process command: {shlex.join(args)}")
        try:
            result = subprocess.run(args, capture_output=True, text=True, check=False)
        except OSError as e:
            raise PostProcessError(f"{args[0]}: {e}") from e
        if result.returncode != 0:
            raise PostProcessError(
                f"exit status {result.returncode}: {result.stderr.strip()}"
            )


class FileHandler(ABC):
    """Action taken when a changed file passes its path rule."""

    @abstractmethod
    def on_file(self, path: Path, rule: PathRule) -> None:
        """Handle ``path``. Raise an ``UnpackError`` to report failure."""


class ArchiveHandler(FileHandler):
    """Runs the archive pipeline for the release directory containing the file."""

    def __init__(self, decoder: Decoder = iter_entries, max_nesting: Optional[int] = None):
        self.decoder = decoder
        self.max_nesting = max_nesting

    def on_file(self, path: Path, rule: PathRule) -> None:
        try:
            unpacker = Unpacker(
                Path(path).parent,
                archive_ext=rule.archive_ext,
                decoder=self.decoder,
                max_nesting=self.max_nesting,
            )
        except DiscoveryError as e:
            raise DiscoveryError(f"failed to initialize unpacker: {e}") from e

        unpacker.run(rule.remove)

        try:
            unpacker.post_process(rule.post_command)
        except PostProcessError as e:
            raise PostProcessError(f"post-process command failed: {e}") from e
