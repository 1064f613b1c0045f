import zipfile
from pathlib import Path

import pytest

from domains.release_watch.processors.checksums import calculate_crc32

DATE_TIME = (2020, 1, 2, 3, 4, 6)


def write_zip(path: Path, members: dict, dirs: tuple = ()) -> Path:
    """Write a ZIP archive with ``members`` (name -> bytes) and directory entries."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name in dirs:
            zf.writestr(zipfile.ZipInfo(name.rstrip("/") + "/", date_time=DATE_TIME), b"")
        for name, data in members.items():
            zf.writestr(zipfile.ZipInfo(name, date_time=DATE_TIME), data)
    return path


def write_sfv(directory: Path, names: list, sfv_name: str = "release.sfv", crcs: dict = None) -> Path:
    """Write an SFV file for ``names`` inside ``directory``. Missing files need an entry in ``crcs``."""
    crcs = crcs or {}
    lines = ["; generated by tests"]
    for name in names:
        crc = crcs.get(name)
        if crc is None:
            crc = calculate_crc32(directory / name)
        lines.append(f"{name} {crc:08x}")
    path = directory / sfv_name
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def release(tmp_path):
    """A complete release directory: one ZIP volume plus its SFV."""
    directory = tmp_path / "watch" / "Some.Release"
    write_zip(
        directory / "release.zip",
        {"movie.mkv": b"movie-bytes" * 100, "extras/sample.mkv": b"sample"},
        dirs=("extras",),
    )
    write_sfv(directory, ["release.zip"])
    return directory
