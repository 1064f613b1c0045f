import zlib

import pytest

from domains.release_watch.errors import DiscoveryError
from domains.release_watch.processors.checksums import calculate_crc32, find_sfv, read_sfv


def test_calculate_crc32(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"hello world")
    assert calculate_crc32(path) == zlib.crc32(b"hello world")


def test_read_sfv_parses_entries(tmp_path):
    (tmp_path / "a.rar").write_bytes(b"a")
    sfv = tmp_path / "x.sfv"
    sfv.write_text(
        "; comment line\n"
        "\n"
        f"a.rar {zlib.crc32(b'a'):08X}\n"
        "name with spaces.r00 0000ABCD\n"
    )

    checksums = read_sfv(sfv)

    assert checksums.directory == tmp_path
    assert [e.filename for e in checksums.entries] == ["a.rar", "name with spaces.r00"]
    assert checksums.entries[1].crc32 == 0xABCD
    assert checksums.entries[1].path == tmp_path / "name with spaces.r00"
    assert checksums.file_count() == (1, 2)
    assert checksums.entries[0].verify()


def test_read_sfv_rejects_bad_checksum(tmp_path):
    sfv = tmp_path / "x.sfv"
    sfv.write_text("a.rar zzzz\n")
    with pytest.raises(DiscoveryError, match="invalid checksum"):
        read_sfv(sfv)


def test_read_sfv_rejects_empty_list(tmp_path):
    sfv = tmp_path / "x.sfv"
    sfv.write_text("; nothing\n")
    with pytest.raises(DiscoveryError, match="no checksums"):
        read_sfv(sfv)


def test_find_sfv_requires_exactly_one(tmp_path):
    with pytest.raises(DiscoveryError, match="no sfv file"):
        find_sfv(tmp_path)

    (tmp_path / "one.sfv").write_text("a 00000001\n")
    assert find_sfv(tmp_path).path == tmp_path / "one.sfv"

    (tmp_path / "two.SFV").write_text("b 00000002\n")
    with pytest.raises(DiscoveryError, match="multiple sfv files"):
        find_sfv(tmp_path)


def test_verify_detects_changed_byte(tmp_path):
    path = tmp_path / "a.rar"
    path.write_bytes(b"abcdef")
    sfv = tmp_path / "x.sfv"
    sfv.write_text(f"a.rar {zlib.crc32(b'abcdef'):08x}\n")
    entry = read_sfv(sfv).entries[0]

    assert entry.verify()
    path.write_bytes(b"abcdeg")
    assert not entry.verify()


def test_read_sfv_accepts_tab_separator(tmp_path):
    sfv = tmp_path / "x.sfv"
    sfv.write_text("a file.rar\t0000abcd\nb.r00 \t 00000001\n")

    entries = read_sfv(sfv).entries

    assert [(e.filename, e.crc32) for e in entries] == [("a file.rar", 0xABCD), ("b.r00", 1)]
