"""Archive extraction dispatch and member path safety."""

from __future__ import annotations

import io
import tarfile
import zipfile
from pathlib import Path

import pytest

from GetMe.ArtifactFetch.archives import ExtractAll, ExtractedFile, extract
from GetMe.ArtifactFetch.errors import (
    ArchiveError,
    ArchiveMemberNotFoundError,
    ArtifactFetchError,
    UnsafeArchiveMemberError,
    UnsupportedArchiveError,
)


def test_extract_all_zip(zip_archive, tmp_path):
    out = tmp_path / "out"

    extract("https://example.org/bundle.zip", zip_archive, ExtractAll(out))

    assert (out / "docs" / "readme.txt").read_text() == "hello from zip\n"
    assert (out / "bin" / "tool").exists()


def test_extract_all_tar_skips_root_entry(tar_archive, tmp_path):
    out = tmp_path / "out"

    extract("https://example.org/bundle.tgz?sig=1", tar_archive, ExtractAll(out))

    assert (out / "docs" / "readme.txt").read_text() == "hello from tar\n"
    assert (out / "bin" / "tool").read_text() == "tool\n"


def test_dispatch_uses_reference_not_cached_name(zip_archive, tmp_path):
    cached = tmp_path / "0123456789ab_artifact"
    cached.write_bytes(zip_archive.read_bytes())

    extract("https://example.org/download/bundle.zip", cached, ExtractAll(tmp_path / "out"))

    assert (tmp_path / "out" / "docs" / "readme.txt").exists()


def test_unsupported_suffix(zip_archive, tmp_path):
    with pytest.raises(UnsupportedArchiveError) as excinfo:
        extract("https://example.org/bundle.iso", zip_archive, ExtractAll(tmp_path / "out"))

    assert str(excinfo.value) == "Unsupported archive: https://example.org/bundle.iso"


def test_extract_selected_zip_members(zip_archive, tmp_path):
    target = tmp_path / "nested" / "readme.txt"

    extract(
        "https://example.org/bundle.zip",
        zip_archive,
        [ExtractedFile(source="docs/readme.txt", destination=target)],
    )

    assert target.read_text() == "hello from zip\n"


def test_extract_selected_tar_members_accepts_dot_prefix(tar_archive, tmp_path):
    first = tmp_path / "a.txt"
    second = tmp_path / "b"

    extract(
        "https://example.org/bundle.tgz",
        tar_archive,
        [
            ExtractedFile(source="docs/readme.txt", destination=first),
            ExtractedFile(source="./bin/tool", destination=second),
        ],
    )

    assert first.read_text() == "hello from tar\n"
    assert second.read_text() == "tool\n"


@pytest.mark.parametrize("reference", ["https://e.org/bundle.zip", "https://e.org/bundle.tgz"])
def test_missing_member_raises(reference, zip_archive, tar_archive, tmp_path):
    source = zip_archive if reference.endswith(".zip") else tar_archive

    with pytest.raises(ArchiveMemberNotFoundError):
        extract(reference, source, [ExtractedFile("missing.txt", tmp_path / "missing.txt")])


def test_zip_traversal_is_rejected(tmp_path):
    evil = tmp_path / "evil.zip"
    with zipfile.ZipFile(evil, "w") as archive:
        archive.writestr("../escape.txt", "nope")

    with pytest.raises(UnsafeArchiveMemberError):
        extract("https://e.org/evil.zip", evil, ExtractAll(tmp_path / "out"))
    assert not (tmp_path / "escape.txt").exists()


def test_tar_absolute_path_is_rejected(tmp_path):
    evil = tmp_path / "evil.tar"
    with tarfile.open(evil, "w") as archive:
        info = tarfile.TarInfo("/etc/escape.txt")
        info.size = 4
        archive.addfile(info, io.BytesIO(b"nope"))

    with pytest.raises(UnsafeArchiveMemberError):
        extract("https://e.org/evil.tar", evil, ExtractAll(tmp_path / "out"))


def test_destination_directory_is_created(zip_archive, tmp_path: Path):
    out = tmp_path / "deep" / "er"
    extract("https://e.org/bundle.zip", zip_archive, ExtractAll(out))
    assert out.is_dir()


def test_unsafe_member_error_names_the_member(tmp_path):
    evil = tmp_path / "evil.zip"
    with zipfile.ZipFile(evil, "w") as archive:
        archive.writestr("../escape.txt", "nope")

    with pytest.raises(UnsafeArchiveMemberError) as excinfo:
        extract("https://e.org/evil.zip", evil, ExtractAll(tmp_path / "out"))

    assert excinfo.value.member_name == "../escape.txt"
    assert "Unsupported archive" not in str(excinfo.value)


@pytest.mark.parametrize(
    "reference",
    ["https://example.org/bad.zip", "https://example.org/bad.tgz", "https://example.org/bad.tar"],
)
def test_corrupt_archive_is_archive_error(reference, tmp_path):
    cached = tmp_path / "cached"
    cached.write_bytes(b"not an archive at all")

    with pytest.raises(ArchiveError) as excinfo:
        extract(reference, cached, ExtractAll(tmp_path / "out"))

    assert isinstance(excinfo.value, ArtifactFetchError)
    assert reference in str(excinfo.value)


def test_truncated_gzip_tar_is_archive_error(tar_archive, tmp_path):
    truncated = tmp_path / "truncated.tgz"
    truncated.write_bytes(tar_archive.read_bytes()[:40])

    with pytest.raises(ArchiveError):
        extract("https://example.org/bundle.tgz", truncated, ExtractAll(tmp_path / "out"))


def test_corrupt_archive_selected_members_is_archive_error(tmp_path):
    cached = tmp_path / "cached"
    cached.write_bytes(b"PK\x03\x04 garbage")

    with pytest.raises(ArchiveError):
        extract(
            "https://example.org/bad.zip",
            cached,
            [ExtractedFile("docs/readme.txt", tmp_path / "readme.txt")],
        )
