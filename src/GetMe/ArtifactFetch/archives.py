# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.archives",
#   "purpose": "Unpack cached zip and tar archives chosen by reference suffix",
#   "sections": [
#     {"id": "requests", "name": "ExtractAll / ExtractedFile", "anchor": "class-extractall", "kind": "class"},
#     {"id": "member-safety", "name": "_validate_member_path", "anchor": "function-validate-member-path", "kind": "function"},
#     {"id": "extract", "name": "extract / extract_archive / extract_files", "anchor": "function-extract", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Archive extraction dispatched on the reference's file-name suffix.

The decompressor is chosen from the *reference* (``.zip`` versus the tar
family), never from the bytes of the cached file, because cache slots keep
the reference's file name only as a sanitised suffix.  Member paths are
validated before anything is written so an archive cannot escape its
destination directory.
"""

from __future__ import annotations

import logging
import lzma
import shutil
import tarfile
import zipfile
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from .errors import (
    ArchiveError,
    ArchiveMemberNotFoundError,
    UnsafeArchiveMemberError,
    UnsupportedArchiveError,
)
from .references import is_tar_archive, is_zip_archive

__all__ = [
    "ExtractAll",
    "ExtractedFile",
    "ExtractionRequest",
    "extract",
    "extract_archive",
    "extract_files",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ExtractAll:
    """Extract every member of the archive below ``destination``."""

    destination: Path


@dataclass(slots=True, frozen=True)
class ExtractedFile:
    """Copy the archive member ``source`` to the file ``destination``."""

    source: str
    destination: Path


ExtractionRequest = Union[ExtractAll, Sequence[ExtractedFile]]


def _normalize_member_name(name: str) -> str:
    normalized = name.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.rstrip("/")
    # tarfile reports a "./" directory entry as ".".
    return "" if normalized == "." else normalized


def _validate_member_path(member_name: str) -> Path:
    """Validate archive member paths to prevent traversal attacks."""

    relative = PurePosixPath(_normalize_member_name(member_name))
    if relative.is_absolute():
        raise UnsafeArchiveMemberError(member_name, "absolute path")
    if not relative.parts:
        raise UnsafeArchiveMemberError(member_name, "empty path")
    if any(part in {"", ".", ".."} for part in relative.parts):
        raise UnsafeArchiveMemberError(member_name, "path escapes the destination")
    return Path(*relative.parts)


_CORRUPT_ARCHIVE_ERRORS = (zipfile.BadZipFile, tarfile.TarError, EOFError, zlib.error, lzma.LZMAError)


@contextmanager
def _reading_archive(reference: str, source: Path) -> Iterator[None]:
    try:
        yield
    except _CORRUPT_ARCHIVE_ERRORS as exc:
        LOGGER.error(
            "unreadable archive",
            extra={"stage": "extract", "reference": reference, "path": str(source), "error": str(exc)},
        )
        raise ArchiveError(f"Unable to read archive {reference}: {exc}") from exc


def _extract_zip(source: Path, destination: Path) -> None:
    with zipfile.ZipFile(source) as archive:
        for info in archive.infolist():
            relative = _validate_member_path(info.filename)
            target = destination / relative
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with archive.open(info) as reader, target.open("wb") as writer:
                shutil.copyfileobj(reader, writer)


def _extract_tar(source: Path, destination: Path) -> None:
    with tarfile.open(source, mode="r:*") as archive:
        # "./" entries produced by ``tar -C dir .`` carry no content.
        members = [m for m in archive.getmembers() if _normalize_member_name(m.name)]
        for member in members:
            _validate_member_path(member.name)
        archive.extractall(destination, members=members, filter="data")


def _extract_zip_files(source: Path, files: Sequence[ExtractedFile]) -> None:
    with zipfile.ZipFile(source) as archive:
        by_name = {_normalize_member_name(info.filename): info for info in archive.infolist()}
        for item in files:
            info = by_name.get(_normalize_member_name(item.source))
            if info is None or info.is_dir():
                raise ArchiveMemberNotFoundError(f"{item.source} not found in {source.name}")
            item.destination.parent.mkdir(parents=True, exist_ok=True)
            with archive.open(info) as reader, item.destination.open("wb") as writer:
                shutil.copyfileobj(reader, writer)


def _extract_tar_files(source: Path, files: Sequence[ExtractedFile]) -> None:
    with tarfile.open(source, mode="r:*") as archive:
        by_name = {_normalize_member_name(member.name): member for member in archive.getmembers()}
        for item in files:
            member = by_name.get(_normalize_member_name(item.source))
            reader = archive.extractfile(member) if member is not None else None
            if reader is None:
                raise ArchiveMemberNotFoundError(f"{item.source} not found in {source.name}")
            item.destination.parent.mkdir(parents=True, exist_ok=True)
            with reader, item.destination.open("wb") as writer:
                shutil.copyfileobj(reader, writer)


def extract_archive(reference: str, source: Path, destination: Path) -> None:
    """Extract the whole archive cached at ``source`` into ``destination``.

    Raises:
        UnsupportedArchiveError: If ``reference`` has no zip or tar suffix.
        ArchiveError: If the cached file is corrupt or truncated.
        UnsafeArchiveMemberError: If a member would land outside ``destination``.
    """

    destination.mkdir(parents=True, exist_ok=True)
    if is_zip_archive(reference):
        extractor = _extract_zip
    elif is_tar_archive(reference):
        extractor = _extract_tar
    else:
        raise UnsupportedArchiveError(reference)
    with _reading_archive(reference, source):
        extractor(source, destination)
    LOGGER.info(
        "extracted archive",
        extra={"stage": "extract", "reference": reference, "destination": str(destination)},
    )


def extract_files(reference: str, source: Path, files: Iterable[ExtractedFile]) -> None:
    """Extract the selected members of the archive cached at ``source``.

    Raises:
        UnsupportedArchiveError: If ``reference`` has no zip or tar suffix.
        ArchiveMemberNotFoundError: If a selected member is absent.
        ArchiveError: If the cached file is corrupt or truncated.
    """

    selected: List[ExtractedFile] = list(files)
    if is_zip_archive(reference):
        extractor = _extract_zip_files
    elif is_tar_archive(reference):
        extractor = _extract_tar_files
    else:
        raise UnsupportedArchiveError(reference)
    with _reading_archive(reference, source):
        extractor(source, selected)
    for item in selected:
        LOGGER.info(
            "extracted archive member",
            extra={
                "stage": "extract",
                "reference": reference,
                "member": item.source,
                "destination": str(item.destination),
            },
        )


def extract(reference: str, source: Path, request: ExtractionRequest) -> None:
    """Dispatch ``request`` to whole-archive or selected-member extraction."""

    if isinstance(request, ExtractAll):
        extract_archive(reference, source, request.destination)
    else:
        extract_files(reference, source, request)
