# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.references",
#   "purpose": "Classify references as direct URLs or release assets, and archives by suffix",
#   "sections": [
#     {"id": "referencekind", "name": "ReferenceKind / ArtifactReference", "anchor": "class-artifactreference", "kind": "class"},
#     {"id": "classify", "name": "classify / parse_reference", "anchor": "function-classify", "kind": "function"},
#     {"id": "archive-suffixes", "name": "is_zip_archive / is_tar_archive", "anchor": "SUF", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Reference classification for direct URLs, release assets, and archives.

A reference is either a location the cache store can fetch as-is, or a GitHub
release asset URL that must first be translated through the releases API.
Classification is purely structural: no network access, no side effects.
The archive helpers classify the same reference string by file-name suffix so
the extraction commands can pick a decompressor before any bytes are read.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from .errors import MalformedReferenceError

__all__ = [
    "RELEASE_URL_PATTERN",
    "ReferenceKind",
    "ArtifactReference",
    "classify",
    "parse_reference",
    "parse_release_reference",
    "reference_file_name",
    "is_zip_archive",
    "is_tar_archive",
]

RELEASE_URL_PATTERN = re.compile(
    r"^https://github\.com/(?P<organization>[^/]+)/(?P<project>[^/]+)"
    r"/releases/download/(?P<tag>[^/]+)/(?P<file_name>.+)$"
)

_ZIP_SUFFIXES = (".zip",)
_TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz")


class ReferenceKind(str, enum.Enum):
    """Structural kind of a reference string."""

    DIRECT = "direct"
    RELEASE_ASSET = "release_asset"


@dataclass(slots=True, frozen=True)
class ArtifactReference:
    """A reference string together with the fields derived from it.

    ``organization``, ``project``, ``tag`` and ``file_name`` are populated
    only for release assets and only from a confirmed pattern match.
    """

    raw: str
    kind: ReferenceKind
    organization: Optional[str] = None
    project: Optional[str] = None
    tag: Optional[str] = None
    file_name: Optional[str] = None

    @property
    def is_release_asset(self) -> bool:
        return self.kind is ReferenceKind.RELEASE_ASSET


def classify(reference: str) -> ReferenceKind:
    """Return :attr:`ReferenceKind.RELEASE_ASSET` when ``reference`` is a release download URL."""

    if RELEASE_URL_PATTERN.match(reference):
        return ReferenceKind.RELEASE_ASSET
    return ReferenceKind.DIRECT


def parse_release_reference(reference: str) -> ArtifactReference:
    """Extract organization, project, tag and file name from a release URL.

    Raises:
        MalformedReferenceError: If ``reference`` is not a release download URL.
    """

    match = RELEASE_URL_PATTERN.match(reference)
    if match is None:
        raise MalformedReferenceError(reference)
    return ArtifactReference(
        raw=reference,
        kind=ReferenceKind.RELEASE_ASSET,
        organization=match.group("organization"),
        project=match.group("project"),
        tag=match.group("tag"),
        file_name=match.group("file_name"),
    )


def parse_reference(reference: str) -> ArtifactReference:
    """Build an :class:`ArtifactReference` for any reference string."""

    if classify(reference) is ReferenceKind.RELEASE_ASSET:
        return parse_release_reference(reference)
    return ArtifactReference(raw=reference, kind=ReferenceKind.DIRECT)


def reference_file_name(reference: str) -> str:
    """Return the last path segment of ``reference`` without query or fragment."""

    path = urlsplit(reference).path if "://" in reference else reference
    name = path.rstrip("/").rsplit("/", 1)[-1]
    return name or "artifact"


def is_zip_archive(reference: str) -> bool:
    return reference_file_name(reference).lower().endswith(_ZIP_SUFFIXES)


def is_tar_archive(reference: str) -> bool:
    return reference_file_name(reference).lower().endswith(_TAR_SUFFIXES)
