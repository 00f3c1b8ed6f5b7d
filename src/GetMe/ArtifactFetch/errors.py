# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.errors",
#   "purpose": "Define the exception hierarchy used across reference resolution, caching, and build fallback",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "resolver", "name": "Reference & Resolver Errors", "anchor": "RES", "kind": "api"},
#     {"id": "cache", "name": "Cache & Archive Errors", "anchor": "CAC", "kind": "api"},
#     {"id": "build", "name": "Build Fallback Errors", "anchor": "BLD", "kind": "api"},
#     {"id": "polling", "name": "Polling Errors", "anchor": "POL", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across reference resolution, caching, and builds.

A fetch spans two independent remote systems (the artifact store and the CI
server) plus the local cache.  Every failure mode is grouped under
:class:`ArtifactFetchError` so the CLI can render a single descriptive error,
while the ``stage`` attribute records which step of the build fallback raised
it.  The orchestrator stamps ``stage`` on the way out without changing the
exception type or message.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "ArtifactFetchError",
    "UserConfigError",
    "MalformedReferenceError",
    "InvalidHeaderError",
    "RemoteAPIError",
    "MalformedResponseError",
    "AssetNotFoundError",
    "DownloadFailure",
    "ChecksumMismatchError",
    "UnsupportedArchiveError",
    "ArchiveError",
    "UnsafeArchiveMemberError",
    "ArchiveMemberNotFoundError",
    "BuildConnectError",
    "JobNotFoundError",
    "BuildTriggerError",
    "BuildNotFoundError",
    "BuildFailedError",
    "PollTimeoutError",
    "OperationCancelledError",
]


class ArtifactFetchError(RuntimeError):
    """Base exception for reference resolution, cache, archive, and build failures."""

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage


class UserConfigError(ArtifactFetchError):
    """Raised when CLI arguments or environment configuration are invalid."""


class MalformedReferenceError(ArtifactFetchError):
    """Raised when a reference does not have the release-asset URL shape."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"Not a release asset reference: {reference}")
        self.reference = reference


class InvalidHeaderError(ArtifactFetchError):
    """Raised when a header entry is not of the form ``key=value``."""

    def __init__(self, entry: str) -> None:
        super().__init__(f"Invalid header [{entry}]. Should be [key=value]")
        self.entry = entry


class RemoteAPIError(ArtifactFetchError):
    """Raised when the artifact store or CI server answers with an error."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedResponseError(ArtifactFetchError):
    """Raised when a remote response body cannot be parsed."""


class AssetNotFoundError(ArtifactFetchError):
    """Raised when a release does not list an asset for the requested reference."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"Unable to find this release: {reference}")
        self.reference = reference


class DownloadFailure(ArtifactFetchError):
    """Raised when the cache store cannot download a reference."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ChecksumMismatchError(ArtifactFetchError):
    """Raised when a local copy does not match the expected SHA-256 digest."""

    def __init__(self, reference: str, *, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch for {reference}: expected sha256 {expected}, got {actual}"
        )
        self.reference = reference
        self.expected = expected
        self.actual = actual


class UnsupportedArchiveError(ArtifactFetchError):
    """Raised when a reference suffix maps to no known archive format."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"Unsupported archive: {reference}")
        self.reference = reference


class ArchiveError(ArtifactFetchError):
    """Raised when a cached archive is corrupt, truncated, or cannot be unpacked."""


class UnsafeArchiveMemberError(ArchiveError):
    """Raised when an archive member would be written outside its destination."""

    def __init__(self, member_name: str, reason: str) -> None:
        super().__init__(f"Unsafe archive member [{member_name}]: {reason}")
        self.member_name = member_name


class ArchiveMemberNotFoundError(ArtifactFetchError):
    """Raised when a selected entry is absent from an archive."""


class BuildConnectError(ArtifactFetchError):
    """Raised when the CI server cannot be reached or rejects the credentials."""


class JobNotFoundError(ArtifactFetchError):
    """Raised when the CI server has no job with the requested name."""

    def __init__(self, job_name: str) -> None:
        super().__init__(f"CI job not found: {job_name}")
        self.job_name = job_name


class BuildTriggerError(ArtifactFetchError):
    """Raised when a CI job cannot be invoked."""


class BuildNotFoundError(ArtifactFetchError):
    """Raised when no listed build was triggered for the requested commit."""

    def __init__(self, commit: str) -> None:
        super().__init__(f"Build not found for commit {commit}")
        self.commit = commit


class BuildFailedError(ArtifactFetchError):
    """Raised when the awaited build completes unsuccessfully."""

    def __init__(self, build_id: int, commit: str) -> None:
        super().__init__(f"Build #{build_id} for commit {commit} failed")
        self.build_id = build_id
        self.commit = commit


class PollTimeoutError(ArtifactFetchError):
    """Raised when a poll loop exceeds its caller-supplied deadline or attempt budget."""


class OperationCancelledError(ArtifactFetchError):
    """Raised when a poll loop observes a cancelled token."""
