# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch",
#   "purpose": "Package initialization for GetMe.ArtifactFetch",
#   "sections": []
# }
# === /NAVMAP ===

"""Public API for the GetMe artifact fetcher.

This facade exposes the cached download entry points, archive extraction and
the Pinata build fallback, together with the option and error types callers
need to drive them programmatically.
"""

from __future__ import annotations

__version__ = "0.3.0"

from .api import copy, download, extract_all, extract_selected, pinata
from .archives import ExtractAll, ExtractedFile
from .cache import CacheStore
from .cancellation import CancellationToken
from .errors import (
    ArchiveError,
    ArtifactFetchError,
    AssetNotFoundError,
    BuildFailedError,
    BuildNotFoundError,
    DownloadFailure,
    InvalidHeaderError,
    UnsupportedArchiveError,
)
from .orchestrator import BuildFallbackOrchestrator, BuildRequest
from .polling import PollPolicy
from .references import ReferenceKind, classify
from .release_assets import resolve_asset_location
from .settings import FetchOptions, get_settings

__all__ = [
    "__version__",
    "download",
    "copy",
    "extract_all",
    "extract_selected",
    "pinata",
    "ExtractAll",
    "ExtractedFile",
    "CacheStore",
    "CancellationToken",
    "ArchiveError",
    "ArtifactFetchError",
    "AssetNotFoundError",
    "BuildFailedError",
    "BuildNotFoundError",
    "DownloadFailure",
    "InvalidHeaderError",
    "UnsupportedArchiveError",
    "BuildFallbackOrchestrator",
    "BuildRequest",
    "PollPolicy",
    "ReferenceKind",
    "classify",
    "resolve_asset_location",
    "FetchOptions",
    "get_settings",
]
