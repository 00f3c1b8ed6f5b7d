# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.api",
#   "purpose": "Plain-function entry points behind the getme commands",
#   "sections": [
#     {"id": "download", "name": "download / copy", "anchor": "function-download", "kind": "function"},
#     {"id": "extract", "name": "extract_all / extract_selected", "anchor": "function-extract-all", "kind": "function"},
#     {"id": "pinata", "name": "pinata", "anchor": "function-pinata", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""High-level entry points behind the ``getme`` commands.

Each function takes the reference and the per-invocation
:class:`~GetMe.ArtifactFetch.settings.FetchOptions` explicitly, fetches
through a :class:`~GetMe.ArtifactFetch.cache.CacheStore`, and then performs
the command-specific step (copy, extraction, or build fallback).  The CLI is
a thin layer over these functions; programmatic callers can use them directly
and inject their own cache store or CI connector.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from .archives import ExtractAll, ExtractedFile, extract
from .cache import CacheStore
from .cancellation import CancellationToken
from .ci import CIConnector, connect_jenkins
from .files import copy_file
from .orchestrator import BuildFallbackOrchestrator, BuildRequest
from .settings import FetchOptions

__all__ = [
    "download",
    "copy",
    "extract_all",
    "extract_selected",
    "pinata",
]

LOGGER = logging.getLogger(__name__)


def download(reference: str, options: FetchOptions, *, cache: Optional[CacheStore] = None) -> Path:
    """Return the local cache path of ``reference``, downloading it when absent."""

    return (cache or CacheStore()).fetch(reference, options)


def copy(
    reference: str,
    options: FetchOptions,
    destination: str,
    *,
    cache: Optional[CacheStore] = None,
) -> Path:
    """Fetch ``reference`` and copy it to ``destination`` (``-`` for stdout)."""

    source = download(reference, options, cache=cache)
    LOGGER.info("copy", extra={"stage": "copy", "reference": reference, "destination": destination})
    copy_file(source, destination)
    return source


def extract_all(
    reference: str,
    options: FetchOptions,
    destination: Path,
    *,
    cache: Optional[CacheStore] = None,
) -> Path:
    """Fetch the archive behind ``reference`` and unpack it into ``destination``."""

    source = download(reference, options, cache=cache)
    extract(reference, source, ExtractAll(destination))
    return source


def extract_selected(
    reference: str,
    options: FetchOptions,
    files: Sequence[ExtractedFile],
    *,
    cache: Optional[CacheStore] = None,
) -> Path:
    """Fetch the archive behind ``reference`` and copy out the selected members."""

    source = download(reference, options, cache=cache)
    extract(reference, source, list(files))
    return source


def pinata(
    request: BuildRequest,
    options: FetchOptions,
    *,
    cache: Optional[CacheStore] = None,
    connector: CIConnector = connect_jenkins,
    cancellation_token: Optional[CancellationToken] = None,
) -> Path:
    """Fetch the Pinata ISO for ``request``, building it on Jenkins when missing."""

    orchestrator = BuildFallbackOrchestrator(
        cache or CacheStore(),
        connector=connector,
        cancellation_token=cancellation_token,
    )
    return orchestrator.run(request, options)
