# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.release_assets",
#   "purpose": "Translate public GitHub release download URLs into authorization-aware API asset URLs",
#   "sections": [
#     {"id": "models", "name": "RemoteAsset / RemoteAssetList", "anchor": "class-remoteassetlist", "kind": "class"},
#     {"id": "parse-headers", "name": "parse_headers", "anchor": "function-parse-headers", "kind": "function"},
#     {"id": "resolve-asset-location", "name": "resolve_asset_location", "anchor": "function-resolve-asset-location", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Release asset resolution against the GitHub releases API.

A public ``https://github.com/{org}/{project}/releases/download/{tag}/{file}``
URL cannot be fetched with a token when the repository is private.  The
resolver looks up the release by tag, finds the asset whose public download
URL equals the reference, and returns the asset's API ``url``; fetching that
URL with the same headers (plus ``Accept: application/octet-stream``) yields
the bytes.

The resolver performs exactly one request and never retries; retry policy
belongs to the caller.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import (
    AssetNotFoundError,
    InvalidHeaderError,
    MalformedResponseError,
    RemoteAPIError,
)
from .net import get_http_client
from .references import parse_release_reference
from .settings import get_settings

__all__ = [
    "RemoteAsset",
    "RemoteAssetList",
    "parse_headers",
    "release_api_url",
    "resolve_asset_location",
]

LOGGER = logging.getLogger(__name__)


class RemoteAsset(BaseModel):
    """One asset attached to a release."""

    id: int
    browser_download_url: str
    url: str


class RemoteAssetList(BaseModel):
    """The subset of a release payload the resolver relies on."""

    assets: List[RemoteAsset] = Field(default_factory=list)


def parse_headers(headers: Sequence[str]) -> List[Tuple[str, str]]:
    """Split ``key=value`` header entries into ordered pairs.

    Raises:
        InvalidHeaderError: If an entry does not contain exactly one ``=``.

    Examples:
        >>> parse_headers(["Accept=application/json"])
        [('Accept', 'application/json')]
    """

    pairs: List[Tuple[str, str]] = []
    for entry in headers:
        parts = entry.split("=")
        if len(parts) != 2:
            raise InvalidHeaderError(entry)
        pairs.append((parts[0], parts[1]))
    return pairs


def release_api_url(api_host: str, organization: str, project: str, tag: str) -> str:
    return f"{api_host.rstrip('/')}/repos/{organization}/{project}/releases/tags/{tag}"


def resolve_asset_location(
    reference: str,
    headers: Sequence[str] = (),
    *,
    client: Optional[httpx.Client] = None,
    api_host: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> str:
    """Return the authorization-aware API URL of the asset behind ``reference``.

    Args:
        reference: Public release download URL.
        headers: ``key=value`` entries attached to the lookup request.
        client: HTTPX client; defaults to the shared client.
        api_host: Releases API base URL; defaults to the configured GitHub host.
        logger: Logger for structured messages.

    Returns:
        The ``url`` field of the first asset whose ``browser_download_url``
        equals ``reference``.

    Raises:
        MalformedReferenceError: If ``reference`` is not a release download URL.
        InvalidHeaderError: If a header entry is malformed; raised before any request.
        RemoteAPIError: If the request fails or the API answers with status >= 400.
        MalformedResponseError: If the response body is not a release payload.
        AssetNotFoundError: If no asset matches ``reference``.
    """

    log = logger or LOGGER
    parsed = parse_release_reference(reference)
    header_pairs = parse_headers(headers)

    host = api_host or get_settings().http.github_api_host
    lookup_url = release_api_url(host, parsed.organization, parsed.project, parsed.tag)
    request_headers = httpx.Headers(header_pairs)

    http = client or get_http_client()
    log.debug(
        "looking up release assets",
        extra={"stage": "resolve", "url": lookup_url, "tag": parsed.tag},
    )
    try:
        response = http.get(lookup_url, headers=request_headers)
    except httpx.HTTPError as exc:
        raise RemoteAPIError(f"Release lookup failed for {lookup_url}: {exc}") from exc

    if response.status_code >= 400:
        log.error(
            "release lookup rejected",
            extra={"stage": "resolve", "url": lookup_url, "status_code": response.status_code},
        )
        raise RemoteAPIError(
            f"{response.status_code} {response.reason_phrase}".strip(),
            status=response.status_code,
        )

    try:
        release = RemoteAssetList.model_validate(response.json())
    except (ValueError, PydanticValidationError) as exc:
        raise MalformedResponseError(f"Unexpected release payload from {lookup_url}: {exc}") from exc

    for asset in release.assets:
        if asset.browser_download_url == reference:
            log.info(
                "resolved release asset",
                extra={"stage": "resolve", "asset_id": asset.id, "asset_url": asset.url},
            )
            return asset.url

    raise AssetNotFoundError(reference)
