# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.cache",
#   "purpose": "Materialize references into the local cache with checksum enforcement",
#   "sections": [
#     {"id": "downloaders", "name": "HttpxDownloader / S3Downloader", "anchor": "DLR", "kind": "class"},
#     {"id": "cachestore", "name": "CacheStore", "anchor": "class-cachestore", "kind": "class"},
#     {"id": "helpers", "name": "sanitize_filename / sha256_file", "anchor": "HLP", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Local artifact cache backed by :func:`pooch.retrieve`.

:class:`CacheStore` turns a reference into a local path:

- the cache file name is derived from a hash of the reference plus a
  sanitised copy of its file name, so each reference owns one slot;
- a present slot is a cache hit and involves no network traffic unless
  ``FetchOptions.force`` is set, in which case the slot is cleared first;
- release asset references are resolved to their API URL and fetched with
  the token headers from :meth:`FetchOptions.header_spec`;
- ``s3://bucket/key`` references are fetched with boto3 using the S3 keys
  from the options;
- other ``http(s)`` references are streamed with the shared HTTPX client.

Whenever ``FetchOptions.sha256`` is set the local copy is verified on every
fetch, cached or fresh.  A mismatching copy is removed and
:class:`~GetMe.ArtifactFetch.errors.ChecksumMismatchError` is raised.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence
from urllib.parse import urlsplit

import httpx
import pooch

from .errors import ChecksumMismatchError, DownloadFailure
from .net import get_http_client
from .references import parse_reference, reference_file_name
from .release_assets import parse_headers, resolve_asset_location
from .settings import FetchOptions, get_settings

__all__ = [
    "CacheStore",
    "HttpxDownloader",
    "S3Downloader",
    "default_s3_client_factory",
    "sanitize_filename",
    "sha256_file",
]

LOGGER = logging.getLogger(__name__)

_ASSET_ACCEPT_HEADER = "Accept=application/octet-stream"
_STREAM_CHUNK_SIZE = 1 << 20

S3ClientFactory = Callable[[FetchOptions], Any]


def sanitize_filename(filename: str) -> str:
    """Return a filesystem-safe filename derived from ``filename``."""

    safe = filename.replace(os.sep, "_").replace("/", "_").replace("\\", "_")
    safe = re.sub(r"[^A-Za-z0-9._-]", "_", safe)
    safe = safe.strip("._") or "artifact"
    return safe[:200]


def sha256_file(path: Path) -> str:
    """Compute the SHA-256 digest for the provided file."""

    hasher = hashlib.sha256()
    with path.open("rb") as stream:
        for chunk in iter(lambda: stream.read(_STREAM_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


class HttpxDownloader(pooch.HTTPDownloader):
    """Pooch downloader streaming a URL through an HTTPX client."""

    def __init__(self, *, client: httpx.Client, headers: httpx.Headers) -> None:
        super().__init__(progressbar=False, chunk_size=_STREAM_CHUNK_SIZE)
        self.client = client
        self.request_headers = headers

    def __call__(self, url: str, output_file: str, pooch_instance: Any) -> None:  # type: ignore[override]
        with self.client.stream("GET", url, headers=self.request_headers) as response:
            response.raise_for_status()
            with open(output_file, "wb") as handle:
                for chunk in response.iter_bytes(self.chunk_size):
                    handle.write(chunk)


def default_s3_client_factory(options: FetchOptions) -> Any:
    """Create a boto3 S3 client using the access keys from ``options``."""

    import boto3

    kwargs: Dict[str, str] = {}
    if options.s3_access_key and options.s3_secret_key:
        kwargs["aws_access_key_id"] = options.s3_access_key
        kwargs["aws_secret_access_key"] = options.s3_secret_key
    return boto3.client("s3", **kwargs)


class S3Downloader:
    """Pooch downloader for ``s3://bucket/key`` references."""

    def __init__(self, s3_client: Any) -> None:
        self.s3_client = s3_client

    def __call__(self, url: str, output_file: str, pooch_instance: Any) -> None:
        parts = urlsplit(url)
        bucket = parts.netloc
        key = parts.path.lstrip("/")
        if not bucket or not key:
            raise DownloadFailure(f"Invalid S3 reference: {url}")
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self.s3_client.download_file(bucket, key, output_file)
        except ClientError as exc:
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            raise DownloadFailure(f"S3 error while downloading {url}: {exc}", status_code=status) from exc
        except BotoCoreError as exc:
            raise DownloadFailure(f"S3 error while downloading {url}: {exc}") from exc


class CacheStore:
    """Reference-keyed local cache of downloaded artifacts."""

    def __init__(
        self,
        directory: Optional[Path] = None,
        *,
        client: Optional[httpx.Client] = None,
        api_host: Optional[str] = None,
        s3_client_factory: Optional[S3ClientFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.directory = Path(directory or get_settings().cache.directory)
        self._client = client
        self.api_host = api_host
        self.s3_client_factory = s3_client_factory or default_s3_client_factory
        self.logger = logger or LOGGER

    @property
    def client(self) -> httpx.Client:
        return self._client or get_http_client()

    def path_for(self, reference: str) -> Path:
        """Return the cache slot reserved for ``reference``."""

        digest = hashlib.sha256(reference.encode("utf-8")).hexdigest()[:12]
        return self.directory / f"{digest}_{sanitize_filename(reference_file_name(reference))}"

    def fetch(self, reference: str, options: FetchOptions) -> Path:
        """Return a local path holding the bytes of ``reference``.

        Raises:
            DownloadFailure: If the reference cannot be downloaded.
            ChecksumMismatchError: If the local copy does not match ``options.sha256``.
            ArtifactFetchError: Resolver failures for release asset references.
        """

        target = self.path_for(reference)
        if options.force and target.exists():
            self.logger.info(
                "force refresh, discarding cached copy",
                extra={"stage": "cache", "reference": reference, "path": str(target)},
            )
            target.unlink()

        if target.exists():
            self.logger.info(
                "cache hit", extra={"stage": "cache", "reference": reference, "path": str(target)}
            )
        else:
            self._download(reference, target, options)

        if options.sha256:
            self._verify(reference, target, options.sha256)
        return target

    def _download(self, reference: str, target: Path, options: FetchOptions) -> None:
        url, downloader = self._plan_download(reference, options)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.logger.info(
            "downloading", extra={"stage": "cache", "reference": reference, "path": str(target)}
        )
        try:
            pooch.retrieve(
                url,
                known_hash=None,
                fname=target.name,
                path=self.directory,
                downloader=downloader,
                progressbar=False,
            )
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            self.logger.error(
                "download request failed",
                extra={"stage": "cache", "url": url, "status_code": status_code},
            )
            raise DownloadFailure(
                f"HTTP error while downloading {reference}: {status_code}",
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            self.logger.error(
                "download request failed", extra={"stage": "cache", "url": url, "error": str(exc)}
            )
            raise DownloadFailure(f"HTTP error while downloading {reference}: {exc}") from exc

    def _plan_download(self, reference: str, options: FetchOptions):
        parsed = parse_reference(reference)
        if parsed.is_release_asset:
            headers: Sequence[str] = options.header_spec()
            asset_url = resolve_asset_location(
                reference,
                headers,
                client=self.client,
                api_host=self.api_host,
                logger=self.logger,
            )
            download_headers = _to_headers([*headers, _ASSET_ACCEPT_HEADER])
            return asset_url, HttpxDownloader(client=self.client, headers=download_headers)

        scheme = urlsplit(reference).scheme.lower()
        if scheme == "s3":
            return reference, S3Downloader(self.s3_client_factory(options))
        if scheme in {"http", "https"}:
            return reference, HttpxDownloader(client=self.client, headers=httpx.Headers())
        raise DownloadFailure(f"Unsupported reference scheme: {reference}")

    def _verify(self, reference: str, path: Path, expected: str) -> None:
        actual = sha256_file(path)
        if actual == expected:
            return
        self.logger.error(
            "sha256 mismatch detected",
            extra={"stage": "cache", "expected": expected, "actual": actual, "path": str(path)},
        )
        path.unlink(missing_ok=True)
        raise ChecksumMismatchError(reference, expected=expected, actual=actual)


def _to_headers(entries: Sequence[str]) -> httpx.Headers:
    return httpx.Headers(parse_headers(entries))
