"""Cache store behaviour: hits, forced refreshes, checksums and download sources."""

from __future__ import annotations

import hashlib
from pathlib import Path

import httpx
import pytest

from GetMe.ArtifactFetch.cache import CacheStore, S3Downloader, sanitize_filename, sha256_file
from GetMe.ArtifactFetch.errors import (
    AssetNotFoundError,
    ChecksumMismatchError,
    DownloadFailure,
)
from GetMe.ArtifactFetch.settings import FetchOptions

URL = "https://downloads.example.org/tools/widget.zip"
PAYLOAD = b"widget-bytes"


def _sha(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


@pytest.fixture
def store(tmp_path: Path, mock_client):
    def _store(routes):
        return CacheStore(tmp_path / "store", client=mock_client(routes))

    return _store


def test_first_fetch_downloads_into_cache_slot(store, request_log):
    cache = store({URL: httpx.Response(200, content=PAYLOAD)})

    path = cache.fetch(URL, FetchOptions())

    assert path == cache.path_for(URL)
    assert path.read_bytes() == PAYLOAD
    assert path.name.endswith("_widget.zip")
    assert len(request_log) == 1
    assert "Authorization" not in request_log[0].headers


def test_cache_hit_performs_no_network_access(store, request_log):
    cache = store({URL: httpx.Response(200, content=PAYLOAD)})
    first = cache.fetch(URL, FetchOptions())

    second = cache.fetch(URL, FetchOptions())

    assert second == first
    assert len(request_log) == 1


def test_force_downloads_again(store, request_log):
    cache = store({URL: httpx.Response(200, content=PAYLOAD)})
    slot = cache.path_for(URL)
    slot.parent.mkdir(parents=True)
    slot.write_bytes(b"stale")

    path = cache.fetch(URL, FetchOptions(force=True))

    assert path.read_bytes() == PAYLOAD
    assert len(request_log) == 1


def test_distinct_references_get_distinct_slots(tmp_path):
    cache = CacheStore(tmp_path)
    assert cache.path_for("https://a.example.org/x/widget.zip") != cache.path_for(
        "https://b.example.org/x/widget.zip"
    )


def test_matching_checksum_is_accepted(store):
    cache = store({URL: httpx.Response(200, content=PAYLOAD)})

    path = cache.fetch(URL, FetchOptions(sha256=_sha(PAYLOAD).upper()))

    assert path.exists()


def test_checksum_mismatch_on_fresh_download_removes_copy(store):
    cache = store({URL: httpx.Response(200, content=PAYLOAD)})

    with pytest.raises(ChecksumMismatchError) as excinfo:
        cache.fetch(URL, FetchOptions(sha256="0" * 64))

    assert excinfo.value.actual == _sha(PAYLOAD)
    assert not cache.path_for(URL).exists()


def test_checksum_is_verified_for_cached_copy(store, request_log):
    cache = store({})
    slot = cache.path_for(URL)
    slot.parent.mkdir(parents=True)
    slot.write_bytes(b"tampered")

    with pytest.raises(ChecksumMismatchError):
        cache.fetch(URL, FetchOptions(sha256=_sha(PAYLOAD)))

    assert request_log == []
    assert not slot.exists()


def test_http_error_status_is_download_failure(store):
    cache = store({})

    with pytest.raises(DownloadFailure) as excinfo:
        cache.fetch(URL, FetchOptions())

    assert excinfo.value.status_code == 404
    assert not cache.path_for(URL).exists()


def test_unsupported_scheme_is_download_failure(tmp_path):
    with pytest.raises(DownloadFailure):
        CacheStore(tmp_path).fetch("ftp://example.org/widget.zip", FetchOptions())


def test_release_asset_is_fetched_through_api_url(store, request_log):
    reference = "https://github.com/acme/widget/releases/download/v1.0/widget.zip"
    lookup = "https://api.github.com/repos/acme/widget/releases/tags/v1.0"
    asset_url = "https://api.github.com/repos/acme/widget/releases/assets/42"
    cache = store(
        {
            lookup: httpx.Response(
                200,
                json={"assets": [{"id": 42, "browser_download_url": reference, "url": asset_url}]},
            ),
            asset_url: httpx.Response(200, content=PAYLOAD),
        }
    )

    path = cache.fetch(reference, FetchOptions(auth_token="s3cr3t"))

    assert path.read_bytes() == PAYLOAD
    assert [str(r.url) for r in request_log] == [lookup, asset_url]
    assert request_log[0].headers["Authorization"] == "token s3cr3t"
    assert request_log[1].headers["Authorization"] == "token s3cr3t"
    assert request_log[1].headers["Accept"] == "application/octet-stream"


def test_release_asset_token_from_environment(store, request_log, monkeypatch):
    reference = "https://github.com/acme/widget/releases/download/v1.0/widget.zip"
    lookup = "https://api.github.com/repos/acme/widget/releases/tags/v1.0"
    monkeypatch.setenv("WIDGET_TOKEN", "from-env")
    cache = store({lookup: httpx.Response(200, json={"assets": []})})

    with pytest.raises(AssetNotFoundError):
        cache.fetch(reference, FetchOptions(auth_token_env_variable="WIDGET_TOKEN"))

    assert request_log[0].headers["Authorization"] == "token from-env"


class _FakeS3Client:
    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.calls = []

    def download_file(self, bucket, key, filename):
        self.calls.append((bucket, key))
        Path(filename).write_bytes(self.payload)


def test_s3_reference_uses_client_factory(tmp_path):
    fake = _FakeS3Client(PAYLOAD)
    seen_options = []

    def factory(options):
        seen_options.append(options)
        return fake

    cache = CacheStore(tmp_path, s3_client_factory=factory)
    options = FetchOptions(s3_access_key="AKIA", s3_secret_key="secret")

    path = cache.fetch("s3://artifacts/builds/widget.zip", options)

    assert path.read_bytes() == PAYLOAD
    assert fake.calls == [("artifacts", "builds/widget.zip")]
    assert seen_options == [options]


def test_s3_downloader_rejects_reference_without_key(tmp_path):
    with pytest.raises(DownloadFailure):
        S3Downloader(_FakeS3Client(b""))("s3://bucket-only", str(tmp_path / "out"), None)


def test_sanitize_filename_and_digest(tmp_path):
    assert sanitize_filename("../we ird/na:me.zip") == "we_ird_na_me.zip"
    target = tmp_path / "file.bin"
    target.write_bytes(PAYLOAD)
    assert sha256_file(target) == _sha(PAYLOAD)


def test_public_release_asset_without_token(store, request_log):
    reference = "https://github.com/acme/widget/releases/download/v1.0/widget.zip"
    lookup = "https://api.github.com/repos/acme/widget/releases/tags/v1.0"
    asset_url = "https://api.github.com/repos/acme/widget/releases/assets/42"
    cache = store(
        {
            lookup: httpx.Response(
                200,
                json={"assets": [{"id": 42, "browser_download_url": reference, "url": asset_url}]},
            ),
            asset_url: httpx.Response(200, content=PAYLOAD),
        }
    )

    path = cache.fetch(reference, FetchOptions())

    assert path.read_bytes() == PAYLOAD
    assert "Authorization" not in request_log[0].headers
    assert "Authorization" not in request_log[1].headers
    assert request_log[1].headers["Accept"] == "application/octet-stream"
