"""Shared fixtures for the artifact_fetch test suite."""

from __future__ import annotations

import io
import logging
import os
import tarfile
import zipfile
from pathlib import Path
from typing import Callable, Dict, List

import httpx
import pytest

from GetMe.ArtifactFetch import net
from GetMe.ArtifactFetch.logging_config import LOGGER_NAME
from GetMe.ArtifactFetch.settings import reset_settings


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point cache and log directories at ``tmp_path`` and reset process singletons."""

    for name in list(os.environ):
        if name.startswith("GETME_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GETME_CACHE__DIRECTORY", str(tmp_path / "cache"))
    monkeypatch.setenv("GETME_LOGGING__DIRECTORY", str(tmp_path / "logs"))
    reset_settings()
    net.reset_http_client()
    yield
    net.reset_http_client()
    reset_settings()
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_getme_managed", False):
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def request_log() -> List[httpx.Request]:
    return []


@pytest.fixture
def mock_client(request_log: List[httpx.Request]) -> Callable[..., httpx.Client]:
    """Build an HTTPX client answering from a ``{url: response}`` routing table."""

    clients: List[httpx.Client] = []

    def _factory(routes: Dict[str, httpx.Response]) -> httpx.Client:
        def handler(request: httpx.Request) -> httpx.Response:
            request_log.append(request)
            url = str(request.url)
            if url in routes:
                return routes[url]
            return httpx.Response(404, json={"message": "Not Found"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _factory
    for client in clients:
        client.close()


@pytest.fixture
def zip_archive(tmp_path: Path) -> Path:
    path = tmp_path / "bundle.zip"
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("docs/", "")
        archive.writestr("docs/readme.txt", "hello from zip\n")
        archive.writestr("bin/tool", "#!/bin/sh\necho tool\n")
    return path


@pytest.fixture
def tar_archive(tmp_path: Path) -> Path:
    path = tmp_path / "bundle.tgz"
    with tarfile.open(path, "w:gz") as archive:
        root = tarfile.TarInfo("./")
        root.type = tarfile.DIRTYPE
        root.mode = 0o755
        archive.addfile(root)
        for name, payload in (("./docs/readme.txt", b"hello from tar\n"), ("./bin/tool", b"tool\n")):
            info = tarfile.TarInfo(name)
            info.size = len(payload)
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(payload))
    return path
