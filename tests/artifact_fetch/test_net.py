"""Shared HTTPX client lifecycle."""

from __future__ import annotations

import httpx
import pytest

from GetMe.ArtifactFetch import net
from GetMe.ArtifactFetch.settings import HttpConfiguration


def test_get_http_client_singleton():
    client_a = net.get_http_client()
    client_b = net.get_http_client()
    assert client_a is client_b


def test_configure_http_client_swap_and_reset():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(204)

    custom = httpx.Client(transport=httpx.MockTransport(handler))
    net.configure_http_client(custom)
    assert net.get_http_client() is custom
    net.get_http_client().get("https://example.org/swap")
    assert calls == ["https://example.org/swap"]

    net.reset_http_client()
    assert custom.is_closed
    assert net.get_http_client() is not custom


def test_build_http_client_applies_configuration():
    config = HttpConfiguration(timeout_sec=30.0, connect_timeout_sec=3.0, user_agent="getme-test/1")
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["User-Agent"])
        return httpx.Response(200)

    with net.build_http_client(config, transport=httpx.MockTransport(handler)) as client:
        client.get("https://example.org/")
        assert client.timeout.connect == pytest.approx(3.0)
        assert client.timeout.read == pytest.approx(30.0)

    assert seen == ["getme-test/1"]
