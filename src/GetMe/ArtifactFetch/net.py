# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.net",
#   "purpose": "Shared HTTPX client factory used by the resolver, cache store, and CI client",
#   "sections": [
#     {"id": "get-http-client", "name": "get_http_client", "anchor": "function-get-http-client", "kind": "function"},
#     {"id": "configure-http-client", "name": "configure_http_client", "anchor": "function-configure-http-client", "kind": "function"},
#     {"id": "reset-http-client", "name": "reset_http_client", "anchor": "function-reset-http-client", "kind": "function"},
#     {"id": "build-http-client", "name": "build_http_client", "anchor": "function-build-http-client", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Shared HTTPX client for the artifact fetcher.

Every network call in the package accepts an explicit ``client`` argument.
When callers omit it they get the process-wide client returned by
:func:`get_http_client`, created lazily from :class:`HttpConfiguration`.
Tests install a client backed by :class:`httpx.MockTransport` with
:func:`configure_http_client` and restore the default with
:func:`reset_http_client`.

Example:
    >>> from GetMe.ArtifactFetch.net import get_http_client, close_http_client
    >>> client = get_http_client()
    >>> close_http_client()
"""

from __future__ import annotations

import logging
import ssl
import threading
from typing import Optional

import certifi
import httpx

from .settings import HttpConfiguration, get_settings

__all__ = [
    "build_http_client",
    "get_http_client",
    "configure_http_client",
    "reset_http_client",
    "close_http_client",
]

LOGGER = logging.getLogger(__name__)

_CLIENT_LOCK = threading.Lock()
_HTTP_CLIENT: Optional[httpx.Client] = None


def _create_ssl_context() -> ssl.SSLContext:
    """Create an SSL context trusting the certifi bundle."""

    ctx = ssl.create_default_context(cafile=certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def build_http_client(
    config: Optional[HttpConfiguration] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create a new HTTPX client from ``config``.

    Args:
        config: HTTP settings; defaults to the process settings.
        transport: Optional transport override (used by tests).

    Returns:
        Configured :class:`httpx.Client`. The caller owns and closes it.
    """

    cfg = config or get_settings().http
    timeout = httpx.Timeout(cfg.timeout_sec, connect=cfg.connect_timeout_sec)
    kwargs = {
        "timeout": timeout,
        "follow_redirects": cfg.follow_redirects,
        "headers": {"User-Agent": cfg.user_agent},
    }
    if transport is not None:
        return httpx.Client(transport=transport, **kwargs)
    return httpx.Client(verify=_create_ssl_context(), **kwargs)


def get_http_client(config: Optional[HttpConfiguration] = None) -> httpx.Client:
    """Return the shared HTTPX client, creating it if necessary."""

    global _HTTP_CLIENT
    with _CLIENT_LOCK:
        if _HTTP_CLIENT is None:
            _HTTP_CLIENT = build_http_client(config)
            LOGGER.debug("HTTP client initialized", extra={"stage": "http"})
        return _HTTP_CLIENT


def configure_http_client(client: httpx.Client) -> None:
    """Install ``client`` as the shared HTTPX client."""

    global _HTTP_CLIENT
    with _CLIENT_LOCK:
        if _HTTP_CLIENT is not None and _HTTP_CLIENT is not client:
            _HTTP_CLIENT.close()
        _HTTP_CLIENT = client


def close_http_client() -> None:
    """Close the shared client. Safe to call when none has been created."""

    global _HTTP_CLIENT
    with _CLIENT_LOCK:
        if _HTTP_CLIENT is not None:
            _HTTP_CLIENT.close()
            _HTTP_CLIENT = None


def reset_http_client() -> None:
    """Reset the shared HTTPX client to its default configuration (test helper)."""

    close_http_client()
