"""Fetch options validation and environment-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from GetMe.ArtifactFetch.errors import UserConfigError
from GetMe.ArtifactFetch.settings import FetchOptions, get_settings, reset_settings

DIGEST = "a" * 64


def test_fetch_options_are_immutable():
    options = FetchOptions(force=True)
    with pytest.raises(ValidationError):
        options.force = False


def test_sha256_is_normalised():
    assert FetchOptions(sha256=f"  {DIGEST.upper()} ").sha256 == DIGEST
    assert FetchOptions(sha256="   ").sha256 is None


def test_sha256_rejects_non_digest():
    with pytest.raises(ValidationError):
        FetchOptions(sha256="not-a-digest")


def test_explicit_token_wins_over_environment():
    options = FetchOptions(auth_token="direct", auth_token_env_variable="TOKEN_VAR")
    assert options.resolve_auth_token({"TOKEN_VAR": "from-env"}) == "direct"


def test_token_from_environment_variable():
    options = FetchOptions(auth_token_env_variable="TOKEN_VAR")
    assert options.header_spec({"TOKEN_VAR": "from-env"}) == ["Authorization=token from-env"]
    assert options.header_spec({}) == []


def test_no_token_means_no_headers():
    assert FetchOptions(auth_token="  ").header_spec() == []


def test_settings_defaults(tmp_path):
    settings = get_settings()

    assert settings.polling.queue_interval_sec == 1.0
    assert settings.polling.build_interval_sec == 5.0
    assert settings.polling.timeout_sec is None
    assert settings.cache.directory == tmp_path / "cache"
    assert settings.pinata.commit_parameter == "COMMIT_ID"
    assert settings.http.github_api_host == "https://api.github.com"


def test_settings_environment_overrides(monkeypatch):
    monkeypatch.setenv("GETME_POLLING__TIMEOUT_SEC", "120")
    monkeypatch.setenv("GETME_HTTP__GITHUB_API_HOST", "https://github.example.com/api/v3/")
    reset_settings()

    settings = get_settings()

    assert settings.polling.timeout_sec == 120.0
    assert settings.http.github_api_host == "https://github.example.com/api/v3"


def test_settings_are_cached_until_reset():
    assert get_settings() is get_settings()


def test_invalid_environment_is_user_config_error(monkeypatch):
    monkeypatch.setenv("GETME_LOGGING__LEVEL", "LOUD")
    reset_settings()

    with pytest.raises(UserConfigError):
        get_settings()


def test_log_directory_override(tmp_path):
    assert get_settings().logging.resolved_directory() == Path(tmp_path / "logs")
