# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.settings",
#   "purpose": "Per-invocation fetch options and process configuration models",
#   "sections": [
#     {"id": "fetch-options", "name": "FetchOptions", "anchor": "class-fetchoptions", "kind": "class"},
#     {"id": "configuration", "name": "Configuration Models", "anchor": "CFG", "kind": "api"},
#     {"id": "settings", "name": "Settings & get_settings", "anchor": "function-get-settings", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Fetch options and configuration models for the artifact fetcher.

Two kinds of configuration live here:

- :class:`FetchOptions` is the immutable bundle of credentials, the expected
  checksum and the ``force`` flag built once per invocation from CLI options
  and threaded explicitly through every cache and resolver call.
- :class:`Settings` groups process-level defaults (HTTP timeouts, poll
  cadence, cache and log directories, Pinata naming templates).  Values can
  be overridden through ``GETME_``-prefixed environment variables, for
  example ``GETME_POLLING__TIMEOUT_SEC=3600``.
"""

from __future__ import annotations

import os
import re
import threading
from pathlib import Path
from typing import List, Mapping, Optional

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import UserConfigError

__all__ = [
    "APP_NAME",
    "FetchOptions",
    "HttpConfiguration",
    "PollingConfiguration",
    "CacheConfiguration",
    "LoggingConfiguration",
    "PinataConfiguration",
    "Settings",
    "get_settings",
    "reset_settings",
]

APP_NAME = "getme"

_SHA256_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class FetchOptions(BaseModel):
    """Credentials, checksum and refresh policy for one invocation."""

    model_config = ConfigDict(frozen=True)

    auth_token: Optional[str] = Field(default=None, description="API authentication token")
    auth_token_env_variable: Optional[str] = Field(
        default=None, description="Environment variable holding an API authentication token"
    )
    s3_access_key: Optional[str] = Field(default=None, description="Amazon S3 access key")
    s3_secret_key: Optional[str] = Field(default=None, description="Amazon S3 secret key")
    sha256: Optional[str] = Field(default=None, description="Expected SHA-256 of the artifact")
    force: bool = Field(default=False, description="Fetch again even when a cached copy exists")

    @field_validator("auth_token", "auth_token_env_variable", "s3_access_key", "s3_secret_key")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("sha256")
    @classmethod
    def _normalize_sha256(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        digest = value.strip().lower()
        if not _SHA256_PATTERN.fullmatch(digest):
            raise ValueError("sha256 must be a 64 character hexadecimal digest")
        return digest

    def resolve_auth_token(self, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
        """Return the explicit token, or the one held by ``auth_token_env_variable``."""

        if self.auth_token:
            return self.auth_token
        if self.auth_token_env_variable:
            env = os.environ if environ is None else environ
            return env.get(self.auth_token_env_variable) or None
        return None

    def header_spec(self, environ: Optional[Mapping[str, str]] = None) -> List[str]:
        """Return ``key=value`` header entries carrying the API token, if any."""

        token = self.resolve_auth_token(environ)
        if not token:
            return []
        return [f"Authorization=token {token}"]


class HttpConfiguration(BaseModel):
    """HTTP client settings shared by the resolver, cache and CI client."""

    timeout_sec: float = Field(default=60.0, gt=0.0, le=3600.0)
    connect_timeout_sec: float = Field(default=10.0, gt=0.0, le=300.0)
    user_agent: str = Field(default=f"{APP_NAME}/0.3.0")
    github_api_host: str = Field(default="https://api.github.com")
    follow_redirects: bool = True

    @field_validator("github_api_host")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    model_config = {"validate_assignment": True}


class PollingConfiguration(BaseModel):
    """Cadence and bounds of the queue and build poll loops.

    ``timeout_sec`` and ``max_attempts`` default to ``None``: the loops wait
    for as long as the CI server takes.
    """

    queue_interval_sec: float = Field(default=1.0, ge=0.0)
    build_interval_sec: float = Field(default=5.0, ge=0.0)
    timeout_sec: Optional[float] = Field(default=None, gt=0.0)
    max_attempts: Optional[int] = Field(default=None, ge=1)

    model_config = {"validate_assignment": True}


class CacheConfiguration(BaseModel):
    """Location of the local artifact cache."""

    directory: Path = Field(default_factory=lambda: Path(platformdirs.user_cache_dir(APP_NAME)))

    model_config = {"validate_assignment": True}


class LoggingConfiguration(BaseModel):
    """Logging-related configuration."""

    level: str = Field(default="WARNING", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    max_log_size_mb: int = Field(default=10, gt=0, description="Maximum size of rotated log files")
    retention_days: int = Field(default=14, ge=1, description="Retention period for log files")
    directory: Optional[Path] = Field(default=None, description="Directory for JSONL log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return upper

    def resolved_directory(self) -> Path:
        return self.directory or Path(platformdirs.user_log_dir(APP_NAME))

    model_config = {"validate_assignment": True}


class PinataConfiguration(BaseModel):
    """Naming templates for the Pinata ISO job and the artifact it publishes."""

    job_name_template: str = "pinata-{platform}-iso"
    artifact_url_template: str = (
        "https://storage.googleapis.com/{bucket}/{commit}/docker-for-{platform}.iso.tgz"
    )
    commit_parameter: str = "COMMIT_ID"


class Settings(BaseSettings):
    """Process-level configuration with ``GETME_`` environment overrides."""

    model_config = SettingsConfigDict(
        env_prefix="GETME_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    http: HttpConfiguration = Field(default_factory=HttpConfiguration)
    polling: PollingConfiguration = Field(default_factory=PollingConfiguration)
    cache: CacheConfiguration = Field(default_factory=CacheConfiguration)
    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)
    pinata: PinataConfiguration = Field(default_factory=PinataConfiguration)


_settings: Optional[Settings] = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Return the lazily loaded process settings.

    Raises:
        UserConfigError: If an environment override fails validation.
    """

    global _settings
    if _settings is not None:
        return _settings
    with _settings_lock:
        if _settings is None:
            try:
                _settings = Settings()
            except PydanticValidationError as exc:
                raise UserConfigError(f"Invalid GETME_ configuration: {exc}") from exc
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next :func:`get_settings` re-reads the environment."""

    global _settings
    with _settings_lock:
        _settings = None
