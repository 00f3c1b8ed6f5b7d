# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.logging_config",
#   "purpose": "Structured JSONL logging with credential masking and log retention",
#   "sections": [
#     {"id": "masking", "name": "mask_sensitive_data", "anchor": "function-mask-sensitive-data", "kind": "function"},
#     {"id": "jsonformatter", "name": "JSONFormatter", "anchor": "class-jsonformatter", "kind": "class"},
#     {"id": "setup-logging", "name": "setup_logging", "anchor": "function-setup-logging", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""
Structured Logging Utilities

This module centralizes logging setup for the artifact fetcher. It provides
helpers for masking credentials, emitting JSON log records, managing
correlation identifiers, and rolling log files to maintain a clean retention
window.

Console output goes to standard error: standard output is reserved for the
paths and bytes the commands print.
"""

from __future__ import annotations

import gzip
import json
import logging
import sys
import uuid
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

from .settings import LoggingConfiguration

LOGGER_NAME = "GetMe.ArtifactFetch"

_SENSITIVE_KEYS = {
    "authorization",
    "token",
    "auth_token",
    "secret",
    "password",
    "s3_access_key",
    "s3_secret_key",
}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Args:
        payload: Arbitrary key-value pairs that may contain credentials.

    Returns:
        Copy of the payload where secret fields, and strings carrying an
        ``Authorization=`` header entry, are replaced with ``***masked***``.

    Examples:
        >>> mask_sensitive_data({"token": "secret", "status": "ok"})
        {'token': '***masked***', 'status': 'ok'}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, str) and "authorization=" in value.lower():
            masked[key] = "***masked***"
        else:
            masked[key] = value
    return masked


def generate_correlation_id() -> str:
    """Create a short-lived identifier that links related log entries.

    Examples:
        >>> len(generate_correlation_id())
        12
    """
    return uuid.uuid4().hex[:12]


_RESERVED_RECORD_FIELDS = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Formatter emitting JSON structured logs.

    Examples:
        >>> formatter = JSONFormatter()
        >>> isinstance(formatter.format(logging.makeLogRecord({'msg': 'test'})), str)
        True
    """

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        log_obj: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "stage": getattr(record, "stage", None),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_FIELDS or key in log_obj:
                continue
            log_obj[key] = value
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(log_obj), default=str)


class _CorrelationFilter(logging.Filter):
    def __init__(self, correlation_id: str) -> None:
        super().__init__()
        self.correlation_id = correlation_id

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = self.correlation_id
        return True


def _compress_old_log(path: Path) -> None:
    """Compress a log file in-place using gzip to reclaim disk space."""
    compressed_path = path.with_suffix(path.suffix + ".gz")
    with path.open("rb") as source, gzip.open(compressed_path, "wb") as target:
        target.write(source.read())
    path.unlink(missing_ok=True)


def _cleanup_logs(log_dir: Path, retention_days: int) -> None:
    """Compress logs older than the retention window, delete compressed ones past it."""
    now = datetime.now(timezone.utc)
    retention_delta = timedelta(days=retention_days)
    for file in log_dir.glob("*.jsonl"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            _compress_old_log(file)
    for file in log_dir.glob("*.jsonl.gz"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            file.unlink(missing_ok=True)


def setup_logging(
    config: LoggingConfiguration,
    *,
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """Configure console and JSONL file handlers for the artifact fetcher.

    Args:
        config: Logging configuration containing level, size, and retention.
        level: Optional level overriding ``config.level`` (CLI verbosity).
        log_dir: Optional directory override for log file placement.
        correlation_id: Identifier stamped on every record of this run.

    Returns:
        Configured package logger.
    """
    directory = log_dir or config.resolved_directory()
    directory.mkdir(parents=True, exist_ok=True)
    _cleanup_logs(directory, config.retention_days)

    logger = logging.getLogger(LOGGER_NAME)
    effective = (level or config.level).upper()
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        if getattr(handler, "_getme_managed", False):
            logger.removeHandler(handler)
            handler.close()
    # Records from child loggers skip logger filters, so stamp on the handlers.
    correlation = _CorrelationFilter(correlation_id or generate_correlation_id())

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(getattr(logging, effective, logging.WARNING))
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler.addFilter(correlation)
    stream_handler._getme_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    file_handler = RotatingFileHandler(
        directory / f"getme-{today}.jsonl",
        maxBytes=int(config.max_log_size_mb * 1024 * 1024),
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JSONFormatter())
    file_handler.addFilter(correlation)
    file_handler._getme_managed = True  # type: ignore[attr-defined]
    logger.addHandler(file_handler)

    logger.propagate = True
    return logger


__all__ = [
    "LOGGER_NAME",
    "JSONFormatter",
    "setup_logging",
    "mask_sensitive_data",
    "generate_correlation_id",
]
