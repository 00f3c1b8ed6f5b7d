# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.cli",
#   "purpose": "Typer command surface for downloads, copies, extraction, and the Pinata build fallback",
#   "sections": [
#     {"id": "clicontext", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "commands", "name": "download / copy / extract / pinata", "anchor": "CMD", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Typer CLI for the artifact fetcher.

Global options carry the credentials, checksum and ``--force`` flag; they are
turned into one immutable :class:`FetchOptions` per invocation and passed to
every command::

    getme --sha256 <digest> download https://example.org/tool.tgz
    getme --auth-token-env-variable GITHUB_TOKEN extract \\
        https://github.com/acme/tool/releases/download/v1.0/tool.zip ./out
    getme pinata https://ci.example.org user token bucket 1a2b3c mac

Standard output only ever carries the command result (a path or the copied
bytes); logs go to standard error and to a rotating JSONL file.  Failures
print one error line and exit with status 1.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape

from . import __version__, api
from .archives import ExtractedFile
from .errors import ArtifactFetchError
from .logging_config import setup_logging
from .orchestrator import BuildRequest
from .settings import FetchOptions, Settings, get_settings

T = TypeVar("T")

_console = Console(stderr=True)

_VERBOSITY_LEVELS = {0: None, 1: "INFO"}


class CliContext:
    """Per-invocation state shared with every command."""

    def __init__(self, options: FetchOptions, settings: Settings, logger: logging.Logger) -> None:
        self.options = options
        self.settings = settings
        self.logger = logger
        self.console = _console


app = typer.Typer(
    name="getme",
    help="Fetch build artifacts through a local cache",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"getme {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    ctx: typer.Context,
    auth_token: Optional[str] = typer.Option(
        None, "--auth-token", "--authToken", help="API authentication token"
    ),
    auth_token_env_variable: Optional[str] = typer.Option(
        None,
        "--auth-token-env-variable",
        "--authTokenEnvVariable",
        help="Env variable containing an API authentication token",
    ),
    s3_access_key: Optional[str] = typer.Option(
        None, "--s3-access-key", "--s3AccessKey", help="Amazon S3 access key"
    ),
    s3_secret_key: Optional[str] = typer.Option(
        None, "--s3-secret-key", "--s3SecretKey", help="Amazon S3 secret key"
    ),
    sha256: Optional[str] = typer.Option(
        None, "--sha256", help="Checksum to check downloaded files"
    ),
    force: bool = typer.Option(False, "--force", help="Force download"),
    verbosity: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase verbosity (-v for INFO, -vv for DEBUG)"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Fetch build artifacts through a local cache."""

    try:
        options = FetchOptions(
            auth_token=auth_token,
            auth_token_env_variable=auth_token_env_variable,
            s3_access_key=s3_access_key,
            s3_secret_key=s3_secret_key,
            sha256=sha256,
            force=force,
        )
    except PydanticValidationError as exc:
        raise typer.BadParameter(str(exc.errors()[0]["msg"]), param_hint="--sha256") from exc

    try:
        settings = get_settings()
    except ArtifactFetchError as exc:
        _console.print(f"[red]Error loading settings: {escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc

    level = _VERBOSITY_LEVELS.get(verbosity, "DEBUG")
    logger = setup_logging(settings.logging, level=level)
    ctx.obj = CliContext(options, settings, logger)


def _context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise RuntimeError("CLI context not initialized")
    return ctx.obj


def _run(ctx: typer.Context, action: Callable[[CliContext], T]) -> T:
    cli = _context(ctx)
    try:
        return action(cli)
    except ArtifactFetchError as exc:
        stage = f" (stage: {exc.stage})" if exc.stage else ""
        cli.logger.debug("command failed", exc_info=True)
        cli.console.print(f"[red]Error{stage}: {escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc


@app.command("download")
def download_cmd(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Reference of the artifact"),
) -> None:
    """Download URL into the cache and print the path of the cached file."""

    path = _run(ctx, lambda cli: api.download(url, cli.options))
    typer.echo(str(path))


@app.command("copy")
def copy_cmd(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Reference of the artifact"),
    destination: str = typer.Argument(..., help="Destination path, or - for stdout"),
) -> None:
    """Download URL into the cache and copy it to DESTINATION."""

    _run(ctx, lambda cli: api.copy(url, cli.options, destination))


@app.command("extract")
def extract_cmd(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Reference of a zip or tar archive"),
    targets: List[str] = typer.Argument(
        ..., help="DESTINATION directory, or SOURCE DESTINATION pairs"
    ),
) -> None:
    """Extract a whole archive to a directory, or selected entries to files."""

    if len(targets) == 1:
        destination = Path(targets[0])
        _run(ctx, lambda cli: api.extract_all(url, cli.options, destination))
        return

    if len(targets) % 2:
        raise typer.BadParameter(
            "an url, a file name and a destination must be provided", param_hint="TARGETS"
        )
    files = [
        ExtractedFile(source=targets[index], destination=Path(targets[index + 1]))
        for index in range(0, len(targets), 2)
    ]
    _run(ctx, lambda cli: api.extract_selected(url, cli.options, files))


@app.command("pinata")
def pinata_cmd(
    ctx: typer.Context,
    jenkins: str = typer.Argument(..., help="Jenkins base URL"),
    user: str = typer.Argument(..., help="Jenkins user"),
    token: str = typer.Argument(..., help="Jenkins API token"),
    bucket: str = typer.Argument(..., help="Storage bucket holding the ISO"),
    commit: str = typer.Argument(..., help="Commit to fetch or build"),
    platform: str = typer.Argument(..., help="Target platform (e.g. mac, win)"),
) -> None:
    """Fetch the Pinata ISO for COMMIT, building it on Jenkins when it is missing."""

    request = BuildRequest(
        ci_base_url=jenkins,
        user=user,
        token=token,
        bucket=bucket,
        commit=commit,
        platform=platform,
    )
    path = _run(ctx, lambda cli: api.pinata(request, cli.options))
    typer.echo(str(path))


# Command names accepted by earlier releases.
app.command("Download", hidden=True)(download_cmd)
app.command("Copy", hidden=True)(copy_cmd)
app.command("Extract", hidden=True)(extract_cmd)
app.command("Unzip", hidden=True)(extract_cmd)
app.command("UnzipSingleFile", hidden=True)(extract_cmd)
app.command("unzip", hidden=True)(extract_cmd)
app.command("unzip-single-file", hidden=True)(extract_cmd)
app.command("Pinata", hidden=True)(pinata_cmd)


__all__ = ["app", "CliContext", "main"]
