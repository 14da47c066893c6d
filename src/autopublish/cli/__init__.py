"""autopublish CLI.

Package structure:
    cli/
    ├── __init__.py           # This file - app assembly and global options
    ├── helpers.py            # Logging, config and state helpers
    ├── output.py             # Rich formatting
    └── commands/
        ├── run.py            # run: sync + supervised host launch (driver)
        ├── upload.py         # upload: orchestrator entry inside the host
        ├── status.py         # status: show the pending record
        └── clear.py          # clear: drop the pending record
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from autopublish import __version__

from . import helpers as helpers
from .commands import clear, run, status, upload
from .helpers import (
    configure_global_logging,
    set_log_file,
    set_log_format,
    set_log_level,
)
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="autopublish",
    help="Build-and-publish job runner with resume and stall supervision",
    add_completion=False,
)

# Job commands accept --key=value job tokens after their own options
_JOB_ARGS = {"allow_extra_args": True, "ignore_unknown_options": True}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
_LOG_FORMATS = ("json", "console", "both")


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    if value:
        console.print(f"autopublish v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        if value.upper() not in _LOG_LEVELS:
            raise typer.BadParameter(f"must be one of {', '.join(_LOG_LEVELS)}")
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        if value not in _LOG_FORMATS:
            raise typer.BadParameter(f"must be one of {', '.join(_LOG_FORMATS)}")
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="AUTOPUBLISH_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="AUTOPUBLISH_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json, console, or both",
            envvar="AUTOPUBLISH_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """autopublish - sync, launch, supervise and publish one job."""
    configure_global_logging(console)


# =============================================================================
# Command registration
# =============================================================================

app.command(context_settings=_JOB_ARGS)(run)
app.command(context_settings=_JOB_ARGS)(upload)
app.command()(status)
app.command()(clear)


__all__ = ["app", "console", "main"]
