"""Shared utilities for autopublish CLI commands.

- Logging configuration from global options and the config file
- Config loading with user-facing errors
- Session store creation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import typer
from rich.console import Console

from autopublish.core.config import LogConfig, PublisherConfig
from autopublish.core.errors import ConfigError
from autopublish.core.logging import configure_logging, get_logger
from autopublish.state import InMemorySessionStore, JsonSessionStore, SessionStore

_logger = get_logger("cli")

DEFAULT_CONFIG_PATH = Path("autopublish.yaml")


class ErrorMessages:
    """User-facing error prefixes shared by commands."""

    CONFIG_LOAD_ERROR = "Error loading config"
    BINDINGS_ERROR = "Error loading host bindings"
    NO_BINDINGS = "No host bindings configured (set 'bindings' or pass --bindings)"


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """Logging settings collected from global CLI options.

    ``explicit`` remembers which settings came from the command line, so a
    config file's ``logging`` section only fills in the rest.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: Path | None = None
    format: Literal["json", "console", "both"] = "console"
    configured: bool = False
    explicit: set[str] = field(default_factory=set)


_log_config = CliLoggingConfig()


def get_log_level() -> str:
    return _log_config.level


def set_log_level(level: str) -> None:
    _log_config.level = level.upper()  # type: ignore[assignment]
    _log_config.explicit.add("level")


def get_log_file() -> Path | None:
    return _log_config.file


def set_log_file(path: Path | None) -> None:
    _log_config.file = path
    _log_config.explicit.add("file")


def get_log_format() -> str:
    return _log_config.format


def set_log_format(fmt: str) -> None:
    _log_config.format = fmt  # type: ignore[assignment]
    _log_config.explicit.add("format")


def _apply(console: Console) -> None:
    try:
        configure_logging(
            level=_log_config.level,
            format=_log_config.format,
            file_path=_log_config.file,
        )
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None
    _log_config.configured = True


def configure_global_logging(console: Console) -> None:
    """Configure logging from the global options. Runs once per session.

    Raises:
        typer.Exit: If the combination of options is invalid.
    """
    if _log_config.configured:
        return
    _apply(console)


def apply_config_logging(log_config: LogConfig, console: Console) -> None:
    """Layer a config file's logging section under the CLI options."""
    changed = False
    for name in ("level", "format", "file"):
        if name in _log_config.explicit:
            continue
        value = getattr(log_config, name)
        if getattr(_log_config, name) != value:
            setattr(_log_config, name, value)
            changed = True
    if changed or not _log_config.configured:
        _apply(console)


def reset_logging_state() -> None:
    """Reset CLI logging state (for tests)."""
    global _log_config
    _log_config = CliLoggingConfig()


# =============================================================================
# Config and state
# =============================================================================


def load_config(path: Path | None, console: Console) -> PublisherConfig:
    """Load the config file, exiting with a red message on failure.

    A missing file at the default location means "use defaults"; a missing
    file that was named explicitly is an error.
    """
    if path is not None and path != DEFAULT_CONFIG_PATH and not path.exists():
        console.print(f"[red]{ErrorMessages.CONFIG_LOAD_ERROR}:[/red] {path} does not exist")
        raise typer.Exit(1)
    try:
        config = PublisherConfig.load(path)
    except ConfigError as e:
        console.print(f"[red]{ErrorMessages.CONFIG_LOAD_ERROR}:[/red] {e}")
        raise typer.Exit(1) from None
    apply_config_logging(config.logging, console)
    _logger.debug("cli.config_loaded", path=str(path) if path else None)
    return config


def create_session_store(config: PublisherConfig) -> SessionStore:
    """Create the session store named by the ``state`` section."""
    if config.state.backend == "memory":
        return InMemorySessionStore()
    return JsonSessionStore(config.state.path)


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "CliLoggingConfig",
    "ErrorMessages",
    "apply_config_logging",
    "configure_global_logging",
    "create_session_store",
    "get_log_file",
    "get_log_format",
    "get_log_level",
    "load_config",
    "reset_logging_state",
    "set_log_file",
    "set_log_format",
    "set_log_level",
]
