"""Structured logging infrastructure for autopublish.

Provides structured logging using structlog with publish-specific context
such as job_id, run_id, orchestrator state, and component names. Supports
console output, JSON output, and a rotating JSON log file.

Example usage:
    from autopublish.core.logging import get_logger, configure_logging, with_context

    configure_logging(level="DEBUG", format="console")

    logger = get_logger("orchestrator")
    logger.info("orchestrator.transition", to_state="publishing")

    ctx = ExecutionContext(job_id="wrld_1")
    with with_context(ctx):
        logger.info("sync.completed")  # Includes job_id, run_id automatically
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field names whose values never reach a log sink
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "credential",
    "auth",
    "cookie",
    "authorization",
})

_current_log_path: Path | None = None


def get_current_log_path() -> Path | None:
    """Get the currently configured log file path, if file logging is on."""
    return _current_log_path


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable correlation context for one publish run.

    Attributes:
        job_id: Content identifier of the job being published.
        run_id: Unique id for this process's attempt at the job.
        component: Component currently doing the work.
        state: Orchestrator state, when inside the state machine.
        resumed: Whether this run resumed a persisted record.
    """

    job_id: str
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    component: str = "unknown"
    state: str | None = None
    resumed: bool = False

    def with_state(self, state: str) -> ExecutionContext:
        """Return a copy of this context in the given orchestrator state."""
        return replace(self, state=state)

    def with_component(self, component: str) -> ExecutionContext:
        """Return a copy of this context attributed to another component."""
        return replace(self, component=component)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "job_id": self.job_id,
            "run_id": self.run_id,
            "component": self.component,
        }
        if self.state is not None:
            result["state"] = self.state
        if self.resumed:
            result["resumed"] = True
        return result


_current_context: ContextVar[ExecutionContext | None] = ContextVar(
    "autopublish_context", default=None
)


def get_current_context() -> ExecutionContext | None:
    return _current_context.get()


def set_context(ctx: ExecutionContext) -> None:
    """Set the current ExecutionContext.

    Prefer ``with_context()`` so the previous context is restored.
    """
    _current_context.set(ctx)


def clear_context() -> None:
    _current_context.set(None)


@contextmanager
def with_context(ctx: ExecutionContext) -> Iterator[ExecutionContext]:
    """Set ExecutionContext for the duration of a block.

    Log calls inside the block pick up job_id, run_id and state through
    the ``_add_context`` processor. Tasks created inside the block inherit
    the context, which is how heartbeat and watchdog lines stay correlated.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields, one level deep."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that merges the current ExecutionContext.

    Explicitly bound or passed fields take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            if key not in event_dict:
                event_dict[key] = value
    return event_dict


class PublisherLogger:
    """Component logger wrapper around structlog.

    Fetches the structlog logger lazily on every call so loggers created at
    import time still honour a later ``configure_logging()``.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> PublisherLogger:
        """Create a new logger with additional bound context."""
        new_logger = PublisherLogger.__new__(PublisherLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an error with traceback; call from inside an except block."""
        self._get_logger().exception(event, **kw)


def _get_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure structured logging. Call once at startup.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable stderr output, "json" for JSON
            lines (to file_path if given, else stdout), "both" for console on
            stderr plus JSON to file_path.
        file_path: Log file path. Required if format="both".
        max_file_size_mb: Size at which the log file rotates.
        backup_count: Number of rotated files to keep.
        include_timestamps: Add ISO-8601 UTC timestamps.
        include_context: Merge ExecutionContext fields into every entry.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    global _current_log_path

    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        handlers.append(console_handler)

    if format in ("json", "both"):
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            _current_log_path = file_path
            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            handlers.append(file_handler)
        else:
            json_handler = logging.StreamHandler(sys.stdout)
            json_handler.setLevel(log_level)
            handlers.append(json_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use=False so import-time loggers follow reconfiguration
    structlog.configure(
        processors=_get_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> PublisherLogger:
    """Get a logger bound to a component name.

    Example:
        logger = get_logger("supervisor")
        logger.warning("watchdog.stalled", idle_seconds=912.4)
    """
    return PublisherLogger(component, **initial_context)


__all__ = [
    "ExecutionContext",
    "PublisherLogger",
    "SENSITIVE_PATTERNS",
    "clear_context",
    "configure_logging",
    "get_current_context",
    "get_current_log_path",
    "get_logger",
    "set_context",
    "with_context",
]
