"""Configuration models for autopublish.

One YAML file configures both halves of a job: the driver (source sync,
host launch, watchdog) and the in-host orchestrator (readiness, consent,
publish retries, session state). Every section has working defaults, so
an empty or missing file is a valid configuration.

Example:
    host:
      executable: /opt/Editor/Unity
      project_path: /work/MyWorld
    watchdog:
      idle_threshold_seconds: 900
      busy_patterns: ["Compiling Shaders", "Importing assets"]
    job:
      scene: Assets/Scenes/main.unity
"""

from __future__ import annotations

import re
import tempfile
from pathlib import Path
from typing import Literal

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from autopublish.core import constants
from autopublish.core.errors import ConfigError
from autopublish.core.job import Job, Platform


class JobDefaults(BaseModel):
    """Job fields used when the command line does not provide them."""

    model_config = ConfigDict(populate_by_name=True)

    scene: str = "Assets/Scenes/main.unity"
    thumbnail: str = "Assets/Editor/thumbnail.png"
    name: str = "A whole new world"
    content_id: str = Field(default="wrld_xxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx", alias="id")
    platform: Platform = Platform.PC
    commit_hash: str | None = None

    def to_job(self) -> Job:
        return Job.model_validate(self.model_dump())


class SyncConfig(BaseModel):
    """Source tree synchronization before the host is launched."""

    enabled: bool = True
    remote: str = constants.DEFAULT_GIT_REMOTE
    branch: str = constants.DEFAULT_GIT_BRANCH
    max_attempts: int = Field(default=constants.SYNC_MAX_ATTEMPTS, ge=1)
    retry_delay_seconds: float = Field(default=constants.SYNC_RETRY_DELAY_SECONDS, ge=0)


class HostConfig(BaseModel):
    """How the external host process is launched."""

    executable: Path = Path("Unity")
    project_path: Path = Path(".")
    execute_method: str = "AutoPublisher.UploadFromCommandLine"
    log_path: Path = Path("host_upload.log")
    glue_source: Path | None = Field(
        default=None,
        description="Job-parameter glue file copied into the project before launch",
    )
    glue_dir: Path = Path("Assets/Editor")
    extra_args: list[str] = Field(default_factory=list)

    def resolved_log_path(self) -> Path:
        if self.log_path.is_absolute():
            return self.log_path
        return Path.cwd() / self.log_path


class WatchdogConfig(BaseModel):
    """Stall detection for the supervised host process."""

    enabled: bool = True
    idle_threshold_seconds: float = Field(
        default=constants.WATCHDOG_IDLE_THRESHOLD_SECONDS, gt=0
    )
    poll_interval_seconds: float = Field(
        default=constants.WATCHDOG_POLL_INTERVAL_SECONDS, gt=0
    )
    busy_patterns: list[str] = Field(
        default_factory=lambda: list(constants.DEFAULT_BUSY_PATTERNS),
        description="Regexes marking slow-but-healthy phases in the host log",
    )
    busy_scan_bytes: int = Field(default=constants.BUSY_SCAN_TAIL_BYTES, gt=0)

    @field_validator("busy_patterns")
    @classmethod
    def _patterns_compile(cls, v: list[str]) -> list[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid busy pattern {pattern!r}: {e}") from e
        return v

    @model_validator(mode="after")
    def _interval_below_threshold(self) -> WatchdogConfig:
        if self.poll_interval_seconds >= self.idle_threshold_seconds:
            raise ValueError(
                f"poll_interval_seconds ({self.poll_interval_seconds}) must be less than "
                f"idle_threshold_seconds ({self.idle_threshold_seconds})"
            )
        return self


class ReadinessConfig(BaseModel):
    """Waits performed by the orchestrator inside the host."""

    host_poll_interval_seconds: float = Field(
        default=constants.HOST_POLL_INTERVAL_SECONDS, gt=0
    )
    host_ready_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Bound on host activation; None waits for as long as it takes",
    )
    poll_interval_seconds: float = Field(
        default=constants.READINESS_POLL_INTERVAL_SECONDS, gt=0
    )
    builder_timeout_seconds: float = Field(
        default=constants.BUILDER_READY_TIMEOUT_SECONDS, gt=0
    )


class RetryConfig(BaseModel):
    """Retry and heartbeat policy for the publish call."""

    max_attempts: int = Field(default=constants.PUBLISH_MAX_ATTEMPTS, ge=1)
    delay_seconds: float = Field(default=constants.PUBLISH_RETRY_DELAY_SECONDS, ge=0)
    heartbeat_interval_seconds: float = Field(
        default=constants.HEARTBEAT_INTERVAL_SECONDS, gt=0
    )


class ConsentConfig(BaseModel):
    """Agreement recorded before publishing."""

    agreement_code: str = constants.AGREEMENT_CODE
    agreement_version: int = Field(default=constants.AGREEMENT_VERSION, ge=1)
    agreement_text: str = constants.AGREEMENT_TEXT


class StateConfig(BaseModel):
    """Where session slots (pending record, consent cache) are kept."""

    backend: Literal["json", "memory"] = "json"
    path: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "autopublish" / "session.json",
        description="Session file; survives host restarts, not machine reboots",
    )


class LogConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "console", "both"] = "console"
    file: Path | None = None


class PublisherConfig(BaseModel):
    """Top-level autopublish configuration."""

    job: JobDefaults = Field(default_factory=JobDefaults)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    host: HostConfig = Field(default_factory=HostConfig)
    watchdog: WatchdogConfig = Field(default_factory=WatchdogConfig)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    consent: ConsentConfig = Field(default_factory=ConsentConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    logging: LogConfig = Field(default_factory=LogConfig)
    bindings: str | None = Field(
        default=None,
        description="'package.module:factory' returning HostBindings for the upload entry",
    )
    unattended: bool = Field(
        default=True,
        description="Report terminal outcomes as process exit codes",
    )

    @classmethod
    def from_yaml(cls, path: Path) -> PublisherConfig:
        """Load configuration from a YAML file.

        Raises:
            ConfigError: If the file cannot be read, parsed, or validated.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        return cls.from_yaml_string(text, source=str(path))

    @classmethod
    def from_yaml_string(cls, text: str, source: str = "<string>") -> PublisherConfig:
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {source}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {source} must be a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config {source}: {e}") from e

    @classmethod
    def load(cls, path: Path | None) -> PublisherConfig:
        """Load from ``path`` when given and present, else use defaults."""
        if path is None or not path.exists():
            return cls()
        return cls.from_yaml(path)


__all__ = [
    "ConsentConfig",
    "HostConfig",
    "JobDefaults",
    "LogConfig",
    "PublisherConfig",
    "ReadinessConfig",
    "RetryConfig",
    "StateConfig",
    "SyncConfig",
    "WatchdogConfig",
]
