"""Tests for configuration models and YAML loading."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from autopublish.core import constants
from autopublish.core.config import (
    HostConfig,
    PublisherConfig,
    ReadinessConfig,
    WatchdogConfig,
)
from autopublish.core.errors import ConfigError
from autopublish.core.job import Platform


class TestDefaults:
    def test_empty_config_is_valid(self) -> None:
        config = PublisherConfig()
        assert config.sync.max_attempts == constants.SYNC_MAX_ATTEMPTS
        assert config.retry.max_attempts == 3
        assert config.readiness.builder_timeout_seconds == 30.0
        assert config.readiness.host_ready_timeout_seconds is None
        assert config.watchdog.idle_threshold_seconds == 900.0
        assert config.unattended is True

    def test_default_busy_patterns(self) -> None:
        assert "Compiling Shaders" in WatchdogConfig().busy_patterns

    def test_job_defaults_build_a_job(self) -> None:
        job = PublisherConfig().job.to_job()
        assert job.platform is Platform.PC
        assert job.commit_hash is None


class TestWatchdogConfig:
    def test_interval_must_be_less_than_threshold(self) -> None:
        with pytest.raises(ValueError, match="poll_interval_seconds.*must be less than"):
            WatchdogConfig(idle_threshold_seconds=30, poll_interval_seconds=30)

    def test_zero_threshold_rejected(self) -> None:
        with pytest.raises(ValueError):
            WatchdogConfig(idle_threshold_seconds=0)

    def test_invalid_pattern_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid busy pattern"):
            WatchdogConfig(busy_patterns=["(unclosed"])


class TestReadinessConfig:
    def test_host_timeout_optional_but_positive(self) -> None:
        assert ReadinessConfig(host_ready_timeout_seconds=120).host_ready_timeout_seconds == 120
        with pytest.raises(ValueError):
            ReadinessConfig(host_ready_timeout_seconds=0)


class TestHostConfig:
    def test_relative_log_path_resolved_against_cwd(self) -> None:
        config = HostConfig(log_path=Path("logs/host.log"))
        assert config.resolved_log_path() == Path.cwd() / "logs/host.log"

    def test_absolute_log_path_kept(self, tmp_path: Path) -> None:
        config = HostConfig(log_path=tmp_path / "host.log")
        assert config.resolved_log_path() == tmp_path / "host.log"


class TestYamlLoading:
    def test_from_yaml_string(self) -> None:
        config = PublisherConfig.from_yaml_string(textwrap.dedent(
            """
            job:
              id: wrld_1
              platform: android
            retry:
              max_attempts: 5
            watchdog:
              idle_threshold_seconds: 60
              poll_interval_seconds: 5
            """
        ))
        assert config.job.content_id == "wrld_1"
        assert config.job.platform is Platform.ANDROID
        assert config.retry.max_attempts == 5
        assert config.watchdog.poll_interval_seconds == 5

    def test_empty_document_uses_defaults(self) -> None:
        assert PublisherConfig.from_yaml_string("") == PublisherConfig()

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ConfigError, match="Invalid YAML"):
            PublisherConfig.from_yaml_string("job: [unclosed")

    def test_non_mapping(self) -> None:
        with pytest.raises(ConfigError, match="must be a mapping"):
            PublisherConfig.from_yaml_string("- a\n- b\n")

    def test_validation_error_wrapped(self) -> None:
        with pytest.raises(ConfigError, match="Invalid config"):
            PublisherConfig.from_yaml_string("retry:\n  max_attempts: 0\n")

    def test_from_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "autopublish.yaml"
        path.write_text("bindings: my_host.bindings:create\nunattended: false\n")
        config = PublisherConfig.from_yaml(path)
        assert config.bindings == "my_host.bindings:create"
        assert config.unattended is False

    def test_unreadable_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot read config"):
            PublisherConfig.from_yaml(tmp_path / "missing.yaml")

    def test_load_missing_returns_defaults(self, tmp_path: Path) -> None:
        assert PublisherConfig.load(tmp_path / "missing.yaml") == PublisherConfig()
        assert PublisherConfig.load(None) == PublisherConfig()
