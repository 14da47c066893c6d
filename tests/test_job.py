"""Tests for the Job model and unattended argument parsing."""

from __future__ import annotations

import pytest
from pydantic import ValidationError
from structlog.testing import capture_logs

from autopublish.core.job import Job, Platform, build_target, parse_job_args


@pytest.fixture
def defaults() -> Job:
    return Job(
        scene="Assets/Scenes/main.unity",
        thumbnail="Assets/Editor/thumbnail.png",
        name="A whole new world",
        id="wrld_default",
        platform="pc",
    )


class TestPlatform:
    def test_known_values(self) -> None:
        assert Platform.parse("pc") is Platform.PC
        assert Platform.parse("android") is Platform.ANDROID

    def test_case_and_whitespace_ignored(self) -> None:
        assert Platform.parse(" Android ") is Platform.ANDROID

    def test_unknown_falls_back_to_pc_with_warning(self) -> None:
        with capture_logs() as logs:
            assert Platform.parse("quest") is Platform.PC
        assert any(
            log["event"] == "job.unknown_platform" and log["platform"] == "quest"
            for log in logs
        )

    def test_build_targets(self) -> None:
        assert build_target(Platform.PC) == "StandaloneWindows64"
        assert build_target(Platform.ANDROID) == "Android"


class TestJob:
    def test_is_immutable(self, defaults: Job) -> None:
        with pytest.raises(ValidationError):
            defaults.name = "changed"  # type: ignore[misc]

    def test_accepts_alias_and_field_name(self) -> None:
        by_alias = Job(scene="s", thumbnail="t", name="n", id="wrld_1")
        by_name = Job(scene="s", thumbnail="t", name="n", content_id="wrld_1")
        assert by_alias == by_name

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Job(scene="s", thumbnail="t", name="", id="wrld_1")

    def test_blank_commit_hash_is_none(self) -> None:
        job = Job(scene="s", thumbnail="t", name="n", id="wrld_1", commit_hash="  ")
        assert job.commit_hash is None

    def test_build_target_follows_platform(self) -> None:
        job = Job(scene="s", thumbnail="t", name="n", id="wrld_1", platform="android")
        assert job.build_target == "Android"


class TestParseJobArgs:
    def test_recognized_tokens(self) -> None:
        parsed = parse_job_args([
            "--scene=Assets/a.unity",
            "--id=wrld_1",
            "--commitHash=abc123",
        ])
        assert parsed == {
            "scene": "Assets/a.unity",
            "content_id": "wrld_1",
            "commit_hash": "abc123",
        }

    def test_unrecognized_and_malformed_ignored(self) -> None:
        parsed = parse_job_args(["-batchmode", "--quit", "--color=red", "scene=x", "--name=N"])
        assert parsed == {"name": "N"}

    def test_value_may_contain_equals(self) -> None:
        assert parse_job_args(["--name=a=b"]) == {"name": "a=b"}

    def test_first_occurrence_wins(self) -> None:
        assert parse_job_args(["--name=first", "--name=second"]) == {"name": "first"}


class TestFromArgs:
    def test_merges_over_defaults(self, defaults: Job) -> None:
        job = Job.from_args(["--name=Mine", "--platform=android"], defaults)
        assert job.name == "Mine"
        assert job.platform is Platform.ANDROID
        assert job.scene == defaults.scene
        assert job.content_id == "wrld_default"

    def test_unknown_platform_defaults_to_pc(self, defaults: Job) -> None:
        job = Job.from_args(["--platform=switch"], defaults)
        assert job.platform is Platform.PC

    def test_no_args_returns_defaults(self, defaults: Job) -> None:
        assert Job.from_args([], defaults) == defaults

    def test_to_args_round_trips(self, defaults: Job) -> None:
        job = Job.from_args(["--commitHash=abc"], defaults)
        assert Job.from_args(job.to_args(), defaults) == job

    def test_to_args_can_omit_commit(self, defaults: Job) -> None:
        job = Job.from_args(["--commitHash=abc"], defaults)
        assert not any(t.startswith("--commitHash") for t in job.to_args(include_commit=False))
