"""Tests for git source synchronization."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from structlog.testing import capture_logs

from autopublish.core.errors import GitCommandError, SyncFailed
from autopublish.sync import SourceSync


def _make_sync(tmp_path: Path, **kwargs) -> tuple[SourceSync, AsyncMock]:
    sleep = AsyncMock()
    sync = SourceSync(tmp_path, sleep=sleep, **kwargs)
    return sync, sleep


class TestSequence:
    @pytest.mark.asyncio
    async def test_branch_tip_sequence(self, tmp_path: Path) -> None:
        sync, sleep = _make_sync(tmp_path)
        sync._run_git = AsyncMock(return_value="deadbeef")  # type: ignore[method-assign]

        head = await sync.sync()

        assert head == "deadbeef"
        assert [c.args for c in sync._run_git.await_args_list] == [
            ("stash",),
            ("fetch", "origin"),
            ("checkout", "HEAD"),
            ("reset", "--hard", "origin/HEAD"),
            ("rev-parse", "HEAD"),
        ]
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pinned_ref_sequence(self, tmp_path: Path) -> None:
        sync, _ = _make_sync(tmp_path, remote="upstream", branch="main")
        sync._run_git = AsyncMock(return_value="abc123")  # type: ignore[method-assign]

        await sync.sync("abc123")

        assert [c.args for c in sync._run_git.await_args_list] == [
            ("stash",),
            ("fetch", "upstream"),
            ("checkout", "abc123"),
            ("rev-parse", "HEAD"),
        ]


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_fetch_failure_retried(self, tmp_path: Path) -> None:
        sync, sleep = _make_sync(tmp_path)
        fetch_error = GitCommandError(("fetch", "origin"), 128, "Could not resolve host")
        calls = {"fetch": 0}

        async def fake_git(*args: str) -> str:
            if args[0] == "fetch":
                calls["fetch"] += 1
                if calls["fetch"] == 1:
                    raise fetch_error
            return "cafe"

        sync._run_git = fake_git  # type: ignore[method-assign]
        with capture_logs() as logs:
            assert await sync.sync() == "cafe"

        assert calls["fetch"] == 2
        sleep.assert_awaited_once_with(5.0)
        failures = [log for log in logs if log["event"] == "sync.attempt_failed"]
        assert [f["attempt"] for f in failures] == [1]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_sync_failed(self, tmp_path: Path) -> None:
        sync, sleep = _make_sync(tmp_path, max_attempts=3, retry_delay_seconds=2.0)
        last = GitCommandError(("stash",), 1, "third")
        sync._run_git = AsyncMock(side_effect=[  # type: ignore[method-assign]
            GitCommandError(("stash",), 1, "first"),
            GitCommandError(("stash",), 1, "second"),
            last,
        ])

        with pytest.raises(SyncFailed) as exc_info:
            await sync.sync()

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error is last
        assert exc_info.value.__cause__ is last
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_git_binary_is_an_attempt_failure(self, tmp_path: Path) -> None:
        sync, _ = _make_sync(tmp_path, max_attempts=1)
        sync._run_git = AsyncMock(  # type: ignore[method-assign]
            side_effect=FileNotFoundError("git")
        )

        with pytest.raises(SyncFailed):
            await sync.sync()

    def test_max_attempts_validated(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            SourceSync(tmp_path, max_attempts=0)


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestRealGit:
    @pytest.mark.asyncio
    async def test_run_git_error_carries_exit_code(self, tmp_path: Path) -> None:
        subprocess.run(["git", "init", "-q", str(tmp_path)], check=True)
        sync = SourceSync(tmp_path)
        with pytest.raises(GitCommandError) as exc_info:
            await sync._run_git("checkout", "no-such-ref")
        assert exc_info.value.exit_code != 0
        assert exc_info.value.git_args == ("checkout", "no-such-ref")
