"""Source tree synchronization via git.

Brings the project checkout to a requested reference before the host is
launched. The whole stash/fetch/checkout sequence is retried a fixed number
of times with a fixed delay; network hiccups on fetch are the usual cause of
a failed attempt.

Example:
    sync = SourceSync(Path("/work/MyWorld"))
    await sync.sync()                       # reset to origin/HEAD
    await sync.sync("3f2a9c1")              # pin an exact commit
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

from autopublish.core import constants
from autopublish.core.errors import GitCommandError, SyncFailed
from autopublish.core.logging import get_logger

_logger = get_logger("sync.git")


class SourceSync:
    """Synchronizes a git working tree to a remote reference."""

    def __init__(
        self,
        repo_path: Path,
        remote: str = constants.DEFAULT_GIT_REMOTE,
        branch: str = constants.DEFAULT_GIT_BRANCH,
        max_attempts: int = constants.SYNC_MAX_ATTEMPTS,
        retry_delay_seconds: float = constants.SYNC_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            repo_path: Root of the working tree.
            remote: Remote to fetch from.
            branch: Branch to reset to when no reference is pinned.
            max_attempts: Attempts at the full sequence before failing.
            retry_delay_seconds: Fixed wait between attempts.
            sleep: Awaitable sleep used between attempts (injectable for tests).
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.repo_path = repo_path.resolve()
        self.remote = remote
        self.branch = branch
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep

    async def _run_git(self, *args: str) -> str:
        """Run one git command in the working tree.

        Uses create_subprocess_exec, so arguments are never shell-interpolated.

        Returns:
            Stripped stdout.

        Raises:
            GitCommandError: If git exits non-zero.
        """
        _logger.debug("git_command", args=args, cwd=str(self.repo_path))
        proc = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=self.repo_path,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout_bytes, stderr_bytes = await proc.communicate()
        stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()
        exit_code = proc.returncode or 0
        if exit_code != 0:
            _logger.debug("git_command_failed", args=args, exit_code=exit_code, stderr=stderr[:500])
            raise GitCommandError(args, exit_code, stderr)
        return stdout

    async def _sync_once(self, ref: str | None) -> None:
        await self._run_git("stash")
        await self._run_git("fetch", self.remote)
        if ref:
            await self._run_git("checkout", ref)
        else:
            await self._run_git("checkout", self.branch)
            await self._run_git("reset", "--hard", f"{self.remote}/{self.branch}")

    async def sync(self, ref: str | None = None) -> str:
        """Bring the tree to ``ref``, or to the remote branch tip when None.

        Local modifications are stashed first. The working tree may be left
        in any intermediate state if every attempt fails.

        Returns:
            The commit now checked out.

        Raises:
            SyncFailed: After ``max_attempts`` failed attempts, carrying the
                last underlying error.
        """
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            _logger.info(
                "sync.attempt",
                attempt=attempt,
                max_attempts=self.max_attempts,
                remote=self.remote,
                ref=ref or f"{self.remote}/{self.branch}",
            )
            try:
                await self._sync_once(ref)
                head = await self.head()
            except (GitCommandError, OSError) as e:
                last_error = e
                _logger.error("sync.attempt_failed", attempt=attempt, error=str(e))
                if attempt < self.max_attempts:
                    await self._sleep(self.retry_delay_seconds)
                continue
            _logger.info("sync.completed", attempt=attempt, head=head)
            return head

        assert last_error is not None
        raise SyncFailed(self.max_attempts, last_error) from last_error

    async def head(self) -> str:
        """Return the commit SHA currently checked out."""
        return await self._run_git("rev-parse", "HEAD")
