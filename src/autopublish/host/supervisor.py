"""Supervised host process with a stall watchdog.

Launches the host with its output appended to a log file and watches that
file for growth. Output cadence, not total runtime, is the health signal:
a host that keeps writing may run for hours, while one that goes quiet for
longer than the idle threshold is killed, unless the tail of its log shows
a phase known to be slow and silent (shader compilation and the like).

Security Note: Uses asyncio.create_subprocess_exec(), arguments are passed
as a list and never interpolated into a shell command.

Example:
    supervisor = ProcessSupervisor()
    result = await supervisor.run_supervised(
        "/opt/Editor/Unity",
        ["-batchmode", "-projectPath", "/work/MyWorld"],
        Path("host_upload.log"),
        idle_threshold=900,
        poll_interval=30,
        busy_patterns=["Compiling Shaders"],
    )
    result.raise_for_status()
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

import psutil

from autopublish.core import constants
from autopublish.core.errors import HostProcessError, StalledAndKilled
from autopublish.core.logging import get_logger

_logger = get_logger("supervisor")

_SIGKILL = 9


@dataclass
class SupervisedExit:
    """How a supervised process ended."""

    returncode: int | None
    exit_signal: int | None
    stalled: bool
    idle_seconds: float
    duration_seconds: float
    idle_threshold: float = 0.0

    @property
    def success(self) -> bool:
        return not self.stalled and self.returncode == 0

    def raise_for_status(self) -> None:
        """Raise if the process did not exit cleanly.

        Raises:
            StalledAndKilled: If the watchdog terminated the process.
            HostProcessError: For any other non-zero or signalled exit.
        """
        if self.stalled:
            raise StalledAndKilled(self.idle_seconds, self.idle_threshold)
        if self.returncode != 0:
            raise HostProcessError(self.returncode, self.exit_signal)


@dataclass
class _WatchState:
    last_progress: float
    last_size: int
    stalled: bool = False
    idle_seconds: float = 0.0


def compile_busy_patterns(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    """Compile busy-but-healthy markers as case-insensitive regexes."""
    return [re.compile(p, re.IGNORECASE) for p in patterns]


def _log_size(log_path: Path) -> int:
    try:
        return log_path.stat().st_size
    except OSError:
        return -1


def _read_tail(log_path: Path, max_bytes: int) -> str:
    try:
        with log_path.open("rb") as f:
            f.seek(0, 2)
            size = f.tell()
            f.seek(max(0, size - max_bytes))
            return f.read().decode("utf-8", errors="replace")
    except OSError:
        return ""


class ProcessSupervisor:
    """Runs one external process at a time under a stall watchdog.

    The watchdog is the only thing allowed to terminate the process. It
    kills the whole tree (the host's own helpers first, then the host) and
    never lets a failed kill hold up the result.
    """

    def __init__(self, kill_wait_seconds: float = constants.KILL_WAIT_SECONDS) -> None:
        self.kill_wait_seconds = kill_wait_seconds

    async def run_supervised(
        self,
        executable: str | Path,
        args: Sequence[str],
        log_path: Path,
        idle_threshold: float = constants.WATCHDOG_IDLE_THRESHOLD_SECONDS,
        poll_interval: float = constants.WATCHDOG_POLL_INTERVAL_SECONDS,
        busy_patterns: Iterable[str] = constants.DEFAULT_BUSY_PATTERNS,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        busy_scan_bytes: int = constants.BUSY_SCAN_TAIL_BYTES,
        watchdog: bool = True,
    ) -> SupervisedExit:
        """Launch ``executable`` and wait for it under the watchdog.

        Args:
            executable: Program to run.
            args: Arguments after the program name.
            log_path: File the process output is appended to. Created if
                missing, never truncated.
            idle_threshold: Seconds without log growth before the process
                is presumed hung.
            poll_interval: Seconds between log checks.
            busy_patterns: Regexes that mark a quiet but healthy phase when
                found in the tail of the log.
            cwd: Working directory for the process.
            env: Environment (defaults to the current one).
            busy_scan_bytes: How much of the log tail to scan for patterns.
            watchdog: Disable to only launch, log and wait.

        Returns:
            The real exit status, or a killed status flagged ``stalled``.
        """
        if poll_interval <= 0 or idle_threshold <= 0:
            raise ValueError("poll_interval and idle_threshold must be positive")
        compiled = compile_busy_patterns(busy_patterns)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        start = time.monotonic()

        with log_path.open("ab") as log_file:
            process = await asyncio.create_subprocess_exec(
                str(executable),
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=log_file,
                stderr=asyncio.subprocess.STDOUT,
                cwd=cwd,
                env=env,
                start_new_session=True,
            )
            _logger.info(
                "process.started",
                pid=process.pid,
                executable=str(executable),
                args_count=len(args),
                log_path=str(log_path),
                watchdog=watchdog,
            )

            state = _WatchState(last_progress=time.monotonic(), last_size=_log_size(log_path))
            wait_task = asyncio.create_task(process.wait(), name=f"wait:{process.pid}")
            watch_task: asyncio.Task[None] | None = None
            if watchdog:
                watch_task = asyncio.create_task(
                    self._watch(
                        process,
                        log_path,
                        state,
                        idle_threshold,
                        poll_interval,
                        compiled,
                        busy_scan_bytes,
                    ),
                    name=f"watchdog:{process.pid}",
                )

            try:
                pending = {wait_task} if watch_task is None else {wait_task, watch_task}
                await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                if not wait_task.done():
                    assert watch_task is not None
                    # A watchdog that ended on its own either killed the
                    # process or crashed; surface a crash here.
                    watch_task.result()
                    try:
                        await asyncio.wait_for(
                            asyncio.shield(wait_task), timeout=self.kill_wait_seconds
                        )
                    except TimeoutError:
                        _logger.error(
                            "watchdog.kill_failed",
                            pid=process.pid,
                            reason="process still running after kill",
                        )
            finally:
                if watch_task is not None:
                    watch_task.cancel()
                    await asyncio.wait({watch_task})
                if process.returncode is None and not state.stalled:
                    _logger.warning("process.killing_orphan", pid=process.pid)
                    await self._kill_tree(process)
                if not wait_task.done():
                    wait_task.cancel()
                    await asyncio.wait({wait_task})

        duration = time.monotonic() - start
        returncode = process.returncode
        exit_signal = None
        if returncode is not None and returncode < 0:
            exit_signal = -returncode
            returncode = None
        elif returncode is None and state.stalled:
            exit_signal = _SIGKILL

        result = SupervisedExit(
            returncode=returncode,
            exit_signal=exit_signal,
            stalled=state.stalled,
            idle_seconds=round(state.idle_seconds, 1),
            duration_seconds=round(duration, 3),
            idle_threshold=idle_threshold,
        )
        _logger.info(
            "process.exited",
            pid=process.pid,
            returncode=result.returncode,
            exit_signal=result.exit_signal,
            stalled=result.stalled,
            duration_seconds=result.duration_seconds,
        )
        return result

    async def _watch(
        self,
        process: asyncio.subprocess.Process,
        log_path: Path,
        state: _WatchState,
        idle_threshold: float,
        poll_interval: float,
        busy_patterns: list[re.Pattern[str]],
        busy_scan_bytes: int,
    ) -> None:
        while process.returncode is None:
            await asyncio.sleep(poll_interval)
            if process.returncode is not None:
                return

            now = time.monotonic()
            size = _log_size(log_path)
            if size != state.last_size:
                state.last_size = size
                state.last_progress = now
                continue

            idle = now - state.last_progress
            if idle <= idle_threshold:
                continue

            tail = _read_tail(log_path, busy_scan_bytes)
            marker = next((p.pattern for p in busy_patterns if p.search(tail)), None)
            if marker is not None:
                _logger.info(
                    "watchdog.busy_but_healthy",
                    pid=process.pid,
                    idle_seconds=round(idle, 1),
                    pattern=marker,
                )
                state.last_progress = now
                continue

            _logger.warning(
                "watchdog.stalled",
                pid=process.pid,
                idle_seconds=round(idle, 1),
                idle_threshold=idle_threshold,
            )
            state.stalled = True
            state.idle_seconds = idle
            await self._kill_tree(process)
            return

    async def _kill_tree(self, process: asyncio.subprocess.Process) -> None:
        """Kill the process and all of its descendants, best effort.

        Descendants go through psutil. The direct child is killed through
        its asyncio handle so the event loop still reaps it and sees the
        real exit status.
        """
        pid = process.pid
        try:
            children = psutil.Process(pid).children(recursive=True)
        except psutil.Error as e:
            _logger.warning("watchdog.children_unavailable", pid=pid, error=str(e))
            children = []

        for child in children:
            try:
                child.kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.Error as e:
                _logger.error("watchdog.kill_failed", pid=child.pid, error=str(e))

        try:
            process.kill()
        except ProcessLookupError:
            pass
        except OSError as e:
            _logger.error("watchdog.kill_failed", pid=pid, error=str(e))

        if children:
            _, alive = await asyncio.to_thread(
                psutil.wait_procs, children, timeout=self.kill_wait_seconds
            )
            if alive:
                _logger.error(
                    "watchdog.kill_failed",
                    pid=pid,
                    surviving_pids=[p.pid for p in alive],
                )
        _logger.info("watchdog.killed", pid=pid, children=len(children))


__all__ = ["ProcessSupervisor", "SupervisedExit", "compile_busy_patterns"]
