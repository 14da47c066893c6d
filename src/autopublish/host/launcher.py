"""Launching the host application for one job.

The driver side of a job: drop the job-parameter glue into the project so
the host can find the upload entry point, build the host command line, and
run it under the process supervisor.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from autopublish.core.config import HostConfig, PublisherConfig
from autopublish.core.job import Job
from autopublish.core.logging import get_logger
from autopublish.host.supervisor import ProcessSupervisor, SupervisedExit

_logger = get_logger("host.launcher")


def install_glue(source: Path | None, project_path: Path, glue_dir: Path) -> Path | None:
    """Copy the glue file into ``project_path / glue_dir``.

    A failed copy is logged and otherwise ignored: a glue file left over
    from an earlier job is usually still good enough to run this one.

    Returns:
        The installed path, or None when nothing was installed.
    """
    if source is None:
        return None
    target_dir = project_path / glue_dir
    target = target_dir / source.name
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
    except OSError as e:
        _logger.warning(
            "host.glue_install_failed",
            source=str(source),
            target=str(target),
            error=str(e),
        )
        return None
    _logger.debug("host.glue_installed", target=str(target))
    return target


def build_host_command(job: Job, host: HostConfig) -> list[str]:
    """Full host command line: executable, host flags, then ``--`` job tokens."""
    return [
        str(host.executable),
        *host.extra_args,
        "-projectPath",
        str(host.project_path),
        "-executeMethod",
        host.execute_method,
        "-logFile",
        str(host.resolved_log_path()),
        "--",
        *job.to_args(include_commit=False),
    ]


async def run_host_job(
    job: Job,
    config: PublisherConfig,
    supervisor: ProcessSupervisor | None = None,
) -> SupervisedExit:
    """Install glue and run the host for ``job`` under the stall watchdog.

    The source tree is expected to be synced already.
    """
    supervisor = supervisor or ProcessSupervisor()
    host = config.host
    watchdog = config.watchdog

    install_glue(host.glue_source, host.project_path, host.glue_dir)
    command = build_host_command(job, host)

    _logger.info(
        "host.launching",
        job_name=job.name,
        content_id=job.content_id,
        platform=job.platform.value,
    )
    result = await supervisor.run_supervised(
        command[0],
        command[1:],
        host.resolved_log_path(),
        idle_threshold=watchdog.idle_threshold_seconds,
        poll_interval=watchdog.poll_interval_seconds,
        busy_patterns=watchdog.busy_patterns,
        cwd=host.project_path,
        busy_scan_bytes=watchdog.busy_scan_bytes,
        watchdog=watchdog.enabled,
    )
    _logger.info(
        "host.exited",
        job_name=job.name,
        returncode=result.returncode,
        exit_signal=result.exit_signal,
        stalled=result.stalled,
        duration_seconds=result.duration_seconds,
    )
    return result


__all__ = ["build_host_command", "install_glue", "run_host_job"]
