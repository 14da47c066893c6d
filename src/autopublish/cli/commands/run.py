"""``autopublish run``: the driver side of a job.

Syncs the project checkout, then launches the host under the stall
watchdog. Job fields come from the config's ``job`` section, overridden by
``--key=value`` tokens after the options:

    autopublish run -c worker.yaml --scene=Assets/Scenes/a.unity --id=wrld_1
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from autopublish.core.config import PublisherConfig
from autopublish.core.errors import EXIT_FAILURE, EXIT_SUCCESS, PublisherError
from autopublish.core.job import Job
from autopublish.core.logging import ExecutionContext, get_logger, with_context
from autopublish.execution.consent import ConsentCache
from autopublish.host.launcher import run_host_job
from autopublish.host.supervisor import SupervisedExit
from autopublish.sync import SourceSync

from ..helpers import DEFAULT_CONFIG_PATH, create_session_store, load_config
from ..output import console, host_exit_panel, job_table

_logger = get_logger("cli.run")


async def _run_job(job: Job, config: PublisherConfig, sync: bool) -> SupervisedExit:
    with with_context(ExecutionContext(job_id=job.content_id, component="driver")):
        if sync and config.sync.enabled:
            source = SourceSync(
                config.host.project_path,
                remote=config.sync.remote,
                branch=config.sync.branch,
                max_attempts=config.sync.max_attempts,
                retry_delay_seconds=config.sync.retry_delay_seconds,
            )
            await source.sync(job.commit_hash)
        else:
            _logger.info("sync.skipped")
        # Each launched host starts a new consent session.
        await ConsentCache(create_session_store(config)).reset()
        return await run_host_job(job, config)


def run(
    ctx: typer.Context,
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        help="Path to the YAML configuration file",
    ),
    no_sync: bool = typer.Option(
        False,
        "--no-sync",
        help="Skip source sync and launch the host on the tree as it is",
    ),
) -> None:
    """Sync the project and run the host for one job under the watchdog."""
    config = load_config(config_file, console)
    job = Job.from_args(ctx.args, config.job.to_job())
    console.print(job_table(job))

    try:
        result = asyncio.run(_run_job(job, config, sync=not no_sync))
    except PublisherError as e:
        console.print(f"[red]Job failed:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE) from None

    console.print(host_exit_panel(result))
    raise typer.Exit(EXIT_SUCCESS if result.success else EXIT_FAILURE)
