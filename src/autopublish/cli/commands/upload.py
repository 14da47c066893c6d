"""``autopublish upload``: the in-host entry point.

Runs the job orchestrator against the host integration named by
``bindings``. If an earlier run was interrupted, that job is resumed and
the arguments given here are ignored.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path

import typer

from autopublish.core.errors import EXIT_FAILURE, BindingsError
from autopublish.core.job import Job
from autopublish.execution.orchestrator import JobOrchestrator
from autopublish.host.bindings import load_bindings

from ..helpers import DEFAULT_CONFIG_PATH, ErrorMessages, create_session_store, load_config
from ..output import console, outcome_panel


def upload(
    ctx: typer.Context,
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        help="Path to the YAML configuration file",
    ),
    bindings_spec: str | None = typer.Option(
        None,
        "--bindings",
        "-b",
        help="Host integration as 'package.module:factory' (overrides config)",
    ),
    resume_only: bool = typer.Option(
        False,
        "--resume-only",
        help="Only resume an interrupted job; do nothing if none is pending",
    ),
    interactive: bool = typer.Option(
        False,
        "--interactive",
        help="Log the outcome without reporting an exit code to the host",
    ),
    check_assets: bool = typer.Option(
        False,
        "--check-assets",
        help="Fail early if the scene or thumbnail is missing from the project",
    ),
) -> None:
    """Publish one job from inside the host (resuming if interrupted)."""
    config = load_config(config_file, console)
    if interactive:
        config = config.model_copy(update={"unattended": False})

    spec = bindings_spec or config.bindings
    if not spec:
        console.print(f"[red]{ErrorMessages.NO_BINDINGS}[/red]")
        raise typer.Exit(EXIT_FAILURE)
    try:
        bindings = load_bindings(spec, config)
    except BindingsError as e:
        console.print(f"[red]{ErrorMessages.BINDINGS_ERROR}:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE) from None

    reported: list[int] = []
    if bindings.exit_reporter is None:
        bindings = replace(bindings, exit_reporter=reported.append)

    job = None if resume_only else Job.from_args(ctx.args, config.job.to_job())
    orchestrator = JobOrchestrator(
        bindings,
        create_session_store(config),
        config,
        asset_root=config.host.project_path if check_assets else None,
    )
    outcome = asyncio.run(orchestrator.start(job))

    if outcome is None:
        console.print("[dim]No interrupted job to resume.[/dim]")
        return
    console.print(outcome_panel(outcome))
    if config.unattended and outcome.exit_code != 0:
        raise typer.Exit(outcome.exit_code)
