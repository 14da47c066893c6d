"""``autopublish status``: show the pending job and consent cache."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer

from autopublish.core.errors import RecordCorrupted
from autopublish.execution.consent import ConsentCache
from autopublish.state import JobExecutionRecord, RecordKeeper, SessionStore

from ..helpers import DEFAULT_CONFIG_PATH, create_session_store, load_config
from ..output import console, job_table


async def _read_status(store: SessionStore) -> tuple[JobExecutionRecord | None, list[str]]:
    record = await RecordKeeper(store).load()
    consented = await ConsentCache(store).entries()
    return record, consented


def status(
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        help="Path to the YAML configuration file",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Show whether a job is pending resume."""
    config = load_config(config_file, console)
    store = create_session_store(config)
    try:
        record, consented = asyncio.run(_read_status(store))
    except RecordCorrupted as e:
        console.print(f"[red]Pending record is corrupted:[/red] {e}")
        console.print("Run [bold]autopublish clear[/bold] to drop it.")
        raise typer.Exit(1) from None

    if json_output:
        payload = {
            "pending": record is not None,
            "job": record.job.model_dump(mode="json", by_alias=True) if record else None,
            "consented_content_ids": consented,
        }
        console.print(json.dumps(payload, indent=2))
        return

    if record is None:
        console.print("[green]No job pending.[/green]")
    else:
        console.print("[yellow]A job was interrupted and will resume on next upload.[/yellow]")
        console.print(job_table(record.job, title="Pending job"))
    if consented:
        console.print(f"Consent recorded this session for: {', '.join(consented)}")
