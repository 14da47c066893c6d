"""``autopublish clear``: drop the pending record so nothing resumes."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from autopublish.core import constants
from autopublish.core.logging import get_logger
from autopublish.state import RecordKeeper, SessionStore

from ..helpers import DEFAULT_CONFIG_PATH, create_session_store, load_config
from ..output import console

_logger = get_logger("cli.clear")


async def _clear(store: SessionStore, consent: bool) -> bool:
    keeper = RecordKeeper(store)
    had_record = await keeper.exists()
    await keeper.clear()
    if consent:
        await store.remove(constants.SLOT_CONSENT_CONTENT_LIST)
    return had_record


def clear(
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        help="Path to the YAML configuration file",
    ),
    consent: bool = typer.Option(
        False,
        "--consent",
        help="Also forget content ids with recorded consent",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation",
    ),
) -> None:
    """Forget an interrupted job instead of resuming it."""
    config = load_config(config_file, console)
    if not yes:
        typer.confirm("Drop the pending job record?", abort=True)

    had_record = asyncio.run(_clear(create_session_store(config), consent))
    _logger.info("cli.cleared", had_record=had_record, consent=consent)
    if had_record:
        console.print("[green]Pending job cleared.[/green]")
    else:
        console.print("[dim]No job was pending.[/dim]")
