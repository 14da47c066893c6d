"""Pytest fixtures for autopublish tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from autopublish.core.job import Job, Platform
from autopublish.core.logging import clear_context
from autopublish.state import InMemorySessionStore


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test."""
    import autopublish.cli.helpers as helpers

    helpers.reset_logging_state()
    structlog.reset_defaults()
    clear_context()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    helpers.reset_logging_state()
    clear_context()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)


@pytest.fixture
def job() -> Job:
    """The reference job used across scenario tests."""
    return Job(
        scene="a.scene",
        thumbnail="a.png",
        name="N",
        id="wrld_1",
        platform=Platform.PC,
    )


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path
