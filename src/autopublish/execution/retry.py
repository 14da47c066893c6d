"""Bounded retries with a liveness heartbeat.

The publish call can run silently for tens of minutes. While an attempt is
in flight a heartbeat task logs a line every ``heartbeat_interval`` seconds
so the host log keeps moving (which also keeps the driver's stall watchdog
satisfied) and so an operator can tell a slow upload from a dead one.

Example:
    await run_with_retry(
        lambda: builder.build_and_upload(job, job.thumbnail),
        max_attempts=3,
        description="build_and_upload",
    )
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from autopublish.core import constants
from autopublish.core.errors import AttemptsExhausted
from autopublish.core.logging import get_logger

_logger = get_logger("retry")

T = TypeVar("T")


@asynccontextmanager
async def heartbeat(
    description: str,
    attempt: int,
    interval: float,
) -> AsyncIterator[asyncio.Task[None]]:
    """Log ``retry.heartbeat`` every ``interval`` seconds while the block runs.

    The ticker is cancelled and awaited on every exit from the block,
    including exceptions and cancellation, so no heartbeat is ever logged
    after the attempt it belongs to has ended.
    """
    started = time.monotonic()

    async def _tick() -> None:
        while True:
            await asyncio.sleep(interval)
            _logger.info(
                "retry.heartbeat",
                description=description,
                attempt=attempt,
                elapsed_seconds=round(time.monotonic() - started, 1),
            )

    task = asyncio.create_task(_tick(), name=f"heartbeat:{description}:{attempt}")
    try:
        yield task
    finally:
        task.cancel()
        # asyncio.wait never raises the task's CancelledError, so a
        # cancellation of the caller still propagates normally.
        await asyncio.wait({task})


async def run_with_retry(
    op: Callable[[], Awaitable[T]],
    max_attempts: int = constants.PUBLISH_MAX_ATTEMPTS,
    inter_attempt_delay: float = constants.PUBLISH_RETRY_DELAY_SECONDS,
    heartbeat_interval: float = constants.HEARTBEAT_INTERVAL_SECONDS,
    description: str = "operation",
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``op`` up to ``max_attempts`` times with a fixed delay between tries.

    Any ``Exception`` from ``op`` counts as a failed attempt. Cancellation is
    not an attempt failure and propagates immediately.

    Args:
        op: Zero-argument coroutine function performing one attempt.
        max_attempts: Total attempts, including the first.
        inter_attempt_delay: Seconds to wait after a failed attempt.
        heartbeat_interval: Seconds between liveness lines during an attempt.
        description: Name of the operation for logs and errors.
        sleep: Awaitable sleep for the inter-attempt delay (injectable for tests).

    Returns:
        The result of the first successful attempt.

    Raises:
        AttemptsExhausted: If every attempt failed; wraps the last error.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        _logger.info(
            "retry.attempt_started",
            description=description,
            attempt=attempt,
            max_attempts=max_attempts,
        )
        try:
            async with heartbeat(description, attempt, heartbeat_interval):
                result = await op()
        except Exception as e:
            last_error = e
            _logger.error(
                "retry.attempt_failed",
                description=description,
                attempt=attempt,
                max_attempts=max_attempts,
                error=str(e),
                error_type=type(e).__name__,
            )
            if attempt < max_attempts:
                _logger.info(
                    "retry.waiting",
                    description=description,
                    delay_seconds=inter_attempt_delay,
                )
                await sleep(inter_attempt_delay)
            continue

        _logger.info("retry.succeeded", description=description, attempt=attempt)
        return result

    assert last_error is not None
    raise AttemptsExhausted(description, max_attempts, last_error) from last_error
