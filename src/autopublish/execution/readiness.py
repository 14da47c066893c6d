"""Fixed-interval polling for dependencies that become ready on their own.

Used for the builder handle (bounded, 30s by default) and for the user's
login session (unbounded, since login is driven by a person).
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from autopublish.core.errors import ReadinessTimeout
from autopublish.core.logging import get_logger

_logger = get_logger("readiness")

T = TypeVar("T")


async def poll_until_ready(
    probe: Callable[[], T | None | Awaitable[T | None]],
    interval: float,
    timeout: float | None = None,
    description: str = "dependency",
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``probe`` every ``interval`` seconds until it returns a value.

    The probe may be a plain or async callable and should be cheap and
    idempotent. ``None`` means "not ready yet"; any other value is returned.
    There is no backoff: readiness of these dependencies does not depend on
    how often they are asked.

    Args:
        probe: Readiness check.
        interval: Seconds between probes.
        timeout: Give up after this many seconds. None waits indefinitely.
        description: What is being waited for, for logs and errors.
        clock: Monotonic clock (injectable for tests).
        sleep: Awaitable sleep (injectable for tests).

    Returns:
        The first non-None probe result.

    Raises:
        ReadinessTimeout: If ``timeout`` elapsed without a result.
    """
    start = clock()
    attempts = 0
    while True:
        attempts += 1
        result = probe()
        if inspect.isawaitable(result):
            result = await result
        elapsed = clock() - start
        if result is not None:
            _logger.info(
                "readiness.ready",
                description=description,
                attempts=attempts,
                elapsed_seconds=round(elapsed, 3),
            )
            return result

        if timeout is not None and elapsed >= timeout:
            _logger.error(
                "readiness.timeout",
                description=description,
                attempts=attempts,
                timeout_seconds=timeout,
            )
            raise ReadinessTimeout(description, timeout, elapsed)

        _logger.debug("readiness.waiting", description=description, attempt=attempts)
        delay = interval if timeout is None else min(interval, timeout - elapsed)
        await sleep(delay)
