"""Tests for the readiness poller."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from autopublish.core.errors import ReadinessTimeout
from autopublish.execution.readiness import poll_until_ready


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _probe_returning(*results):
    calls = {"n": 0}

    def probe():
        value = results[min(calls["n"], len(results) - 1)]
        calls["n"] += 1
        return value

    probe.calls = calls  # type: ignore[attr-defined]
    return probe


class TestPollUntilReady:
    @pytest.mark.asyncio
    async def test_ready_immediately(self) -> None:
        clock = FakeClock()
        result = await poll_until_ready(
            lambda: "handle", interval=0.5, timeout=30, clock=clock, sleep=clock.sleep
        )
        assert result == "handle"
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_ready_on_third_probe(self) -> None:
        clock = FakeClock()
        probe = _probe_returning(None, None, "handle")
        result = await poll_until_ready(
            probe, interval=0.5, timeout=30, clock=clock, sleep=clock.sleep
        )
        assert result == "handle"
        assert probe.calls["n"] == 3
        assert clock.sleeps == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_async_probe(self) -> None:
        clock = FakeClock()
        results = iter([None, 42])

        async def probe():
            return next(results)

        assert await poll_until_ready(probe, 1.0, clock=clock, sleep=clock.sleep) == 42

    @pytest.mark.asyncio
    async def test_falsy_non_none_value_counts_as_ready(self) -> None:
        clock = FakeClock()
        assert await poll_until_ready(lambda: 0, 1.0, clock=clock, sleep=clock.sleep) == 0

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        clock = FakeClock()
        probe = _probe_returning(None)
        with capture_logs() as logs:
            with pytest.raises(ReadinessTimeout) as exc_info:
                await poll_until_ready(
                    probe,
                    interval=0.5,
                    timeout=2.0,
                    description="builder handle",
                    clock=clock,
                    sleep=clock.sleep,
                )
        assert exc_info.value.description == "builder handle"
        assert exc_info.value.timeout == 2.0
        assert clock.now == pytest.approx(2.0)
        assert probe.calls["n"] == 5
        assert any(log["event"] == "readiness.timeout" for log in logs)

    @pytest.mark.asyncio
    async def test_last_sleep_clipped_to_deadline(self) -> None:
        clock = FakeClock()
        with pytest.raises(ReadinessTimeout):
            await poll_until_ready(
                _probe_returning(None), 1.0, timeout=2.5, clock=clock, sleep=clock.sleep
            )
        assert clock.sleeps == [1.0, 1.0, 0.5]

    @pytest.mark.asyncio
    async def test_zero_timeout_still_probes_once(self) -> None:
        clock = FakeClock()
        assert await poll_until_ready(
            lambda: "x", 1.0, timeout=0, clock=clock, sleep=clock.sleep
        ) == "x"
        with pytest.raises(ReadinessTimeout):
            await poll_until_ready(lambda: None, 1.0, timeout=0, clock=clock, sleep=clock.sleep)

    @pytest.mark.asyncio
    async def test_no_timeout_waits_indefinitely(self) -> None:
        clock = FakeClock()
        probe = _probe_returning(*([None] * 500), "user")
        assert await poll_until_ready(
            probe, 0.5, timeout=None, clock=clock, sleep=clock.sleep
        ) == "user"
        assert len(clock.sleeps) == 500
