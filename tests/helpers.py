"""Shared test doubles for autopublish tests.

The fakes implement the host protocols with plain counters so tests can
script readiness sequences and failures. ``make_bindings`` and
``make_failing_bindings`` double as bindings factories for the CLI
(``tests.helpers:make_bindings``).
"""

from __future__ import annotations

import asyncio
from typing import Any

from autopublish.core.config import PublisherConfig
from autopublish.core.job import Job
from autopublish.host.protocol import ConsentRecord, HostBindings


class FakeClock:
    """Monotonic clock advanced only by the fake sleep.

    The sleep still yields to the event loop so long polls can be cancelled.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeHost:
    def __init__(
        self,
        ready_after: int = 0,
        target: str = "StandaloneWindows64",
        switch_result: bool = True,
        switch_error: Exception | None = None,
    ) -> None:
        self.ready_after = ready_after
        self.target = target
        self.switch_result = switch_result
        self.switch_error = switch_error
        self.activations = 0
        self.switch_requests: list[str] = []

    def activate(self) -> bool:
        self.activations += 1
        return self.activations > self.ready_after

    def active_build_target(self) -> str:
        return self.target

    async def switch_build_target(self, target: str) -> bool:
        self.switch_requests.append(target)
        if self.switch_error is not None:
            raise self.switch_error
        if self.switch_result:
            self.target = target
        return self.switch_result


class FakeBuilder:
    """Fails the first ``failures`` uploads."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[tuple[Job, str]] = []

    async def build_and_upload(self, job: Job, thumbnail: str) -> None:
        self.calls.append((job, thumbnail))
        if len(self.calls) <= self.failures:
            raise RuntimeError(f"upload failed ({len(self.calls)})")


class FakeBuilders:
    """Hands out the builder after ``available_after`` empty probes; None means never."""

    def __init__(self, builder: FakeBuilder, available_after: int | None = 0) -> None:
        self.builder = builder
        self.available_after = available_after
        self.probes = 0

    def try_get_handle(self) -> FakeBuilder | None:
        self.probes += 1
        if self.available_after is None or self.probes <= self.available_after:
            return None
        return self.builder


class FakeSession:
    def __init__(self, user: str = "tester", logged_in_after: int = 0) -> None:
        self.user = user
        self.logged_in_after = logged_in_after
        self.checks = 0

    def current_user(self) -> Any | None:
        self.checks += 1
        return self.user if self.checks > self.logged_in_after else None


class FakeConsent:
    def __init__(
        self,
        agreed: bool = False,
        echo_content_id: str | None = None,
        error: Exception | None = None,
    ) -> None:
        self.agreed = agreed
        self.echo_content_id = echo_content_id
        self.error = error
        self.checks: list[str] = []
        self.recorded: list[str] = []

    async def check_consent(self, agreement_code: str, content_id: str, version: int) -> bool:
        self.checks.append(content_id)
        if self.error is not None:
            raise self.error
        return self.agreed

    async def record_consent(
        self,
        agreement_code: str,
        agreement_text: str,
        content_id: str,
        version: int,
    ) -> ConsentRecord:
        self.recorded.append(content_id)
        return ConsentRecord(
            content_id=self.echo_content_id or content_id,
            version=version,
            agreement_code=agreement_code,
        )


def make_bindings(
    config: PublisherConfig | None = None,
    *,
    host: FakeHost | None = None,
    builder: FakeBuilder | None = None,
    builders: FakeBuilders | None = None,
    consent: FakeConsent | None = None,
    session: FakeSession | None = None,
    exit_reporter: Any = None,
) -> HostBindings:
    """Bindings where everything is ready immediately unless overridden."""
    builder = builder or FakeBuilder()
    return HostBindings(
        host=host or FakeHost(),
        builders=builders or FakeBuilders(builder),
        consent=consent or FakeConsent(),
        session=session or FakeSession(),
        exit_reporter=exit_reporter,
    )


def make_failing_bindings(config: PublisherConfig | None = None) -> HostBindings:
    """Bindings whose every upload attempt fails."""
    return make_bindings(config, builder=FakeBuilder(failures=1000))


def make_broken_bindings(config: PublisherConfig | None = None) -> HostBindings:
    raise RuntimeError("host SDK not loaded")


def make_wrong_type(config: PublisherConfig | None = None) -> dict[str, str]:
    return {"host": "nope"}


def make_incomplete_bindings(config: PublisherConfig | None = None) -> HostBindings:
    bindings = make_bindings(config)
    bindings.session = object()  # type: ignore[assignment]
    return bindings


NOT_CALLABLE = "not a factory"
