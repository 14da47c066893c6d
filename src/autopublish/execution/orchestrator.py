"""Resumable state machine for one publish job.

The orchestrator runs inside the host process and drives a job through

    IDLE -> WAITING_FOR_HOST_READY -> WAITING_FOR_DEPENDENCY_READY
         -> PREFLIGHT_CONSENT -> PUBLISHING -> SUCCEEDED | FAILED

The host may restart at any point (script reloads, crashes, the watchdog).
To survive that, a job execution record is written before the first side
effect and erased only on a terminal state. A new orchestrator that finds
the record resumes the saved job at WAITING_FOR_HOST_READY; nothing from
the interrupted attempt is trusted, so publishing always starts over.

A failed job is never retried as a whole. It ends in FAILED, the record is
cleared, and in unattended mode the exit reporter receives code 1.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from autopublish.core.config import PublisherConfig
from autopublish.core.errors import (
    EXIT_FAILURE,
    EXIT_SUCCESS,
    AssetMissing,
    AttemptsExhausted,
    BuilderUnavailable,
    ConsentError,
    ReadinessTimeout,
    RecordCorrupted,
    TargetSwitchFailed,
)
from autopublish.core.job import Job
from autopublish.core.logging import ExecutionContext, get_logger, set_context, with_context
from autopublish.execution.consent import ConsentCache, ConsentPreflight
from autopublish.execution.readiness import poll_until_ready
from autopublish.execution.retry import run_with_retry
from autopublish.host.protocol import Builder, HostBindings
from autopublish.state.base import SessionStore
from autopublish.state.record import RecordKeeper

_logger = get_logger("orchestrator")


class OrchestratorState(str, Enum):
    """Where a job is in the publish sequence."""

    IDLE = "idle"
    WAITING_FOR_HOST_READY = "waiting_for_host_ready"
    WAITING_FOR_DEPENDENCY_READY = "waiting_for_dependency_ready"
    PREFLIGHT_CONSENT = "preflight_consent"
    PUBLISHING = "publishing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OrchestratorState.SUCCEEDED, OrchestratorState.FAILED)


class FailureReason(str, Enum):
    """Why a job ended in FAILED."""

    HOST_UNAVAILABLE = "host_unavailable"
    BUILDER_UNAVAILABLE = "builder_unavailable"
    ASSET_MISSING = "asset_missing"
    CONSENT_FAILED = "consent_failed"
    TARGET_SWITCH_FAILED = "target_switch_failed"
    PUBLISH_EXHAUSTED = "publish_exhausted"
    UNHANDLED_ERROR = "unhandled_error"


@dataclass(frozen=True)
class OrchestratorOutcome:
    """Terminal result of one orchestrator run."""

    state: OrchestratorState
    job: Job
    exit_code: int
    error: BaseException | None = None
    failure_reason: FailureReason | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is OrchestratorState.SUCCEEDED


TransitionListener = Callable[[OrchestratorState, OrchestratorState], None]


class _JobFailed(Exception):
    """Internal signal that a stage ended the job."""

    def __init__(self, reason: FailureReason, error: BaseException) -> None:
        self.reason = reason
        self.error = error
        super().__init__(str(error))


class JobOrchestrator:
    """Drives one job from start (or resume) to a terminal state.

    One instance handles at most one job; ``start`` is idempotent.
    Collaborators come from ``HostBindings`` and are only ever called from
    the orchestrator's own task.
    """

    def __init__(
        self,
        bindings: HostBindings,
        store: SessionStore,
        config: PublisherConfig | None = None,
        *,
        asset_root: Path | None = None,
        transition_listener: TransitionListener | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            bindings: Host, builder, consent and session collaborators.
            store: Session store holding the record and the consent cache.
            config: Timing, retry and consent settings (defaults if None).
            asset_root: When set, the job's scene and thumbnail must exist
                under this directory before publishing.
            transition_listener: Called with (from_state, to_state) after
                every transition.
            sleep: Awaitable sleep for polling and retry delays.
            clock: Monotonic clock for readiness timeouts.
        """
        self.bindings = bindings
        self.config = config or PublisherConfig()
        self.records = RecordKeeper(store)
        self.preflight = ConsentPreflight(
            bindings.consent,
            ConsentCache(store),
            agreement_code=self.config.consent.agreement_code,
            agreement_version=self.config.consent.agreement_version,
            agreement_text=self.config.consent.agreement_text,
        )
        self.asset_root = asset_root
        self.transition_listener = transition_listener
        self._sleep = sleep
        self._clock = clock

        self._state = OrchestratorState.IDLE
        self._job: Job | None = None
        self._outcome: OrchestratorOutcome | None = None
        self._starting = False
        self._context: ExecutionContext | None = None
        self.history: list[OrchestratorState] = [OrchestratorState.IDLE]

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def job(self) -> Job | None:
        return self._job

    @property
    def outcome(self) -> OrchestratorOutcome | None:
        return self._outcome

    async def start(self, job: Job | None = None) -> OrchestratorOutcome | None:
        """Resume a pending job, or start ``job`` if nothing is pending.

        A pending record always wins over ``job``: an interrupted job is
        finished before a new one is accepted.

        Returns:
            The terminal outcome, or None when there was nothing to do.
            Calling again after a run returns the same outcome without
            doing any work.
        """
        if self._state is not OrchestratorState.IDLE or self._starting:
            _logger.debug("orchestrator.already_started", state=self._state.value)
            return self._outcome

        self._starting = True
        try:
            resumed = False
            try:
                record = await self.records.load()
            except RecordCorrupted as e:
                _logger.warning("orchestrator.record_corrupted", error=str(e))
                await self.records.clear()
                record = None

            if record is not None:
                if job is not None and job.model_copy(update={"commit_hash": None}) != record.job:
                    _logger.warning(
                        "orchestrator.new_job_ignored",
                        pending_job=record.job.content_id,
                        requested_job=job.content_id,
                    )
                job = record.job
                resumed = True
            elif job is None:
                _logger.debug("orchestrator.nothing_pending")
                return None

            self._job = job
            self._context = ExecutionContext(
                job_id=job.content_id,
                component="orchestrator",
                resumed=resumed,
            )
            with with_context(self._context):
                return await self._run(job, resumed)
        finally:
            self._starting = False

    async def _run(self, job: Job, resumed: bool) -> OrchestratorOutcome:
        error: BaseException | None = None
        reason: FailureReason | None = None
        try:
            if resumed:
                event = "orchestrator.resuming"
            else:
                await self.records.begin(job)
                event = "orchestrator.starting"
            _logger.info(event, job_name=job.name, platform=job.platform.value)
            await self._execute(job)
        except _JobFailed as e:
            error, reason = e.error, e.reason
        except Exception as e:
            _logger.exception("orchestrator.unhandled_error", error=str(e))
            error, reason = e, FailureReason.UNHANDLED_ERROR
        return await self._finish(job, error, reason)

    async def _execute(self, job: Job) -> None:
        self._transition(OrchestratorState.WAITING_FOR_HOST_READY)
        await self._wait_for_host()

        self._transition(OrchestratorState.WAITING_FOR_DEPENDENCY_READY)
        builder = await self._wait_for_builder()

        self._transition(OrchestratorState.PREFLIGHT_CONSENT)
        try:
            await self.preflight.ensure_consent(job.content_id)
        except ConsentError as e:
            raise _JobFailed(FailureReason.CONSENT_FAILED, e) from e

        self._transition(OrchestratorState.PUBLISHING)
        await self._publish(job, builder)

    def _transition(self, new_state: OrchestratorState) -> None:
        old_state = self._state
        self._state = new_state
        self.history.append(new_state)
        if self._context is not None:
            set_context(self._context.with_state(new_state.value))
        _logger.info(
            "orchestrator.transition",
            from_state=old_state.value,
            to_state=new_state.value,
        )
        if self.transition_listener is not None:
            self.transition_listener(old_state, new_state)

    async def _wait_for_host(self) -> None:
        readiness = self.config.readiness
        host = self.bindings.host

        def _probe() -> bool | None:
            return True if host.activate() else None

        try:
            await poll_until_ready(
                _probe,
                interval=readiness.host_poll_interval_seconds,
                timeout=readiness.host_ready_timeout_seconds,
                description="host control surface",
                clock=self._clock,
                sleep=self._sleep,
            )
        except ReadinessTimeout as e:
            raise _JobFailed(FailureReason.HOST_UNAVAILABLE, e) from e

    async def _wait_for_builder(self) -> Builder:
        readiness = self.config.readiness
        try:
            return await poll_until_ready(
                self.bindings.builders.try_get_handle,
                interval=readiness.poll_interval_seconds,
                timeout=readiness.builder_timeout_seconds,
                description="builder handle",
                clock=self._clock,
                sleep=self._sleep,
            )
        except ReadinessTimeout as e:
            error = BuilderUnavailable(
                f"Builder handle not available after {readiness.builder_timeout_seconds}s"
            )
            raise _JobFailed(FailureReason.BUILDER_UNAVAILABLE, error) from e

    async def _publish(self, job: Job, builder: Builder) -> None:
        if self.asset_root is not None:
            try:
                self._check_assets(job, self.asset_root)
            except AssetMissing as e:
                raise _JobFailed(FailureReason.ASSET_MISSING, e) from e

        try:
            await self._ensure_build_target(job)
        except TargetSwitchFailed as e:
            raise _JobFailed(FailureReason.TARGET_SWITCH_FAILED, e) from e

        user = await poll_until_ready(
            self.bindings.session.current_user,
            interval=self.config.readiness.poll_interval_seconds,
            timeout=None,
            description="login",
            clock=self._clock,
            sleep=self._sleep,
        )
        _logger.info("orchestrator.logged_in", user=str(user))

        retry = self.config.retry
        try:
            await run_with_retry(
                lambda: builder.build_and_upload(job, job.thumbnail),
                max_attempts=retry.max_attempts,
                inter_attempt_delay=retry.delay_seconds,
                heartbeat_interval=retry.heartbeat_interval_seconds,
                description="build_and_upload",
                sleep=self._sleep,
            )
        except AttemptsExhausted as e:
            raise _JobFailed(FailureReason.PUBLISH_EXHAUSTED, e) from e

    @staticmethod
    def _check_assets(job: Job, root: Path) -> None:
        for label, relative in (("scene", job.scene), ("thumbnail", job.thumbnail)):
            if not (root / relative).is_file():
                raise AssetMissing(f"{label} not found: {root / relative}")

    async def _ensure_build_target(self, job: Job) -> None:
        target = job.build_target
        host = self.bindings.host
        current = host.active_build_target()
        if current == target:
            _logger.debug("orchestrator.build_target_ok", target=target)
            return

        _logger.info("orchestrator.switching_build_target", current=current, target=target)
        try:
            switched = await host.switch_build_target(target)
        except Exception as e:
            raise TargetSwitchFailed(target, str(e)) from e
        if not switched:
            raise TargetSwitchFailed(target, "host refused the switch")

    async def _finish(
        self,
        job: Job,
        error: BaseException | None,
        reason: FailureReason | None,
    ) -> OrchestratorOutcome:
        try:
            await self.records.clear()
        except Exception as e:
            # The record survives, so the job resumes on the next start.
            _logger.exception("orchestrator.record_clear_failed", error=str(e))
            if error is None:
                error, reason = e, FailureReason.UNHANDLED_ERROR

        if error is None:
            state, exit_code = OrchestratorState.SUCCEEDED, EXIT_SUCCESS
        else:
            state, exit_code = OrchestratorState.FAILED, EXIT_FAILURE
        self._outcome = OrchestratorOutcome(
            state=state,
            job=job,
            exit_code=exit_code,
            error=error,
            failure_reason=reason,
        )
        self._transition(state)

        if error is None:
            _logger.info("orchestrator.succeeded", job_name=job.name)
        else:
            _logger.error(
                "orchestrator.failed",
                job_name=job.name,
                reason=reason.value if reason else None,
                error=str(error),
                error_type=type(error).__name__,
            )

        if self.config.unattended:
            reporter = self.bindings.exit_reporter
            if reporter is None:
                _logger.warning("orchestrator.no_exit_reporter", exit_code=exit_code)
            else:
                reporter(exit_code)
        return self._outcome


__all__ = [
    "FailureReason",
    "JobOrchestrator",
    "OrchestratorOutcome",
    "OrchestratorState",
    "TransitionListener",
]
