"""In-host execution: readiness polling, consent, retries and the orchestrator."""

from autopublish.execution.consent import ConsentCache, ConsentPreflight
from autopublish.execution.orchestrator import (
    FailureReason,
    JobOrchestrator,
    OrchestratorOutcome,
    OrchestratorState,
)
from autopublish.execution.readiness import poll_until_ready
from autopublish.execution.retry import run_with_retry

__all__ = [
    "ConsentCache",
    "ConsentPreflight",
    "FailureReason",
    "JobOrchestrator",
    "OrchestratorOutcome",
    "OrchestratorState",
    "poll_until_ready",
    "run_with_retry",
]
