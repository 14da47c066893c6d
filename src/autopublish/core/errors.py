"""Exception hierarchy for autopublish.

All project exceptions inherit from PublisherError, enabling callers
to catch broad (PublisherError) or narrow (e.g., ConsentRejected).
The hierarchy is deliberately flat: one level under PublisherError,
with ConsentError grouping the consent preflight failures.
"""

from __future__ import annotations

EXIT_SUCCESS = 0
"""Process exit code for a job that reached SUCCEEDED."""

EXIT_FAILURE = 1
"""Process exit code for any failed job or unhandled error."""


class PublisherError(Exception):
    """Base exception for all autopublish errors."""


class ConfigError(PublisherError):
    """Raised when a configuration file cannot be read or validated."""


class GitCommandError(PublisherError):
    """Raised when a single git invocation exits non-zero."""

    def __init__(self, args: tuple[str, ...], exit_code: int, stderr: str) -> None:
        self.git_args = args
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            f"git {' '.join(args)} failed with exit code {exit_code}: {stderr.strip()}"
        )


class SyncFailed(PublisherError):
    """Raised when source sync is still failing after every attempt.

    The last underlying error is available as ``last_error`` and is
    also chained as ``__cause__``.
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Source sync failed after {attempts} attempts: {last_error}")


class ReadinessTimeout(PublisherError):
    """Raised when a readiness probe never succeeded within its timeout."""

    def __init__(self, description: str, timeout: float, elapsed: float) -> None:
        self.description = description
        self.timeout = timeout
        self.elapsed = elapsed
        super().__init__(
            f"Timed out waiting for {description} after {elapsed:.1f}s (limit: {timeout}s)"
        )


class BuilderUnavailable(PublisherError):
    """Raised when the host's builder handle never became available."""


class ConsentError(PublisherError):
    """Base class for consent preflight failures."""


class InvalidContentId(ConsentError):
    """Raised when consent is requested for an empty content identifier."""


class ConsentServiceUnavailable(ConsentError):
    """Raised when the remote consent service call itself failed."""


class ConsentRejected(ConsentError):
    """Raised when the consent record response does not echo the request.

    Attributes hold the mismatching response fields for diagnostics.
    """

    def __init__(
        self,
        content_id: str,
        expected: dict[str, object],
        received: dict[str, object],
    ) -> None:
        self.content_id = content_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Server did not accept consent for {content_id}: "
            f"expected {expected}, received {received}"
        )


class TargetSwitchFailed(PublisherError):
    """Raised when the host could not switch to the job's build target."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Failed to switch build target to {target}: {reason}")


class AssetMissing(PublisherError):
    """Raised when the job's scene or thumbnail is not present in the project."""


class AttemptsExhausted(PublisherError):
    """Raised when a retried operation failed on every attempt.

    Wraps the error from the final attempt as ``last_error``.
    """

    def __init__(self, description: str, attempts: int, last_error: BaseException) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{description} failed after {attempts} attempts: {last_error}")


class StalledAndKilled(PublisherError):
    """Raised when the watchdog terminated a silent host process."""

    def __init__(self, idle_seconds: float, idle_threshold: float) -> None:
        self.idle_seconds = idle_seconds
        self.idle_threshold = idle_threshold
        super().__init__(
            f"Host produced no output for {idle_seconds:.0f}s "
            f"(limit: {idle_threshold:.0f}s) and was killed"
        )


class HostProcessError(PublisherError):
    """Raised when the host process exited non-zero on its own."""

    def __init__(self, returncode: int | None, exit_signal: int | None = None) -> None:
        self.returncode = returncode
        self.exit_signal = exit_signal
        if exit_signal is not None:
            detail = f"killed by signal {exit_signal}"
        else:
            detail = f"exit code {returncode}"
        super().__init__(f"Host process failed ({detail})")


class RecordCorrupted(PublisherError):
    """Raised when the persisted job execution record cannot be decoded."""


class BindingsError(PublisherError):
    """Raised when host bindings cannot be imported or constructed."""


__all__ = [
    "EXIT_FAILURE",
    "EXIT_SUCCESS",
    "AssetMissing",
    "AttemptsExhausted",
    "BindingsError",
    "BuilderUnavailable",
    "ConfigError",
    "ConsentError",
    "ConsentRejected",
    "ConsentServiceUnavailable",
    "GitCommandError",
    "HostProcessError",
    "InvalidContentId",
    "PublisherError",
    "ReadinessTimeout",
    "RecordCorrupted",
    "StalledAndKilled",
    "SyncFailed",
    "TargetSwitchFailed",
]
