"""Collaborator interfaces consumed by the orchestrator.

The host application, its builder SDK, the remote consent service and the
login session are outside this package. Each is described here as a
``typing.Protocol`` so a concrete host integration (or a test double) only
has to provide matching methods; nothing needs to subclass anything.

A host integration exposes them together as a ``HostBindings`` bundle,
usually from a factory named in the ``bindings`` config key (see
``autopublish.host.bindings``).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from autopublish.core.job import Job


@runtime_checkable
class HostControl(Protocol):
    """The host's control surface."""

    def activate(self) -> bool:
        """Try to bring up the host's publishing control surface.

        Idempotent and non-blocking; returns False while the host is not
        ready yet and may be called repeatedly.
        """
        ...

    def active_build_target(self) -> str:
        """Identifier of the build target the host currently builds for."""
        ...

    async def switch_build_target(self, target: str) -> bool:
        """Switch the host to ``target``; False if the host refused."""
        ...


@runtime_checkable
class Builder(Protocol):
    """Handle to the host's build-and-upload API."""

    async def build_and_upload(self, job: Job, thumbnail: str) -> None:
        """Build the job's scene and upload it. May take many minutes.

        Raises on failure; any exception counts as a failed attempt.
        """
        ...


@runtime_checkable
class BuilderProvider(Protocol):
    def try_get_handle(self) -> Builder | None:
        """Return the builder handle once the host has created it."""
        ...


@dataclass(frozen=True)
class ConsentRecord:
    """Server's echo of a recorded agreement."""

    content_id: str
    version: int
    agreement_code: str

    def as_dict(self) -> dict[str, object]:
        return {
            "content_id": self.content_id,
            "version": self.version,
            "agreement_code": self.agreement_code,
        }


@runtime_checkable
class ConsentService(Protocol):
    """Remote agreement service."""

    async def check_consent(self, agreement_code: str, content_id: str, version: int) -> bool:
        """Whether the agreement is already on record for the content."""
        ...

    async def record_consent(
        self,
        agreement_code: str,
        agreement_text: str,
        content_id: str,
        version: int,
    ) -> ConsentRecord:
        """Record the agreement and return the server's echo of it."""
        ...


@runtime_checkable
class SessionState(Protocol):
    def current_user(self) -> Any | None:
        """The logged-in user, or None while nobody is logged in."""
        ...


ExitReporter = Callable[[int], None]


@dataclass
class HostBindings:
    """Everything the orchestrator needs from a concrete host."""

    host: HostControl
    builders: BuilderProvider
    consent: ConsentService
    session: SessionState
    exit_reporter: ExitReporter | None = None


__all__ = [
    "Builder",
    "BuilderProvider",
    "ConsentRecord",
    "ConsentService",
    "ExitReporter",
    "HostBindings",
    "HostControl",
    "SessionState",
]
