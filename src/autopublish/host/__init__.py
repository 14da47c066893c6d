"""Host process side: collaborator protocols, launcher and supervisor."""

from autopublish.host.protocol import (
    Builder,
    BuilderProvider,
    ConsentRecord,
    ConsentService,
    HostBindings,
    HostControl,
    SessionState,
)
from autopublish.host.supervisor import ProcessSupervisor, SupervisedExit

__all__ = [
    "Builder",
    "BuilderProvider",
    "ConsentRecord",
    "ConsentService",
    "HostBindings",
    "HostControl",
    "ProcessSupervisor",
    "SessionState",
    "SupervisedExit",
]
