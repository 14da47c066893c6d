"""Abstract base for session stores."""

from abc import ABC, abstractmethod
from collections.abc import Mapping


class SessionStore(ABC):
    """Named string slots that outlive one host process.

    Implementations must apply every ``write`` as a single unit: a reader
    sees either all of the slots in one write or none of them. The job
    execution record relies on this to never expose a half-written or
    half-cleared record.
    """

    @abstractmethod
    async def read(self, slot: str) -> str | None:
        """Return a slot's value, or None if unset."""
        ...

    @abstractmethod
    async def write(self, values: Mapping[str, str | None]) -> None:
        """Set several slots at once. A None value removes the slot."""
        ...

    @abstractmethod
    async def snapshot(self) -> dict[str, str]:
        """Return a copy of every slot currently set."""
        ...

    async def set(self, slot: str, value: str) -> None:
        await self.write({slot: value})

    async def remove(self, slot: str) -> None:
        await self.write({slot: None})
