"""In-memory session store.

Used by tests and by interactive runs that do not need to survive a
restart. A single dict update keeps each write indivisible.
"""

from collections.abc import Mapping

from autopublish.state.base import SessionStore


class InMemorySessionStore(SessionStore):
    """Session store kept in a plain dict."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self.slots: dict[str, str] = dict(initial or {})

    async def read(self, slot: str) -> str | None:
        return self.slots.get(slot)

    async def write(self, values: Mapping[str, str | None]) -> None:
        updated = dict(self.slots)
        for slot, value in values.items():
            if value is None:
                updated.pop(slot, None)
            else:
                updated[slot] = value
        self.slots = updated

    async def snapshot(self) -> dict[str, str]:
        return dict(self.slots)
