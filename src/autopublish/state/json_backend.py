"""JSON file-based session store.

All slots live in one JSON object on disk. Every write replaces the whole
file through a temp file and an atomic rename, so a crash mid-write leaves
the previous contents intact.
"""

import json
import os
from collections.abc import Mapping
from pathlib import Path

from autopublish.core.logging import get_logger
from autopublish.state.base import SessionStore

_logger = get_logger("state.json")


class JsonSessionStore(SessionStore):
    """Session slots persisted as a single JSON document.

    File layout: ``{"slots": {"<name>": "<value>", ...}}``
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            _logger.warning("session_store.unreadable", path=str(self.path), error=str(e))
            return {}
        slots = data.get("slots") if isinstance(data, dict) else None
        if not isinstance(slots, dict):
            _logger.warning("session_store.malformed", path=str(self.path))
            return {}
        return {str(k): str(v) for k, v in slots.items()}

    def _save(self, slots: dict[str, str]) -> None:
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump({"slots": slots}, f, indent=2, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_file, self.path)

    async def read(self, slot: str) -> str | None:
        return self._load().get(slot)

    async def write(self, values: Mapping[str, str | None]) -> None:
        slots = self._load()
        for slot, value in values.items():
            if value is None:
                slots.pop(slot, None)
            else:
                slots[slot] = value
        self._save(slots)
        _logger.debug("session_store.written", path=str(self.path), slots=sorted(values))

    async def snapshot(self) -> dict[str, str]:
        return self._load()
