"""Tests for the session store backends."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from autopublish.state import InMemorySessionStore, JsonSessionStore, SessionStore


@pytest.fixture(params=["memory", "json"])
def any_store(request: pytest.FixtureRequest, tmp_path: Path) -> SessionStore:
    if request.param == "memory":
        return InMemorySessionStore()
    return JsonSessionStore(tmp_path / "state" / "session.json")


class TestSlotSemantics:
    @pytest.mark.asyncio
    async def test_unset_slot_reads_none(self, any_store: SessionStore) -> None:
        assert await any_store.read("missing") is None

    @pytest.mark.asyncio
    async def test_write_several_slots(self, any_store: SessionStore) -> None:
        await any_store.write({"a": "1", "b": "2"})
        assert await any_store.snapshot() == {"a": "1", "b": "2"}

    @pytest.mark.asyncio
    async def test_none_removes(self, any_store: SessionStore) -> None:
        await any_store.write({"a": "1", "b": "2"})
        await any_store.write({"a": None, "c": "3"})
        assert await any_store.snapshot() == {"b": "2", "c": "3"}

    @pytest.mark.asyncio
    async def test_set_and_remove_helpers(self, any_store: SessionStore) -> None:
        await any_store.set("a", "1")
        assert await any_store.read("a") == "1"
        await any_store.remove("a")
        assert await any_store.read("a") is None

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self, any_store: SessionStore) -> None:
        await any_store.set("a", "1")
        snap = await any_store.snapshot()
        snap["a"] = "changed"
        assert await any_store.read("a") == "1"


class TestJsonSessionStore:
    @pytest.mark.asyncio
    async def test_survives_new_instance(self, tmp_path: Path) -> None:
        path = tmp_path / "session.json"
        await JsonSessionStore(path).set("a", "1")
        assert await JsonSessionStore(path).read("a") == "1"

    @pytest.mark.asyncio
    async def test_file_layout(self, tmp_path: Path) -> None:
        path = tmp_path / "session.json"
        await JsonSessionStore(path).set("a", "1")
        assert json.loads(path.read_text()) == {"slots": {"a": "1"}}

    @pytest.mark.asyncio
    async def test_no_temp_file_left_behind(self, tmp_path: Path) -> None:
        path = tmp_path / "session.json"
        await JsonSessionStore(path).set("a", "1")
        assert [p.name for p in tmp_path.iterdir()] == ["session.json"]

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "session.json"
        path.write_text("{not json")
        with capture_logs() as logs:
            assert await JsonSessionStore(path).snapshot() == {}
        assert any(log["event"] == "session_store.unreadable" for log in logs)

    @pytest.mark.asyncio
    async def test_malformed_document_reads_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"slots": ["a"]}))
        with capture_logs() as logs:
            assert await JsonSessionStore(path).read("a") is None
        assert any(log["event"] == "session_store.malformed" for log in logs)

    @pytest.mark.asyncio
    async def test_write_after_corruption_recovers(self, tmp_path: Path) -> None:
        path = tmp_path / "session.json"
        path.write_text("garbage")
        store = JsonSessionStore(path)
        await store.set("a", "1")
        assert await store.snapshot() == {"a": "1"}


class TestInMemorySessionStore:
    @pytest.mark.asyncio
    async def test_initial_values(self) -> None:
        store = InMemorySessionStore({"a": "1"})
        assert await store.read("a") == "1"
