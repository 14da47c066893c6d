"""Session state backends and the persisted job execution record."""

from autopublish.state.base import SessionStore
from autopublish.state.json_backend import JsonSessionStore
from autopublish.state.memory import InMemorySessionStore
from autopublish.state.record import JobExecutionRecord, RecordKeeper

__all__ = [
    "InMemorySessionStore",
    "JobExecutionRecord",
    "JsonSessionStore",
    "RecordKeeper",
    "SessionStore",
]
