"""Persisted job execution record.

The record is the orchestrator's only resumption state: a pending flag and
the job parameters, stored in two session slots. It is written before the
first side effect of a run and erased when the run reaches a terminal
state, so its presence on startup means "a run was interrupted".

Encoding of the parameter slot is the delimiter-joined list
``scene;thumbnail;name;id;platform``. Delimiters and percent signs inside
values are percent-escaped so any display name round-trips.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import unquote

from pydantic import ValidationError

from autopublish.core.constants import SLOT_DELIMITER, SLOT_UPLOAD_PARAMS, SLOT_UPLOAD_PENDING
from autopublish.core.errors import RecordCorrupted
from autopublish.core.job import Job, Platform
from autopublish.core.logging import get_logger
from autopublish.state.base import SessionStore

_logger = get_logger("state.record")

_PENDING_TRUE = "true"
_FIELD_COUNT = 5


def escape_field(value: str) -> str:
    """Percent-escape ``%`` and the slot delimiter so a value never splits."""
    return value.replace("%", "%25").replace(SLOT_DELIMITER, "%3B")


def unescape_field(value: str) -> str:
    return unquote(value)


def encode_job(job: Job) -> str:
    """Encode the resumable fields of a job into one slot value."""
    fields = [job.scene, job.thumbnail, job.name, job.content_id, job.platform.value]
    return SLOT_DELIMITER.join(escape_field(f) for f in fields)


def decode_job(payload: str) -> Job:
    """Decode a slot value produced by ``encode_job``.

    Raises:
        RecordCorrupted: If the payload does not hold exactly five valid fields.
    """
    parts = payload.split(SLOT_DELIMITER)
    if len(parts) != _FIELD_COUNT:
        raise RecordCorrupted(
            f"Expected {_FIELD_COUNT} job fields in record, found {len(parts)}"
        )
    scene, thumbnail, name, content_id, platform = (unescape_field(p) for p in parts)
    try:
        return Job(
            scene=scene,
            thumbnail=thumbnail,
            name=name,
            content_id=content_id,
            platform=Platform.parse(platform),
        )
    except ValidationError as e:
        raise RecordCorrupted(f"Job fields in record are invalid: {e}") from e


@dataclass(frozen=True)
class JobExecutionRecord:
    """A decoded pending record."""

    pending: bool
    job: Job


class RecordKeeper:
    """Reads and writes the job execution record in a session store."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    async def load(self) -> JobExecutionRecord | None:
        """Return the pending record, or None when no run is in flight.

        Raises:
            RecordCorrupted: If the pending flag is set but the parameters
                are missing or undecodable.
        """
        pending = await self.store.read(SLOT_UPLOAD_PENDING)
        if pending != _PENDING_TRUE:
            return None
        payload = await self.store.read(SLOT_UPLOAD_PARAMS)
        if payload is None:
            raise RecordCorrupted("Upload is marked pending but no job parameters are stored")
        return JobExecutionRecord(pending=True, job=decode_job(payload))

    async def begin(self, job: Job) -> None:
        """Persist the record for a job that is about to start."""
        await self.store.write({
            SLOT_UPLOAD_PENDING: _PENDING_TRUE,
            SLOT_UPLOAD_PARAMS: encode_job(job),
        })
        _logger.info("record.written", job_id=job.content_id)

    async def clear(self) -> None:
        """Erase the record in a single store write."""
        await self.store.write({SLOT_UPLOAD_PENDING: None, SLOT_UPLOAD_PARAMS: None})
        _logger.info("record.cleared")

    async def exists(self) -> bool:
        return await self.store.read(SLOT_UPLOAD_PENDING) == _PENDING_TRUE
