"""Consent preflight for the publish call.

Publishing is refused by the remote side unless an agreement ("I own the
rights to this content") is on record for the content id. The preflight
checks for the agreement, records it when missing, and remembers the
result in the session so later jobs for the same content skip the round
trip.
"""

from __future__ import annotations

from autopublish.core import constants
from autopublish.core.errors import (
    ConsentRejected,
    ConsentServiceUnavailable,
    InvalidContentId,
)
from autopublish.core.logging import get_logger
from autopublish.host.protocol import ConsentRecord, ConsentService
from autopublish.state.base import SessionStore
from autopublish.state.record import escape_field, unescape_field

_logger = get_logger("consent")


class ConsentCache:
    """Content ids with a confirmed agreement in this session.

    Backed by one session slot holding the ``;``-joined id list, each id
    escaped like the record fields. Entries are only ever appended within a
    session; the driver calls ``reset`` whenever it launches a fresh host,
    so a new session starts empty and re-verifies.
    """

    def __init__(self, store: SessionStore, slot: str = constants.SLOT_CONSENT_CONTENT_LIST):
        self.store = store
        self.slot = slot

    async def entries(self) -> list[str]:
        current = await self.store.read(self.slot)
        if not current:
            return []
        return [unescape_field(c) for c in current.split(constants.SLOT_DELIMITER) if c]

    async def contains(self, content_id: str) -> bool:
        return content_id in await self.entries()

    async def add(self, content_id: str) -> None:
        entries = await self.entries()
        if content_id in entries:
            return
        entries.append(content_id)
        await self.store.set(
            self.slot, constants.SLOT_DELIMITER.join(escape_field(e) for e in entries)
        )

    async def reset(self) -> None:
        """Forget every entry; the next preflight per id goes remote again."""
        await self.store.remove(self.slot)
        _logger.info("consent.cache_reset")


class ConsentPreflight:
    """Ensures the agreement precondition holds before publishing."""

    def __init__(
        self,
        service: ConsentService,
        cache: ConsentCache,
        agreement_code: str = constants.AGREEMENT_CODE,
        agreement_version: int = constants.AGREEMENT_VERSION,
        agreement_text: str = constants.AGREEMENT_TEXT,
    ) -> None:
        self.service = service
        self.cache = cache
        self.agreement_code = agreement_code
        self.agreement_version = agreement_version
        self.agreement_text = agreement_text

    async def ensure_consent(self, content_id: str) -> None:
        """Make sure an agreement is on record for ``content_id``.

        Transport failures are not retried here. The orchestrator's resume
        path re-runs the preflight from scratch after an interruption.

        Raises:
            InvalidContentId: If ``content_id`` is empty.
            ConsentServiceUnavailable: If either remote call failed.
            ConsentRejected: If the recorded agreement was not echoed back
                exactly as requested.
        """
        if not content_id or not content_id.strip():
            _logger.error("consent.invalid_content_id", content_id=content_id)
            raise InvalidContentId("Content id is empty; cannot record consent")

        if await self.cache.contains(content_id):
            _logger.debug("consent.cached", content_id=content_id)
            return

        try:
            agreed = await self.service.check_consent(
                self.agreement_code, content_id, self.agreement_version
            )
        except Exception as e:
            _logger.error("consent.check_failed", content_id=content_id, error=str(e))
            raise ConsentServiceUnavailable(
                f"Failed to check consent for {content_id}: {e}"
            ) from e

        if not agreed:
            await self._record(content_id)

        await self.cache.add(content_id)
        _logger.info("consent.confirmed", content_id=content_id, newly_recorded=not agreed)

    async def _record(self, content_id: str) -> None:
        try:
            response = await self.service.record_consent(
                self.agreement_code,
                self.agreement_text,
                content_id,
                self.agreement_version,
            )
        except Exception as e:
            _logger.error("consent.record_failed", content_id=content_id, error=str(e))
            raise ConsentServiceUnavailable(
                f"Failed to record consent for {content_id}: {e}"
            ) from e

        expected = ConsentRecord(
            content_id=content_id,
            version=self.agreement_version,
            agreement_code=self.agreement_code,
        ).as_dict()
        received = {key: getattr(response, key, None) for key in expected}
        if received != expected:
            _logger.error(
                "consent.rejected",
                content_id=content_id,
                expected=expected,
                received=received,
            )
            raise ConsentRejected(content_id, expected, received)
