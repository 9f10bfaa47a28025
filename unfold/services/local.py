#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Local event store
=================
Persisted copy of network events, consulted before any relay is asked.

Documents are addressed by (kind, pubkey, d_tag) and profiles by the newest
kind-0 event of a pubkey; older versions stay in the table and lose on
``created_at``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unfold.models import EventRecord
from unfold.schemas import Event, Kind, ProfileMetadata

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

def _to_event(row: EventRecord) -> Event:
    return Event.model_validate(row.to_dict())


def _to_record(event: Event) -> EventRecord:
    return EventRecord(
        id=event.id,
        pubkey=event.pubkey,
        kind=event.kind,
        created_at=event.created_at,
        content=event.content,
        tags=[list(t) for t in event.tags],
        sig=event.sig,
        d_tag=event.d_tag,
    )


# -----------------------------------------------------------------------------

class LocalEventStore:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def find_message(self, event_id: str) -> Optional[Event]:
        async with self._sessions() as db:
            row = await db.get(EventRecord, event_id)
            return _to_event(row) if row else None

    async def find_profile(self, pubkey: str) -> Optional[ProfileMetadata]:
        async with self._sessions() as db:
            result = await db.execute(
                select(EventRecord)
                .where(EventRecord.pubkey == pubkey, EventRecord.kind == int(Kind.METADATA))
                .order_by(EventRecord.created_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return ProfileMetadata.from_event(_to_event(row)) if row else None

    async def find_document(self, kind: int, author: str, slug: str) -> Optional[Event]:
        async with self._sessions() as db:
            result = await db.execute(
                select(EventRecord)
                .where(
                    EventRecord.kind == kind,
                    EventRecord.pubkey == author,
                    EventRecord.d_tag == slug,
                )
                .order_by(EventRecord.created_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return _to_event(row) if row else None

    async def save_events(self, events: Iterable[Event]) -> int:
        """Insert events not stored yet.  Returns the number of new rows."""
        added = 0
        seen: set[str] = set()
        async with self._sessions() as db:
            for event in events:
                if event.id in seen or await db.get(EventRecord, event.id) is not None:
                    continue
                seen.add(event.id)
                db.add(_to_record(event))
                added += 1
            await db.commit()
        if added:
            log.debug("Stored %d new event(s) locally", added)
        return added


# -----------------------------------------------------------------------------
