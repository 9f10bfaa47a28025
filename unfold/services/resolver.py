#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Batch resolver
==============
Resolves every reference collected from one text with as few store calls as
possible:

  messages   one batch
  profiles   one batch, plus at most one more for authors of the messages
             that came back
  documents  one lookup per coordinate, run concurrently

A failure in one class leaves that class empty; a failure for one coordinate
leaves that document unresolved.  Nothing raises out of ``resolve``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from unfold.schemas import Event, ProfileMetadata
from unfold.services.identifiers import LookupClass, Reference
from unfold.services.store import TwoTierStore

log = logging.getLogger(__name__)

Entity = Union[ProfileMetadata, Event, None]


# -----------------------------------------------------------------------------

@dataclass
class Resolution:
    messages_by_id: dict[str, Event] = field(default_factory=dict)
    profiles_by_id: dict[str, ProfileMetadata] = field(default_factory=dict)
    documents_by_coordinate: dict[str, Optional[Event]] = field(default_factory=dict)

    def entity_for(self, ref: Reference) -> Entity:
        lookup = ref.lookup_class
        if lookup is LookupClass.PROFILE:
            return self.profiles_by_id.get(ref.canonical_id)
        if lookup is LookupClass.MESSAGE:
            return self.messages_by_id.get(ref.canonical_id)
        if lookup is LookupClass.DOCUMENT:
            return self.documents_by_coordinate.get(ref.canonical_id)
        raise AssertionError(f"unhandled lookup class: {lookup!r}")

    def author_of(self, event: Event) -> Optional[ProfileMetadata]:
        return self.profiles_by_id.get(event.pubkey)


# -----------------------------------------------------------------------------

def _hints(refs: list[Reference]) -> list[str]:
    return list(dict.fromkeys(h for r in refs for h in r.location_hints))


# -----------------------------------------------------------------------------

class BatchResolver:

    def __init__(self, store: TwoTierStore) -> None:
        self.store = store

    async def resolve(self, references: list[Reference]) -> Resolution:
        resolution = Resolution()

        by_class: dict[LookupClass, list[Reference]] = {c: [] for c in LookupClass}
        for ref in references:
            by_class[ref.lookup_class].append(ref)

        messages  = by_class[LookupClass.MESSAGE]
        profiles  = by_class[LookupClass.PROFILE]
        documents = by_class[LookupClass.DOCUMENT]

        if messages:
            try:
                resolution.messages_by_id = await self.store.fetch_messages(
                    [r.canonical_id for r in messages], _hints(messages),
                )
            except Exception as exc:
                log.warning("Message batch failed (%d id(s)): %s", len(messages), exc)

        # Authors named inside nevent identifiers ride along with the first batch
        pubkeys = [r.canonical_id for r in profiles]
        pubkeys += [r.author_id for r in messages if r.author_id]
        pubkeys = list(dict.fromkeys(pubkeys))

        if pubkeys:
            resolution.profiles_by_id = await self._profiles(pubkeys, _hints(profiles))

        authors = [
            e.pubkey for e in resolution.messages_by_id.values() if e.pubkey not in pubkeys
        ]
        authors = list(dict.fromkeys(authors))
        if authors:
            resolution.profiles_by_id.update(await self._profiles(authors, _hints(messages)))

        if documents:
            resolution.documents_by_coordinate = await self._documents(documents)

        log.debug(
            "Resolved %d/%d message(s), %d profile(s), %d/%d document(s)",
            len(resolution.messages_by_id), len(messages),
            len(resolution.profiles_by_id),
            sum(1 for d in resolution.documents_by_coordinate.values() if d is not None),
            len(documents),
        )
        return resolution

    # -------------------------------------------------------------------------

    async def _profiles(self, pubkeys: list[str], hints: list[str]) -> dict[str, ProfileMetadata]:
        try:
            return await self.store.fetch_profiles(pubkeys, hints)
        except Exception as exc:
            log.warning("Profile batch failed (%d pubkey(s)): %s", len(pubkeys), exc)
            return {}

    async def _documents(self, refs: list[Reference]) -> dict[str, Optional[Event]]:
        unique = list({r.canonical_id: r for r in refs}.values())
        results = await asyncio.gather(
            *(self.store.fetch_document(r.canonical_id, r.location_hints) for r in unique),
            return_exceptions=True,
        )

        documents: dict[str, Optional[Event]] = {}
        for ref, result in zip(unique, results):
            if isinstance(result, BaseException):
                log.warning("Document lookup failed for %s: %s", ref.canonical_id, result)
                documents[ref.canonical_id] = None
            else:
                documents[ref.canonical_id] = result
        return documents


# -----------------------------------------------------------------------------
