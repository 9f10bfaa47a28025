#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Two-tier store
==============
Local persisted store first, network second.

For a batch of ids every local lookup runs on its own (one failing id does
not take the others down); whatever is still missing goes to the network in
a single call, together with the union of the batch's relay hints.  Network
hits are written back to the local store when persistence is on.

Document lookups can be routed through a StaleWhileRevalidateCache under
``document:<coordinate>``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional, Protocol

from unfold.core.errors import ReferenceLookupError
from unfold.schemas import Event, ProfileMetadata
from unfold.services.cache import StaleWhileRevalidateCache
from unfold.services.identifiers import parse_coordinate

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Capabilities
# -----------------------------------------------------------------------------

class LocalLookup(Protocol):
    async def find_message(self, event_id: str) -> Optional[Event]: ...
    async def find_profile(self, pubkey: str) -> Optional[ProfileMetadata]: ...
    async def find_document(self, kind: int, author: str, slug: str) -> Optional[Event]: ...
    async def save_events(self, events: Iterable[Event]) -> int: ...


class NetworkLookup(Protocol):
    async def fetch_messages_by_ids(self, ids: list[str],
                                    hints: Iterable[str] = ()) -> dict[str, Event]: ...
    async def fetch_profiles(self, pubkeys: list[str],
                             hints: Iterable[str] = ()) -> dict[str, ProfileMetadata]: ...
    async def fetch_document_by_coordinate(self, kind: int, author: str, slug: str,
                                           hints: Iterable[str] = ()) -> Optional[Event]: ...
    async def close(self) -> None: ...


# -----------------------------------------------------------------------------

class TwoTierStore:

    def __init__(
        self,
        local: LocalLookup,
        network: NetworkLookup,
        persist: bool = True,
        cache: Optional[StaleWhileRevalidateCache] = None,
        document_fresh_ttl: float = 300,
        document_stale_ttl: float = 3600,
    ) -> None:
        self.local = local
        self.network = network
        self._persist_hits = persist
        self._cache = cache
        self._document_fresh_ttl = document_fresh_ttl
        self._document_stale_ttl = document_stale_ttl

    # ── messages ──────────────────────────────────────────────────────────

    async def fetch_messages(self, ids: Iterable[str],
                             hints: Iterable[str] = ()) -> dict[str, Event]:
        found: dict[str, Event] = {}
        misses: list[str] = []

        for event_id in dict.fromkeys(ids):
            try:
                event = await self.local.find_message(event_id)
            except Exception as exc:
                log.warning("Local message lookup failed for %s: %s", event_id, exc)
                event = None
            if event is not None:
                found[event_id] = event
            else:
                misses.append(event_id)

        if misses:
            try:
                remote = await self.network.fetch_messages_by_ids(misses, list(hints))
            except Exception as exc:
                log.warning("Network message lookup failed for %d id(s): %s", len(misses), exc)
                remote = {}
            hits = {i: e for i, e in remote.items() if i in misses}
            found.update(hits)
            await self._persist(hits.values())
            log.debug("Messages: %d local miss(es), %d found on the network", len(misses), len(hits))

        return found

    # ── profiles ──────────────────────────────────────────────────────────

    async def fetch_profiles(self, pubkeys: Iterable[str],
                             hints: Iterable[str] = ()) -> dict[str, ProfileMetadata]:
        found: dict[str, ProfileMetadata] = {}
        misses: list[str] = []

        for pubkey in dict.fromkeys(pubkeys):
            try:
                profile = await self.local.find_profile(pubkey)
            except Exception as exc:
                log.warning("Local profile lookup failed for %s: %s", pubkey, exc)
                profile = None
            if profile is not None:
                found[pubkey] = profile
            else:
                misses.append(pubkey)

        if misses:
            try:
                remote = await self.network.fetch_profiles(misses, list(hints))
            except Exception as exc:
                log.warning("Network profile lookup failed for %d pubkey(s): %s", len(misses), exc)
                remote = {}
            hits = {k: p for k, p in remote.items() if k in misses}
            found.update(hits)
            await self._persist(p.source for p in hits.values() if p.source is not None)

        return found

    # ── documents ─────────────────────────────────────────────────────────

    async def fetch_document(self, coordinate: str,
                             hints: Iterable[str] = ()) -> Optional[Event]:
        """Document by coordinate, through the cache when one is configured."""
        hints = tuple(hints)
        parse_coordinate(coordinate)
        if self._cache is None:
            return await self.lookup_document(coordinate, hints)

        async def fetcher() -> Optional[Event]:
            return await self.lookup_document(coordinate, hints)

        return await self._cache.get(
            f"document:{coordinate}",
            fetcher,
            fresh_ttl=self._document_fresh_ttl,
            stale_ttl=self._document_stale_ttl,
            default=None,
        )

    async def lookup_document(self, coordinate: str,
                              hints: Iterable[str] = ()) -> Optional[Event]:
        """
        Uncached lookup.  Returns None when no tier has the document; raises
        ReferenceLookupError when the network could not be asked.
        """
        kind, author, slug = parse_coordinate(coordinate)

        try:
            event = await self.local.find_document(kind, author, slug)
        except Exception as exc:
            log.warning("Local document lookup failed for %s: %s", coordinate, exc)
            event = None
        if event is not None:
            return event

        try:
            event = await self.network.fetch_document_by_coordinate(kind, author, slug, list(hints))
        except Exception as exc:
            raise ReferenceLookupError("document", f"{coordinate}: {exc}") from exc

        if event is not None:
            await self._persist([event])
        return event

    # ── write-through ─────────────────────────────────────────────────────

    async def _persist(self, events: Iterable[Event]) -> None:
        if not self._persist_hits:
            return
        events = list(events)
        if not events:
            return
        try:
            await self.local.save_events(events)
        except Exception as exc:
            log.warning("Could not store %d network event(s) locally: %s", len(events), exc)


# -----------------------------------------------------------------------------
