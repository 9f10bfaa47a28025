#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Relay transport
===============
Minimal NIP-01 client over ``websockets``:

  → ["REQ", <sub id>, <filter>, ...]
  ← ["EVENT", <sub id>, <event>] ...
  ← ["EOSE", <sub id>]
  → ["CLOSE", <sub id>]

``RelayClient`` owns one lazily-opened connection to one relay and runs one
subscription at a time on it.  ``RelayPool`` fans a query out to every
relevant relay concurrently, isolates per-relay failures and merges the
answers: duplicate ids collapse to one event and, for replaceable and
addressable kinds, the newest version wins.  A query that no relay answered
raises ReferenceLookupError, so an outage never reads as "not found".

Only default relays keep a connection open between queries.  Relays taken
from hints in user text are connected for one query and closed again.

The pool is created at application start and closed at shutdown.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Iterable
from typing import Optional

import websockets
from pydantic import ValidationError

from unfold.core.errors import ReferenceLookupError
from unfold.schemas import Event, Kind, ProfileMetadata, is_addressable, is_replaceable

log = logging.getLogger(__name__)

# Relay hints come from user-supplied text; only this many are honoured per query.
MAX_HINTED_RELAYS = 5


# -----------------------------------------------------------------------------

def _usable_relay(url: str) -> bool:
    return url.startswith(("wss://", "ws://")) and len(url) <= 256


def _version_key(event: Event) -> Optional[tuple]:
    if is_addressable(event.kind):
        return (event.kind, event.pubkey, event.d_tag or "")
    if is_replaceable(event.kind):
        return (event.kind, event.pubkey)
    return None


def merge_events(events: Iterable[Event]) -> list[Event]:
    """First copy of each id wins; newest version of each replaceable wins."""
    by_id: dict[str, Event] = {}
    for event in events:
        by_id.setdefault(event.id, event)

    latest: dict[tuple, Event] = {}
    merged: list[Event] = []
    for event in by_id.values():
        key = _version_key(event)
        if key is None:
            merged.append(event)
            continue
        current = latest.get(key)
        if current is None or event.created_at > current.created_at:
            latest[key] = event
    return merged + list(latest.values())


# -----------------------------------------------------------------------------
# Single relay
# -----------------------------------------------------------------------------

class RelayClient:

    def __init__(self, url: str, timeout: float = 8.0, connect=websockets.connect) -> None:
        self.url = url
        self._timeout = timeout
        self._connect = connect
        self._ws = None
        self._lock = asyncio.Lock()

    async def _connection(self):
        if self._ws is None:
            self._ws = await self._connect(self.url, open_timeout=self._timeout, close_timeout=1)
            log.debug("Connected to relay %s", self.url)
        return self._ws

    async def _drop(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as exc:
                log.debug("Error closing relay %s: %s", self.url, exc)

    async def query(self, filters: list[dict]) -> list[Event]:
        """
        Run one subscription and return what arrived before EOSE.  When the
        relay is slower than the timeout, whatever arrived so far is returned;
        a timeout with nothing received raises ``asyncio.TimeoutError``.
        """
        events: list[Event] = []
        async with self._lock:
            for attempt in (1, 2):
                reused = self._ws is not None
                try:
                    await asyncio.wait_for(self._subscribe(filters, events), self._timeout)
                except asyncio.TimeoutError:
                    log.warning("Relay %s timed out after %.1fs (%d event(s) received)",
                                self.url, self._timeout, len(events))
                    await self._drop()
                    if not events:
                        raise
                except websockets.ConnectionClosed as exc:
                    await self._drop()
                    if reused and attempt == 1 and not events:
                        log.debug("Relay %s connection went stale, reconnecting", self.url)
                        continue
                    log.info("Relay %s closed the connection: %s", self.url, exc)
                except Exception:
                    await self._drop()
                    raise
                break
        return events

    async def _subscribe(self, filters: list[dict], events: list[Event]) -> None:
        ws = await self._connection()
        sub_id = uuid.uuid4().hex[:16]
        await ws.send(json.dumps(["REQ", sub_id, *filters]))

        async for raw in ws:
            try:
                msg = json.loads(raw)
            except ValueError:
                continue
            if not isinstance(msg, list) or len(msg) < 2:
                continue

            verb = msg[0]
            if verb == "EVENT" and len(msg) >= 3 and msg[1] == sub_id:
                try:
                    events.append(Event.model_validate(msg[2]))
                except ValidationError as exc:
                    log.debug("Dropping invalid event from %s: %s", self.url, exc)
            elif verb == "EOSE" and msg[1] == sub_id:
                break
            elif verb == "CLOSED" and msg[1] == sub_id:
                log.info("Relay %s closed subscription: %s", self.url, msg[2:] or "")
                return
            elif verb == "NOTICE":
                log.info("Relay %s notice: %s", self.url, msg[1])

        await ws.send(json.dumps(["CLOSE", sub_id]))

    async def close(self) -> None:
        async with self._lock:
            await self._drop()


# -----------------------------------------------------------------------------
# Pool
# -----------------------------------------------------------------------------

class RelayPool:
    """Network lookups against the default relays plus any hinted ones."""

    def __init__(self, default_relays: Iterable[str], timeout: float = 8.0,
                 client_factory=RelayClient) -> None:
        self.default_relays = [r for r in default_relays if _usable_relay(r)]
        self._timeout = timeout
        self._factory = client_factory
        self._clients: dict[str, RelayClient] = {}

    def _client(self, url: str) -> RelayClient:
        """
        Default relays keep one persistent client each.  Any other relay gets
        a fresh client that the caller must close after its query.
        """
        client = self._clients.get(url)
        if client is None:
            client = self._factory(url, timeout=self._timeout)
            if url in self.default_relays:
                self._clients[url] = client
        return client

    def relays_for(self, hints: Iterable[str] = ()) -> list[str]:
        """Hinted relays first, then the defaults; duplicates removed."""
        hinted = [h.rstrip("/") for h in hints if _usable_relay(h)][:MAX_HINTED_RELAYS]
        ordered: list[str] = []
        for url in hinted + self.default_relays:
            if url not in ordered:
                ordered.append(url)
        return ordered

    async def query(self, filters: list[dict], hints: Iterable[str] = ()) -> list[Event]:
        """
        Ask every relevant relay and merge the answers.  Raises
        ReferenceLookupError when there is no usable relay or none answered.
        """
        relays = self.relays_for(hints)
        if not relays:
            raise ReferenceLookupError("relay", "no usable relay configured")

        clients = [self._client(url) for url in relays]
        transient = [c for url, c in zip(relays, clients) if url not in self._clients]
        try:
            results = await asyncio.gather(
                *(client.query(filters) for client in clients),
                return_exceptions=True,
            )
        finally:
            await asyncio.gather(*(c.close() for c in transient), return_exceptions=True)

        collected: list[Event] = []
        answered = 0
        for url, result in zip(relays, results):
            if isinstance(result, BaseException):
                log.warning("Relay %s query failed: %r", url, result)
                continue
            answered += 1
            collected.extend(result)

        if not answered:
            raise ReferenceLookupError("relay", f"all {len(relays)} relay(s) failed")
        return merge_events(collected)

    # ── NetworkLookup ─────────────────────────────────────────────────────

    async def fetch_messages_by_ids(self, ids: list[str],
                                    hints: Iterable[str] = ()) -> dict[str, Event]:
        if not ids:
            return {}
        wanted = set(ids)
        events = await self.query([{"ids": list(ids), "limit": len(ids)}], hints)
        return {e.id: e for e in events if e.id in wanted}

    async def fetch_profiles(self, pubkeys: list[str],
                             hints: Iterable[str] = ()) -> dict[str, ProfileMetadata]:
        if not pubkeys:
            return {}
        wanted = set(pubkeys)
        events = await self.query(
            [{"kinds": [int(Kind.METADATA)], "authors": list(pubkeys)}], hints,
        )
        return {
            e.pubkey: ProfileMetadata.from_event(e)
            for e in events
            if e.kind == Kind.METADATA and e.pubkey in wanted
        }

    async def fetch_document_by_coordinate(self, kind: int, author: str, slug: str,
                                           hints: Iterable[str] = ()) -> Optional[Event]:
        events = await self.query(
            [{"kinds": [kind], "authors": [author], "#d": [slug]}], hints,
        )
        matches = [e for e in events if e.kind == kind and e.pubkey == author and e.d_tag == slug]
        return max(matches, key=lambda e: e.created_at, default=None)

    async def close(self) -> None:
        clients, self._clients = list(self._clients.values()), {}
        await asyncio.gather(*(c.close() for c in clients), return_exceptions=True)
        log.debug("Relay pool closed (%d connection(s))", len(clients))


# -----------------------------------------------------------------------------
