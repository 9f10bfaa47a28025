#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Site configuration loader
=========================
A hosted site is described by one root publication event (kind 30040).
Its address is either that publication (naddr or ``kind:pubkey:slug``) or,
in the older form, an app-data event (kind 30078) whose ``a`` tag points at
the publication and whose ``theme`` tag picks the theme.

Configurations are served through the stale-while-revalidate cache under
``site_config:<coordinate>``.  The first load that fails yields a
placeholder configuration (``is_placeholder=True``), retried shortly after.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Optional

from unfold.core.errors import ReferenceLookupError, UnsupportedKind
from unfold.schemas import AppData, Kind, SiteConfig
from unfold.services.cache import StaleWhileRevalidateCache
from unfold.services.identifiers import Reference, ReferenceKind, coordinate_to_naddr, decode
from unfold.services.store import TwoTierStore

log = logging.getLogger(__name__)

SITE_KINDS = (Kind.PUBLICATION_INDEX, Kind.APP_DATA)


# -----------------------------------------------------------------------------

def decode_site_address(address: str) -> Reference:
    """
    Decode a site address.  Raises MalformedIdentifier when it is not a valid
    identifier and UnsupportedKind when it does not name a site document.
    """
    ref = decode(address)
    if ref.kind is not ReferenceKind.ADDRESSABLE_DOCUMENT:
        raise UnsupportedKind(address, "site address must be an addressable document")
    if ref.event_kind not in SITE_KINDS:
        raise UnsupportedKind(address, f"site address has unsupported kind {ref.event_kind}")
    return ref


def site_config_key(coordinate: str) -> str:
    return f"site_config:{coordinate}"


# -----------------------------------------------------------------------------

class SiteConfigLoader:

    def __init__(
        self,
        store: TwoTierStore,
        cache: StaleWhileRevalidateCache,
        fresh_ttl: float = 120,
        stale_ttl: float = 3600,
        default_theme: str = "default",
    ) -> None:
        self.store = store
        self.cache = cache
        self._fresh_ttl = fresh_ttl
        self._stale_ttl = stale_ttl
        self._default_theme = default_theme

    async def resolve_site_config(self, address: str, theme: Optional[str] = None) -> SiteConfig:
        """
        Configuration for the site at *address*.  An explicit *theme* wins
        over the one recorded in the site's app data.
        """
        ref = decode_site_address(address)
        placeholder = SiteConfig.placeholder(
            ref.canonical_id,
            naddr=coordinate_to_naddr(ref.canonical_id),
            theme=theme or self._default_theme,
        )

        async def fetcher() -> SiteConfig:
            return await self._load(ref)

        config = await self.cache.get(
            site_config_key(ref.canonical_id),
            fetcher,
            fresh_ttl=self._fresh_ttl,
            stale_ttl=self._stale_ttl,
            default=placeholder,
        )
        if theme and config.theme != theme:
            config = config.model_copy(update={"theme": theme})
        return config

    async def invalidate(self, address: str) -> None:
        ref = decode_site_address(address)
        await self.cache.invalidate(site_config_key(ref.canonical_id))

    async def warm(self, address: str) -> bool:
        ref = decode_site_address(address)

        async def fetcher() -> SiteConfig:
            return await self._load(ref)

        return await self.cache.warm(
            site_config_key(ref.canonical_id), fetcher,
            fresh_ttl=self._fresh_ttl, stale_ttl=self._stale_ttl,
        )

    # -------------------------------------------------------------------------

    async def _load(self, ref: Reference) -> SiteConfig:
        theme = self._default_theme
        publication = ref

        if ref.event_kind == Kind.APP_DATA:
            event = await self.store.lookup_document(ref.canonical_id, ref.location_hints)
            if event is None:
                raise ReferenceLookupError("document", f"app data {ref.canonical_id} not found")
            app = AppData.from_event(event, ref.canonical_id)
            theme = app.theme or theme
            publication = decode(app.publication_address)
            if publication.event_kind != Kind.PUBLICATION_INDEX:
                raise UnsupportedKind(app.publication_address, "app data must point at a publication index")
            log.debug("Site %s uses publication %s", ref.canonical_id, publication.canonical_id)

        event = await self.store.lookup_document(publication.canonical_id, publication.location_hints)
        if event is None:
            raise ReferenceLookupError("document", f"publication {publication.canonical_id} not found")

        config = SiteConfig.from_event(
            event,
            coordinate=publication.canonical_id,
            naddr=coordinate_to_naddr(publication.canonical_id),
            theme=theme,
        )
        log.info("Loaded site config %s (%d categories)", config.coordinate, len(config.category_coordinates))
        return config


# -----------------------------------------------------------------------------
