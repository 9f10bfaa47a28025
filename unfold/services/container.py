#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Service wiring.  One ``Services`` bundle is built at application start (see
``unfold.main.lifespan``) and closed at shutdown; tests build their own with
fake network lookups.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unfold.core.config import Settings
from unfold.services.cache import BaseCacheStore, StaleWhileRevalidateCache, create_cache_store
from unfold.services.content import ContentProvider
from unfold.services.local import LocalEventStore
from unfold.services.pipeline import ReferencePipeline
from unfold.services.relays import RelayPool
from unfold.services.rendering import JinjaTemplateRenderer, RendererDispatch
from unfold.services.resolver import BatchResolver
from unfold.services.site_config import SiteConfigLoader
from unfold.services.store import NetworkLookup, TwoTierStore
from unfold.services.warmer import SiteCacheWarmer

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

@dataclass
class Services:
    network:     NetworkLookup
    cache:       StaleWhileRevalidateCache
    store:       TwoTierStore
    pipeline:    ReferencePipeline
    site_config: SiteConfigLoader
    content:     ContentProvider
    warmer:      SiteCacheWarmer

    async def close(self) -> None:
        await self.cache.drain()
        await self.network.close()
        await self.cache.store.close()
        log.debug("Services closed")


# -----------------------------------------------------------------------------

def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    network: Optional[NetworkLookup] = None,
    cache_store: Optional[BaseCacheStore] = None,
    clock=time.time,
) -> Services:
    if network is None:
        network = RelayPool(settings.default_relays, timeout=settings.relay_timeout)

    cache = StaleWhileRevalidateCache(
        cache_store or create_cache_store(settings, clock=clock),
        clock=clock,
        placeholder_ttl=settings.placeholder_ttl,
    )

    store = TwoTierStore(
        LocalEventStore(session_factory),
        network,
        persist=settings.persist_network_events,
        cache=cache,
        document_fresh_ttl=settings.document_fresh_ttl,
        document_stale_ttl=settings.document_stale_ttl,
    )

    pipeline = ReferencePipeline(
        BatchResolver(store),
        RendererDispatch(JinjaTemplateRenderer()),
    )

    site_config = SiteConfigLoader(
        store, cache,
        fresh_ttl=settings.swr_fresh_ttl,
        stale_ttl=settings.swr_stale_ttl,
        default_theme=settings.default_theme,
    )

    content = ContentProvider(
        store, cache,
        fresh_ttl=settings.content_fresh_ttl,
        stale_ttl=settings.content_stale_ttl,
    )

    return Services(
        network=network,
        cache=cache,
        store=store,
        pipeline=pipeline,
        site_config=site_config,
        content=content,
        warmer=SiteCacheWarmer(site_config),
    )


# -----------------------------------------------------------------------------
