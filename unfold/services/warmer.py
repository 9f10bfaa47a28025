#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Site cache warmer
=================
Loads site configurations ahead of the first request so visitors never wait
on the relays.  Used by ``scripts/warm_cache.py``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from collections.abc import Iterable

from unfold.core.errors import DecodeError
from unfold.models import Site
from unfold.services.site_config import SiteConfigLoader

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class SiteCacheWarmer:

    def __init__(self, loader: SiteConfigLoader) -> None:
        self.loader = loader

    async def warm_site(self, site: Site) -> bool:
        log.info("Warming cache for site %s (%s)", site.subdomain, site.address)
        try:
            ok = await self.loader.warm(site.address)
        except DecodeError as exc:
            log.error("Failed to warm cache for site %s: %s", site.subdomain, exc)
            return False

        if ok:
            log.info("Cache warmed for site %s", site.subdomain)
        else:
            log.error("Failed to warm cache for site %s (%s)", site.subdomain, site.address)
        return ok

    async def warm_all(self, sites: Iterable[Site]) -> dict[str, int]:
        success = failed = 0
        for site in sites:
            if await self.warm_site(site):
                success += 1
            else:
                failed += 1
        return {"success": success, "failed": failed}

    async def invalidate_site(self, site: Site) -> None:
        await self.loader.invalidate(site.address)
        log.info("Invalidated cached config for site %s", site.subdomain)


# -----------------------------------------------------------------------------
