#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Site content provider
=====================
Walks a site's publication tree: the root publication lists categories
(``a`` tags), each category lists articles (``a`` tags again).

Every listing is cached with stale-while-revalidate (fresh 5 min, stale
1 h, empty list when nothing could be fetched).  Coordinates that do not
parse and events that cannot be found are logged and skipped.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Optional

from unfold.core.errors import DecodeError
from unfold.schemas import CategoryData, Event, PostData, SiteConfig
from unfold.services.cache import StaleWhileRevalidateCache
from unfold.services.identifiers import parse_coordinate
from unfold.services.store import TwoTierStore

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class ContentProvider:

    def __init__(
        self,
        store: TwoTierStore,
        cache: StaleWhileRevalidateCache,
        fresh_ttl: float = 300,
        stale_ttl: float = 3600,
    ) -> None:
        self.store = store
        self.cache = cache
        self._fresh_ttl = fresh_ttl
        self._stale_ttl = stale_ttl
        self._home_limits: set[int] = {3}

    async def _cached(self, key: str, fetcher) -> list:
        return await self.cache.get(
            key, fetcher,
            fresh_ttl=self._fresh_ttl,
            stale_ttl=self._stale_ttl,
            default=[],
        )

    # ── listings ──────────────────────────────────────────────────────────

    async def get_categories(self, site: SiteConfig) -> list[CategoryData]:
        async def fetcher() -> list[CategoryData]:
            categories = []
            for coordinate in site.category_coordinates:
                category = await self._fetch_category(coordinate)
                if category is not None:
                    categories.append(category)
            return categories

        return await self._cached(f"categories:{site.coordinate}", fetcher)

    async def get_category_posts(self, coordinate: str) -> list[PostData]:
        async def fetcher() -> list[PostData]:
            category = await self._fetch_category(coordinate)
            if category is None:
                return []
            posts = []
            for article in category.article_coordinates:
                post = await self._fetch_post(article)
                if post is not None:
                    posts.append(post)
            return posts

        return await self._cached(f"category_posts:{coordinate}", fetcher)

    async def get_home_posts(self, site: SiteConfig, limit: int = 3) -> list[PostData]:
        """The first *limit* posts of every category, in category order."""
        self._home_limits.add(limit)

        async def fetcher() -> list[PostData]:
            posts: list[PostData] = []
            for category in await self.get_categories(site):
                posts.extend((await self.get_category_posts(category.coordinate))[:limit])
            return posts

        return await self._cached(f"home_posts:{site.coordinate}:{limit}", fetcher)

    async def get_post(self, slug: str, site: SiteConfig) -> Optional[PostData]:
        for category in await self.get_categories(site):
            for coordinate in category.article_coordinates:
                if coordinate.endswith(":" + slug):
                    return await self._fetch_post(coordinate)
        return None

    async def invalidate_site_cache(self, site: SiteConfig) -> None:
        await self.cache.invalidate(f"categories:{site.coordinate}")
        for limit in sorted(self._home_limits):
            await self.cache.invalidate(f"home_posts:{site.coordinate}:{limit}")
        for coordinate in site.category_coordinates:
            await self.cache.invalidate(f"category_posts:{coordinate}")
        log.info("Invalidated content caches for %s", site.coordinate)

    # ── single events ─────────────────────────────────────────────────────

    async def _fetch_event(self, coordinate: str, what: str) -> Optional[Event]:
        try:
            parse_coordinate(coordinate)
        except DecodeError:
            log.warning("Invalid %s coordinate %r", what, coordinate)
            return None

        try:
            event = await self.store.fetch_document(coordinate)
        except Exception as exc:
            log.error("Error fetching %s %s: %s", what, coordinate, exc)
            return None

        if event is None:
            log.warning("%s event not found: %s", what.capitalize(), coordinate)
        return event

    async def _fetch_category(self, coordinate: str) -> Optional[CategoryData]:
        event = await self._fetch_event(coordinate, "category")
        return CategoryData.from_event(event, coordinate) if event is not None else None

    async def _fetch_post(self, coordinate: str) -> Optional[PostData]:
        event = await self._fetch_event(coordinate, "post")
        return PostData.from_event(event) if event is not None else None


# -----------------------------------------------------------------------------
