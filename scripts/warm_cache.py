#!/usr/bin/env python
"""
Warm the site configuration cache.

Usage:
    python scripts/warm_cache.py                    warm every hosted site
    python scripts/warm_cache.py -s blog            warm one subdomain
    python scripts/warm_cache.py --address naddr1…  warm an address directly
    python scripts/warm_cache.py -s blog --invalidate

With the in-process memory cache this only proves the sites load; point
CACHE_BACKEND / CACHE_REDIS_URL at the shared Redis cache to warm it for the
running application.

Exit status is 0 when at least one site was warmed (or there was nothing to
do), 1 otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from unfold.core.config import get_settings
from unfold.core.database import close_event_store, open_event_store
from unfold.models import Site
from unfold.services import sites as sites_svc
from unfold.services.container import build_services


# ── Commands ──────────────────────────────────────────────────────────────────

async def run(subdomain: str | None, address: str | None, invalidate: bool) -> int:
    settings = get_settings()
    session_factory = await open_event_store()
    services = build_services(settings, session_factory)

    try:
        if address:
            target = [Site(subdomain="(address)", address=address, theme=settings.default_theme)]
        else:
            async with session_factory() as db:
                if subdomain:
                    site = await sites_svc.get_site_by_subdomain(db, subdomain)
                    if site is None:
                        print(f"Error: no site for subdomain {subdomain!r}", file=sys.stderr)
                        return 1
                    target = [site]
                else:
                    target = await sites_svc.list_sites(db)

        if not target:
            print("No sites configured.")
            return 0

        if invalidate:
            for site in target:
                await services.warmer.invalidate_site(site)
            print(f"Invalidated {len(target)} site(s).")
            return 0

        print(f"Warming cache for {len(target)} site(s)...")
        results = await services.warmer.warm_all(target)
        print(f"Warmed {results['success']} site(s), {results['failed']} failed.")
        return 0 if results["success"] > 0 or results["failed"] == 0 else 1
    finally:
        await services.close()
        await close_event_store()


# ── CLI ───────────────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Warm the site configuration cache.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-s", "--subdomain", default=None,
                       help="Only this hosted site")
    group.add_argument("--address", default=None,
                       help="A site address (naddr or kind:pubkey:slug) not in the sites table")
    parser.add_argument("--invalidate", action="store_true",
                        help="Drop cached configuration instead of loading it")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)-8s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run(args.subdomain, args.address, args.invalidate)))


if __name__ == "__main__":
    main()
