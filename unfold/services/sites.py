#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Hosted site lookups over the ``sites`` table.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from unfold.models import Site


# -----------------------------------------------------------------------------

async def get_site_by_subdomain(db: AsyncSession, subdomain: str) -> Optional[Site]:
    result = await db.execute(select(Site).where(Site.subdomain == subdomain.lower()))
    return result.scalar_one_or_none()


# -----------------------------------------------------------------------------

async def list_sites(db: AsyncSession) -> list[Site]:
    result = await db.execute(select(Site).order_by(Site.subdomain))
    return list(result.scalars().all())


# -----------------------------------------------------------------------------
