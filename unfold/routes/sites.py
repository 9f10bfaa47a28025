#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Sites router
============
GET /api/v1/sites/config?address=&theme=        site configuration
GET /api/v1/sites/categories?address=           categories of a site
GET /api/v1/sites/{subdomain}/config            configuration of a hosted site

``address`` is an naddr or a ``kind:pubkey:slug`` coordinate of either the
root publication or of the app-data event pointing at it.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from unfold.core.database import get_db
from unfold.core.errors import DecodeError
from unfold.routes.deps import get_services
from unfold.schemas import CategoryData, SiteConfig
from unfold.services import sites as sites_svc
from unfold.services.container import Services


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/sites", tags=["sites"])


# -----------------------------------------------------------------------------

async def _site_config(services: Services, address: str, theme: Optional[str]) -> SiteConfig:
    try:
        return await services.site_config.resolve_site_config(address, theme)
    except DecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid site address: {exc.reason}",
        )


# -----------------------------------------------------------------------------

@router.get("/config", response_model=SiteConfig)
async def get_site_config(
    address:  str = Query(..., min_length=1, max_length=5000),
    theme:    Optional[str] = Query(None, max_length=64),
    services: Services = Depends(get_services),
):
    return await _site_config(services, address, theme)


# -----------------------------------------------------------------------------

@router.get("/categories", response_model=list[CategoryData])
async def get_site_categories(
    address:  str = Query(..., min_length=1, max_length=5000),
    services: Services = Depends(get_services),
):
    config = await _site_config(services, address, None)
    if config.is_placeholder:
        return []
    return await services.content.get_categories(config)


# -----------------------------------------------------------------------------

@router.get("/{subdomain}/config", response_model=SiteConfig)
async def get_hosted_site_config(
    subdomain: str,
    services:  Services = Depends(get_services),
    db:        AsyncSession = Depends(get_db),
):
    site = await sites_svc.get_site_by_subdomain(db, subdomain)
    if site is None:
        raise HTTPException(status_code=404, detail=f"Site '{subdomain}' not found")
    return await _site_config(services, site.address, site.theme)


# -----------------------------------------------------------------------------
