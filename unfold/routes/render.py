#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Render endpoint

POST /api/v1/render   {content, format: "html" | "markdown"}  → {html, format}

HTML input has its references resolved as-is; markdown is rendered to HTML
first.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import APIRouter, Depends

from unfold.routes.deps import get_services
from unfold.schemas import RenderRequest, RenderResponse
from unfold.services.container import Services


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/render", tags=["render"])


# -----------------------------------------------------------------------------

@router.post("", response_model=RenderResponse)
async def render_content(
    data:     RenderRequest,
    services: Services = Depends(get_services),
):
    if data.format == "markdown":
        html = await services.pipeline.render_markdown(data.content)
    else:
        html = await services.pipeline.resolve_and_render(data.content)
    return {"html": html, "format": data.format}


# -----------------------------------------------------------------------------
