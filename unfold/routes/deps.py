#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Shared route dependencies.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import Request

from unfold.services.container import Services


# -----------------------------------------------------------------------------

def get_services(request: Request) -> Services:
    """The service bundle created in the application lifespan."""
    return request.app.state.services


# -----------------------------------------------------------------------------
