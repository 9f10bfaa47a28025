#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""HTTP tests for the render and sites endpoints."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from unfold.models import Site
from unfold.schemas import Kind
from unfold.services.identifiers import encode_naddr
from tests.fakes import ALICE_HEX, ALICE_NPUB, make_event


PUBLICATION = f"30040:{ALICE_HEX}:blog"


def _publication(*categories: str):
    return make_event(
        Kind.PUBLICATION_INDEX,
        tags=[["d", "blog"], ["title", "Blog"]] + [["a", f"30040:{ALICE_HEX}:{c}"] for c in categories],
    )


# ── System ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


# ── Render ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_render_html(client, network):
    network.add_profile(ALICE_HEX, "Alice")
    r = await client.post("/api/v1/render", json={
        "content": f"<p>hello nostr:{ALICE_NPUB}</p>", "format": "html",
    })
    assert r.status_code == 200
    data = r.json()
    assert data["format"] == "html"
    assert data["html"] == f'<p>hello <a href="/p/{ALICE_NPUB}" class="nostr-mention">@Alice</a></p>'


@pytest.mark.asyncio
async def test_render_markdown_is_default(client, network):
    network.add_profile(ALICE_HEX, "Alice")
    r = await client.post("/api/v1/render", json={"content": f"**hi** nostr:{ALICE_NPUB}"})
    assert r.status_code == 200
    html = r.json()["html"]
    assert "<strong>hi</strong>" in html
    assert "@Alice</a>" in html


@pytest.mark.asyncio
async def test_render_rejects_unknown_format(client):
    r = await client.post("/api/v1/render", json={"content": "x", "format": "rst"})
    assert r.status_code == 422


# ── Sites ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_site_config(client, network):
    network.add_document(_publication())
    r = await client.get("/api/v1/sites/config", params={
        "address": encode_naddr(30040, ALICE_HEX, "blog"), "theme": "dark",
    })
    assert r.status_code == 200
    data = r.json()
    assert data["title"] == "Blog"
    assert data["coordinate"] == PUBLICATION
    assert data["theme"] == "dark"
    assert data["is_placeholder"] is False


@pytest.mark.asyncio
async def test_site_config_placeholder(client):
    r = await client.get("/api/v1/sites/config", params={"address": PUBLICATION})
    assert r.status_code == 200
    assert r.json()["is_placeholder"] is True


@pytest.mark.asyncio
async def test_site_config_bad_address(client):
    r = await client.get("/api/v1/sites/config", params={"address": "nonsense"})
    assert r.status_code == 400

    r = await client.get("/api/v1/sites/config", params={"address": f"30023:{ALICE_HEX}:post"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_site_categories(client, network):
    network.add_document(_publication("essays"))
    network.add_document(make_event(Kind.PUBLICATION_INDEX, tags=[["d", "essays"], ["title", "Essays"]]))

    r = await client.get("/api/v1/sites/categories", params={"address": PUBLICATION})
    assert r.status_code == 200
    assert [c["title"] for c in r.json()] == ["Essays"]


@pytest.mark.asyncio
async def test_site_categories_of_placeholder_are_empty(client):
    r = await client.get("/api/v1/sites/categories", params={"address": PUBLICATION})
    assert r.status_code == 200
    assert r.json() == []


@pytest.mark.asyncio
async def test_hosted_site_config(client, network, db_session):
    db_session.add(Site(subdomain="alice", address=PUBLICATION, theme="solar"))
    await db_session.commit()
    network.add_document(_publication())

    r = await client.get("/api/v1/sites/alice/config")
    assert r.status_code == 200
    assert r.json()["theme"] == "solar"
    assert r.json()["title"] == "Blog"


@pytest.mark.asyncio
async def test_hosted_site_missing(client):
    r = await client.get("/api/v1/sites/nobody/config")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_hosted_site_with_broken_address(client, db_session):
    db_session.add(Site(subdomain="broken", address="naddr1broken"))
    await db_session.commit()

    r = await client.get("/api/v1/sites/broken/config")
    assert r.status_code == 400


# -----------------------------------------------------------------------------
