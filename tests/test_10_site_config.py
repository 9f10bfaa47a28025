#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for loading hosted site configurations."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from unfold.core.errors import MalformedIdentifier, UnsupportedKind
from unfold.schemas import PLACEHOLDER_TITLE, Event, Kind
from unfold.services.identifiers import encode_naddr, encode_note
from unfold.services.site_config import SiteConfigLoader, decode_site_address
from tests.fakes import ALICE_HEX, coordinate_of, make_event


PUBLICATION = f"30040:{ALICE_HEX}:blog"
APP = f"30078:{ALICE_HEX}:site"


def make_publication(title: str = "Alice's Blog") -> Event:
    return make_event(Kind.PUBLICATION_INDEX, tags=[
        ["d", "blog"],
        ["title", title],
        ["summary", "Thoughts"],
        ["image", "https://img.example/logo.png"],
        ["a", f"30040:{ALICE_HEX}:essays"],
        ["a", f"30040:{ALICE_HEX}:notes"],
    ])


def make_app_data(target: str = PUBLICATION, theme: str = "dark") -> Event:
    return make_event(Kind.APP_DATA, tags=[["d", "site"], ["a", target], ["theme", theme]])


@pytest.fixture
def loader(store, cache):
    return SiteConfigLoader(store, cache, fresh_ttl=120, stale_ttl=3600)


# ── Addresses ─────────────────────────────────────────────────────────────────

def test_site_address_accepts_naddr_and_coordinates():
    assert decode_site_address(encode_naddr(30040, ALICE_HEX, "blog")).canonical_id == PUBLICATION
    assert decode_site_address(APP).event_kind == Kind.APP_DATA


def test_site_address_rejects_other_kinds():
    with pytest.raises(UnsupportedKind):
        decode_site_address(f"30023:{ALICE_HEX}:post")
    with pytest.raises(UnsupportedKind):
        decode_site_address(encode_note("a" * 64))


def test_site_address_rejects_garbage():
    with pytest.raises(MalformedIdentifier):
        decode_site_address("naddr1notreally")


# ── Loading ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_publication_address(loader, network):
    network.add_document(make_publication())
    config = await loader.resolve_site_config(encode_naddr(30040, ALICE_HEX, "blog"))

    assert not config.is_placeholder
    assert config.coordinate == PUBLICATION
    assert config.naddr == encode_naddr(30040, ALICE_HEX, "blog")
    assert config.title == "Alice's Blog"
    assert config.description == "Thoughts"
    assert config.logo_url == "https://img.example/logo.png"
    assert config.category_coordinates == [f"30040:{ALICE_HEX}:essays", f"30040:{ALICE_HEX}:notes"]
    assert config.owner_id == ALICE_HEX
    assert config.theme == "default"


@pytest.mark.asyncio
async def test_app_data_follows_a_tag_and_takes_theme(loader, network):
    network.add_document(make_app_data())
    network.add_document(make_publication())

    config = await loader.resolve_site_config(APP)
    assert config.coordinate == PUBLICATION
    assert config.theme == "dark"
    assert [c for c, _ in network.calls["documents"]] == [APP, PUBLICATION]


@pytest.mark.asyncio
async def test_explicit_theme_wins(loader, network):
    network.add_document(make_app_data())
    network.add_document(make_publication())
    assert (await loader.resolve_site_config(APP, theme="light")).theme == "light"
    assert (await loader.resolve_site_config(APP)).theme == "dark"


@pytest.mark.asyncio
async def test_app_data_must_point_at_publication(loader, network):
    network.add_document(make_app_data(target=f"30023:{ALICE_HEX}:post"))
    config = await loader.resolve_site_config(APP)
    assert config.is_placeholder


# ── Failure ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_missing_publication_gives_placeholder(loader):
    config = await loader.resolve_site_config(PUBLICATION)
    assert config.is_placeholder
    assert config.title == PLACEHOLDER_TITLE
    assert config.category_coordinates == []


@pytest.mark.asyncio
async def test_placeholder_is_retried(loader, network, clock):
    network.failing.add("documents")
    assert (await loader.resolve_site_config(PUBLICATION)).is_placeholder

    network.failing.clear()
    network.add_document(make_publication())
    clock.advance(1)
    config = await loader.resolve_site_config(PUBLICATION)
    assert not config.is_placeholder
    assert config.title == "Alice's Blog"


@pytest.mark.asyncio
async def test_config_is_cached(loader, network):
    network.add_document(make_publication())
    await loader.resolve_site_config(PUBLICATION)
    await loader.resolve_site_config(encode_naddr(30040, ALICE_HEX, "blog"))
    assert len(network.calls["documents"]) == 1


@pytest.mark.asyncio
async def test_bad_addresses_raise(loader):
    with pytest.raises(UnsupportedKind):
        await loader.resolve_site_config(f"1:{ALICE_HEX}:x")
    with pytest.raises(MalformedIdentifier):
        await loader.resolve_site_config("30040:zzz:blog")


# ── invalidate / warm ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_invalidate_forces_reload(loader, network):
    pub = network.add_document(make_publication("Old"))
    assert (await loader.resolve_site_config(PUBLICATION)).title == "Old"

    network.documents[coordinate_of(pub)] = make_publication("New")
    assert (await loader.resolve_site_config(PUBLICATION)).title == "Old"

    await loader.invalidate(PUBLICATION)
    assert (await loader.resolve_site_config(PUBLICATION)).title == "New"


@pytest.mark.asyncio
async def test_warm(loader, network):
    assert await loader.warm(PUBLICATION) is False
    network.add_document(make_publication())
    assert await loader.warm(PUBLICATION) is True
    assert len(network.calls["documents"]) == 2

    await loader.resolve_site_config(PUBLICATION)
    assert len(network.calls["documents"]) == 2


# -----------------------------------------------------------------------------
