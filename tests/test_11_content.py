#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for category and post listings of a hosted site."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from unfold.schemas import Kind, SiteConfig
from unfold.services.content import ContentProvider
from tests.fakes import ALICE_HEX, make_event, make_longform


def _category(slug: str, title: str, posts: list[str]):
    return make_event(
        Kind.PUBLICATION_INDEX,
        tags=[["d", slug], ["title", title]] + [["a", f"30023:{ALICE_HEX}:{p}"] for p in posts],
    )


def _site(*categories: str) -> SiteConfig:
    return SiteConfig(
        coordinate=f"30040:{ALICE_HEX}:blog",
        title="Blog",
        category_coordinates=[f"30040:{ALICE_HEX}:{c}" for c in categories],
    )


@pytest.fixture
def content(store, cache):
    return ContentProvider(store, cache)


@pytest.fixture
def blog(network):
    network.add_document(_category("essays", "Essays", ["e1", "e2", "e3", "e4"]))
    network.add_document(_category("notes", "Notes", ["n1"]))
    for slug in ("e1", "e2", "e3", "e4", "n1"):
        network.add_document(make_longform(slug=slug, title=slug.upper()))
    return _site("essays", "notes")


# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_categories_in_site_order(content, blog):
    categories = await content.get_categories(blog)
    assert [c.title for c in categories] == ["Essays", "Notes"]
    assert categories[0].slug == "essays"
    assert categories[0].article_coordinates[0] == f"30023:{ALICE_HEX}:e1"


@pytest.mark.asyncio
async def test_category_posts(content, blog):
    posts = await content.get_category_posts(f"30040:{ALICE_HEX}:essays")
    assert [p.title for p in posts] == ["E1", "E2", "E3", "E4"]
    assert posts[0].summary == "What it is about"
    assert posts[0].coordinate == f"30023:{ALICE_HEX}:e1"


@pytest.mark.asyncio
async def test_home_posts_take_first_of_each_category(content, blog):
    posts = await content.get_home_posts(blog, limit=2)
    assert [p.slug for p in posts] == ["e1", "e2", "n1"]


@pytest.mark.asyncio
async def test_get_post_by_slug(content, blog):
    post = await content.get_post("e3", blog)
    assert post.title == "E3"
    assert await content.get_post("missing", blog) is None


@pytest.mark.asyncio
async def test_missing_and_invalid_coordinates_are_skipped(content, network, blog):
    site = _site("essays", "ghost")
    site = site.model_copy(update={"category_coordinates": site.category_coordinates + ["not-a-coordinate"]})
    categories = await content.get_categories(site)
    assert [c.slug for c in categories] == ["essays"]


@pytest.mark.asyncio
async def test_listings_are_cached(content, network, blog):
    await content.get_categories(blog)
    calls = len(network.calls["documents"])
    await content.get_categories(blog)
    assert len(network.calls["documents"]) == calls


@pytest.mark.asyncio
async def test_relay_failure_gives_empty_listing(content, network):
    network.failing.add("documents")
    assert await content.get_categories(_site("essays")) == []


@pytest.mark.asyncio
async def test_invalidate_site_cache(content, network, blog):
    assert len(await content.get_categories(blog)) == 2
    await content.get_home_posts(blog, limit=1)

    network.documents.pop(f"30040:{ALICE_HEX}:notes")
    assert len(await content.get_categories(blog)) == 2

    await content.invalidate_site_cache(blog)
    assert len(await content.get_categories(blog)) == 1
    assert [p.slug for p in await content.get_home_posts(blog, limit=1)] == ["e1"]


# -----------------------------------------------------------------------------
