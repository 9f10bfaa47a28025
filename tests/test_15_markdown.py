#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for markdown rendering of long-form content."""
# -----------------------------------------------------------------------------

from __future__ import annotations

from unfold.services.markup import markdown_to_html


# -----------------------------------------------------------------------------

def test_basic_markdown():
    html = markdown_to_html("# Title\n\nSome *emphasis* and ~~strike~~.")
    assert "<h1>Title</h1>" in html
    assert "<em>emphasis</em>" in html
    assert "<del>strike</del>" in html


def test_tables():
    html = markdown_to_html("| a | b |\n|---|---|\n| 1 | 2 |\n")
    assert "<table>" in html
    assert "<td>1</td>" in html


def test_fenced_code_is_highlighted():
    html = markdown_to_html("```python\ndef f():\n    return 1\n```\n")
    assert '<div class="highlight">' in html
    assert '<span class="k">def</span>' in html


def test_unknown_language_falls_back_to_plain_text():
    html = markdown_to_html("```nosuchlang\nx < y\n```\n")
    assert '<div class="highlight">' in html
    assert "x &lt; y" in html


def test_plain_code_block_is_escaped():
    html = markdown_to_html("```\n<b>\n```\n")
    assert "<pre><code>&lt;b&gt;\n</code></pre>" in html


def test_inline_code_is_escaped():
    html = markdown_to_html("`<b>bold</b>`")
    assert "<code>" in html
    assert "<b>" not in html


def test_external_links_open_in_new_tab():
    html = markdown_to_html("[site](https://example.com) and [local](/e/note1x)")
    assert '<a href="https://example.com" target="_blank" rel="noopener noreferrer">site</a>' in html
    assert '<a href="/e/note1x">local</a>' in html


def test_bare_urls_are_linked():
    html = markdown_to_html("see https://example.com/page")
    assert 'href="https://example.com/page"' in html


def test_nostr_links_are_kept_for_resolution():
    html = markdown_to_html("[post](nostr:naddr1abc) and nostr:npub1xyz")
    assert '<a href="nostr:naddr1abc">post</a>' in html
    assert "nostr:npub1xyz" in html


# -----------------------------------------------------------------------------
