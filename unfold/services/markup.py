#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Markdown renderer
=================
Long-form content is markdown; it is rendered to HTML here (mistune with
tables, strikethrough and URL autolinks, Pygments for fenced code) before
its references are resolved.

External links open in a new tab.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import html
import re

import mistune
from mistune.plugins.formatting import strikethrough
from mistune.plugins.table import table
from mistune.plugins.url import url
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound


# -----------------------------------------------------------------------------

def _highlight_code(code: str, lang: str) -> str:
    """Highlight *code* using Pygments.  Unknown languages render as plain text."""
    try:
        lexer = get_lexer_by_name(lang.strip(), stripall=True) if lang.strip() else TextLexer()
    except ClassNotFound:
        lexer = TextLexer()
    return highlight(code, lexer, HtmlFormatter(nowrap=False, cssclass="highlight"))


class _HighlightRenderer(mistune.HTMLRenderer):
    def codespan(self, code: str) -> str:
        return f"<code>{html.escape(code)}</code>"

    def block_code(self, code: str, **kwargs) -> str:
        info = kwargs.get("info") or ""
        lang = info.split()[0] if info else ""
        if lang:
            return _highlight_code(code, lang)
        return f"<pre><code>{html.escape(code)}</code></pre>"


def _make_md_renderer():
    return mistune.create_markdown(
        renderer=_HighlightRenderer(escape=False),
        plugins=[table, strikethrough, url],
    )


_md_renderer = None


def _get_md_renderer():
    global _md_renderer
    if _md_renderer is None:
        _md_renderer = _make_md_renderer()
    return _md_renderer


# -----------------------------------------------------------------------------

_EXT_LINK_RE = re.compile(
    r'<a\s([^>]*href=["\'](?:https?://|//)[^"\'>][^>]*)>',
    re.IGNORECASE,
)


def _add_external_link_targets(html_text: str) -> str:
    """Add target="_blank" rel="noopener noreferrer" to all external <a> tags."""
    def _patch(m: re.Match) -> str:
        attrs = m.group(1)
        if "target=" in attrs:
            return m.group(0)
        return f'<a {attrs} target="_blank" rel="noopener noreferrer">'
    return _EXT_LINK_RE.sub(_patch, html_text)


# -----------------------------------------------------------------------------

def markdown_to_html(content: str) -> str:
    return _add_external_link_targets(_get_md_renderer()(content))


# -----------------------------------------------------------------------------
