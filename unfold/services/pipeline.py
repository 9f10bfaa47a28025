#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Reference pipeline
==================
text → collect → resolve → render → substitute → HTML

One call is one run: references are collected and deduplicated, every lookup
class is resolved in one go, then each occurrence is rendered and put back
into the text.  Bad references degrade to plain links or stay as they are;
the only thing that raises is input that is not a string.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging

from unfold.schemas import Event
from unfold.services.collector import collect
from unfold.services.identifiers import Reference
from unfold.services.markup import markdown_to_html
from unfold.services.rendering import RendererDispatch
from unfold.services.resolver import BatchResolver, Resolution
from unfold.services.substitution import TokenSubstitutor

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class ReferencePipeline:

    def __init__(self, resolver: BatchResolver, renderer: RendererDispatch) -> None:
        self.resolver = resolver
        self.renderer = renderer

    async def resolve_and_render(self, text: str) -> str:
        if not isinstance(text, str):
            raise TypeError(f"text must be str, not {type(text).__name__}")

        collection = collect(text)
        if not collection.batch:
            return text

        resolution = await self.resolver.resolve(collection.batch)

        def render(ref: Reference) -> str:
            entity = resolution.entity_for(ref)
            author = resolution.author_of(entity) if isinstance(entity, Event) else None
            return self.renderer.render(ref, entity, ref.prefer_inline, ref.display_text, author)

        html = TokenSubstitutor(collection.by_token(), render).substitute(text)
        log.debug("Rendered %d reference(s) in %d occurrence(s)",
                  len(collection.batch), len(collection.occurrences))
        return html

    async def render_markdown(self, markdown: str) -> str:
        if not isinstance(markdown, str):
            raise TypeError(f"markdown must be str, not {type(markdown).__name__}")
        return await self.resolve_and_render(markdown_to_html(markdown))

    async def resolve(self, text: str) -> Resolution:
        """Resolve the references in *text* without rendering anything."""
        return await self.resolver.resolve(collect(text).batch)


# -----------------------------------------------------------------------------
