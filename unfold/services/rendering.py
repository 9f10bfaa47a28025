#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Renderer dispatch
=================
Turns one resolved reference into an HTML fragment.

  profile            <a href="/p/<npub>" class="nostr-mention">@label</a>
  message, picture   picture card              (card wanted, event found)
  nevent             event card with author    (card wanted, event found)
  message            <a href="/e/<token>" class="nostr-link">text</a>
  document           long-form or document card (card wanted, found)
  document           <a href="/article/<token>"> for long-form, else /e/

Cards are Jinja2 templates under ``unfold/templates/cards``.  Whatever goes
wrong while rendering a card, the reference falls back to its plain link.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

from fastapi.templating import Jinja2Templates
from markupsafe import Markup, escape

from unfold.core.errors import RenderError
from unfold.schemas import Event, Kind, ProfileMetadata
from unfold.services.identifiers import (
    Reference,
    ReferenceKind,
    coordinate_to_naddr,
    encode_npub,
    is_identifier,
    shorten,
)

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

PICTURE_CARD  = "cards/picture.html"
EVENT_CARD    = "cards/event.html"
LONGFORM_CARD = "cards/longform.html"
DOCUMENT_CARD = "cards/document.html"

EXCERPT_LENGTH = 280


# -----------------------------------------------------------------------------
# Template capability
# -----------------------------------------------------------------------------

class TemplateRenderer(Protocol):
    def render(self, name: str, context: dict[str, Any]) -> str: ...


class JinjaTemplateRenderer:
    """Card templates through Starlette's Jinja2 environment (autoescaping on)."""

    def __init__(self, directory: Path | str = TEMPLATE_DIR) -> None:
        self._templates = Jinja2Templates(directory=str(directory))
        self._templates.env.filters["timestamp"] = _format_timestamp

    def render(self, name: str, context: dict[str, Any]) -> str:
        return self._templates.get_template(name).render(context).strip()


def _format_timestamp(value: Optional[int]) -> str:
    if not value:
        return ""
    return datetime.fromtimestamp(int(value), tz=timezone.utc).strftime("%Y-%m-%d")


# -----------------------------------------------------------------------------
# Context helpers
# -----------------------------------------------------------------------------

def _excerpt(text: str, limit: int = EXCERPT_LENGTH) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit].rstrip() + "…"


def _picture_urls(event: Event) -> list[str]:
    """Image URLs from ``imeta`` tags (``["imeta", "url https://…", …]``), else url/image tags."""
    urls: list[str] = []
    for t in event.tags:
        if t and t[0] == "imeta":
            for entry in t[1:]:
                key, _, value = str(entry).partition(" ")
                if key == "url" and value:
                    urls.append(value.strip())
    if not urls:
        urls = event.tag_values("url") + event.tag_values("image")
    return [u for u in urls if u.startswith(("https://", "http://"))]


def _author_context(event: Event, author: Optional[ProfileMetadata]) -> dict[str, Any]:
    npub = encode_npub(event.pubkey)
    if author is not None and author.label:
        name = author.label
    else:
        name = shorten(npub)
    return {
        "author_name": name,
        "author_picture": author.picture if author is not None else "",
        "author_href": f"/p/{npub}",
    }


def _link_token(ref: Reference) -> str:
    """Bech32 token for hrefs; plain coordinates are re-encoded as naddr."""
    if is_identifier(ref.raw_token):
        return ref.raw_token
    return coordinate_to_naddr(ref.canonical_id, ref.location_hints)


# -----------------------------------------------------------------------------
# Dispatch
# -----------------------------------------------------------------------------

class RendererDispatch:

    def __init__(self, templates: TemplateRenderer) -> None:
        self.templates = templates

    def render(
        self,
        ref: Reference,
        entity: Any,
        prefer_inline: bool,
        display_text: Optional[str] = None,
        author: Optional[ProfileMetadata] = None,
    ) -> str:
        """
        HTML for *ref*.  *entity* is the resolved ProfileMetadata / Event or
        None; *author* is the profile of a message's author when known.
        *display_text* is inner HTML taken from the source anchor and is
        emitted as-is.
        """
        try:
            return self._dispatch(ref, entity, prefer_inline, display_text, author)
        except Exception as exc:
            err = exc if isinstance(exc, RenderError) else RenderError(f"{ref.raw_token}: {exc}")
            log.warning("Falling back to plain link: %s", err)
            return self.plain_link(ref, entity, display_text)

    # -------------------------------------------------------------------------

    def _dispatch(self, ref, entity, prefer_inline, display_text, author) -> str:
        kind = ref.kind

        if kind in (ReferenceKind.PROFILE, ReferenceKind.PROFILE_WITH_HINTS):
            profile = entity if isinstance(entity, ProfileMetadata) else None
            return self.mention(ref, profile, display_text)

        if kind in (ReferenceKind.SINGLE_MESSAGE, ReferenceKind.SINGLE_MESSAGE_WITH_HINTS):
            event = entity if isinstance(entity, Event) else None
            if event is not None and not prefer_inline:
                if event.kind == Kind.PICTURE:
                    return self._card(PICTURE_CARD, self._picture_context(ref, event, author))
                if kind is ReferenceKind.SINGLE_MESSAGE_WITH_HINTS:
                    return self._card(EVENT_CARD, self._event_context(ref, event, author))
            return self.plain_link(ref, event, display_text)

        if kind is ReferenceKind.ADDRESSABLE_DOCUMENT:
            event = entity if isinstance(entity, Event) else None
            if event is not None and not prefer_inline:
                if event.kind == Kind.LONGFORM:
                    return self._card(LONGFORM_CARD, self._longform_context(ref, event, author))
                return self._card(DOCUMENT_CARD, self._document_context(ref, event))
            return self.plain_link(ref, event, display_text)

        raise AssertionError(f"unhandled reference kind: {kind!r}")

    def _card(self, template: str, context: dict[str, Any]) -> str:
        try:
            return self.templates.render(template, context)
        except Exception as exc:
            raise RenderError(f"template {template} failed: {exc}") from exc

    # -------------------------------------------------------------------------
    # Inline forms
    # -------------------------------------------------------------------------

    def mention(self, ref: Reference, profile: Optional[ProfileMetadata],
                display_text: Optional[str] = None) -> str:
        npub = ref.raw_token if ref.kind is ReferenceKind.PROFILE else encode_npub(ref.canonical_id)

        if display_text and display_text.strip():
            label = Markup(display_text.strip().removeprefix("@"))
        elif profile is not None and profile.name:
            label = escape(profile.name)
        elif profile is not None and profile.display_name:
            label = escape(profile.display_name)
        else:
            label = escape(shorten(npub))

        return f'<a href="/p/{npub}" class="nostr-mention">@{label}</a>'

    def plain_link(self, ref: Reference, entity: Any = None,
                   display_text: Optional[str] = None) -> str:
        token = _link_token(ref)
        text = Markup(display_text) if display_text else escape(token)

        if ref.kind in (ReferenceKind.PROFILE, ReferenceKind.PROFILE_WITH_HINTS):
            profile = entity if isinstance(entity, ProfileMetadata) else None
            return self.mention(ref, profile, display_text)

        if ref.kind is ReferenceKind.ADDRESSABLE_DOCUMENT:
            doc_kind = entity.kind if isinstance(entity, Event) else ref.event_kind
            path = "article" if doc_kind == Kind.LONGFORM else "e"
            return f'<a href="/{path}/{token}" class="nostr-link">{text}</a>'

        return f'<a href="/e/{token}" class="nostr-link">{text}</a>'

    # -------------------------------------------------------------------------
    # Card contexts
    # -------------------------------------------------------------------------

    def _picture_context(self, ref: Reference, event: Event,
                         author: Optional[ProfileMetadata]) -> dict[str, Any]:
        return {
            "href": f"/e/{_link_token(ref)}",
            "title": event.tag("title") or "",
            "images": _picture_urls(event),
            "caption": _excerpt(event.content),
            "created_at": event.created_at,
            **_author_context(event, author),
        }

    def _event_context(self, ref: Reference, event: Event,
                       author: Optional[ProfileMetadata]) -> dict[str, Any]:
        return {
            "href": f"/e/{_link_token(ref)}",
            "kind": event.kind,
            "excerpt": _excerpt(event.content),
            "created_at": event.created_at,
            **_author_context(event, author),
        }

    def _longform_context(self, ref: Reference, event: Event,
                          author: Optional[ProfileMetadata]) -> dict[str, Any]:
        published = event.tag("published_at")
        return {
            "href": f"/article/{_link_token(ref)}",
            "title": event.tag("title") or event.d_tag or "",
            "summary": event.tag("summary") or _excerpt(event.content, 200),
            "image": event.tag("image") or "",
            "published_at": int(published) if published and published.isdigit() else event.created_at,
            **_author_context(event, author),
        }

    def _document_context(self, ref: Reference, event: Event) -> dict[str, Any]:
        return {
            "href": f"/e/{_link_token(ref)}",
            "title": event.tag("title") or event.tag("name") or event.d_tag or "",
            "summary": event.tag("summary") or event.tag("description") or "",
            "image": event.tag("image") or "",
            "kind": event.kind,
        }


# -----------------------------------------------------------------------------
