#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pydantic v2 schemas: network events, the entities derived from them, and
request / response bodies for the HTTP surface.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import json
import time
from enum import IntEnum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Event kinds
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Kind(IntEnum):
    METADATA          = 0       # NIP-01 profile metadata
    TEXT_NOTE         = 1       # NIP-01
    PICTURE           = 20      # NIP-68
    LONGFORM          = 30023   # NIP-23
    LONGFORM_DRAFT    = 30024   # NIP-23
    PUBLICATION_INDEX = 30040   # NKBIP-01
    APP_DATA          = 30078   # NIP-78


def is_replaceable(kind: int) -> bool:
    return kind in (0, 3) or 10000 <= kind < 20000


def is_addressable(kind: int) -> bool:
    return 30000 <= kind < 40000


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Events
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Event(BaseModel):
    """A signed network event: a message, a profile record or a document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: list[list[Any]] = Field(default_factory=list)
    content: str = ""
    sig: str = ""

    def tag(self, name: str) -> Optional[str]:
        """First value of the first tag called *name*, if any."""
        for t in self.tags:
            if len(t) >= 2 and t[0] == name:
                return str(t[1])
        return None

    def tag_values(self, name: str) -> list[str]:
        return [str(t[1]) for t in self.tags if len(t) >= 2 and t[0] == name]

    @property
    def d_tag(self) -> Optional[str]:
        return self.tag("d")

    @property
    def coordinate(self) -> Optional[str]:
        if not is_addressable(self.kind):
            return None
        return f"{self.kind}:{self.pubkey}:{self.d_tag or ''}"

    def json_content(self) -> dict:
        """Content parsed as a JSON object, or {} when it is not one."""
        try:
            data = json.loads(self.content) if self.content else {}
        except (ValueError, TypeError):
            return {}
        return data if isinstance(data, dict) else {}


# -----------------------------------------------------------------------------

class ProfileMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    pubkey: str
    name: str = ""
    display_name: str = ""
    picture: str = ""
    about: str = ""
    nip05: str = ""
    website: str = ""
    lud16: str = ""
    created_at: int = 0
    source: Optional[Event] = Field(default=None, exclude=True, repr=False)

    @property
    def label(self) -> str:
        return self.name or self.display_name

    @classmethod
    def from_event(cls, event: Event) -> "ProfileMetadata":
        data = event.json_content()

        def _s(*keys: str) -> str:
            for k in keys:
                v = data.get(k)
                if isinstance(v, str) and v.strip():
                    return v.strip()
            return ""

        return cls(
            pubkey=event.pubkey,
            name=_s("name", "username"),
            display_name=_s("display_name", "displayName"),
            picture=_s("picture", "image"),
            about=_s("about"),
            nip05=_s("nip05"),
            website=_s("website"),
            lud16=_s("lud16"),
            created_at=event.created_at,
            source=event,
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sites
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

PLACEHOLDER_TITLE = "Loading..."


class SiteConfig(BaseModel):
    """Site configuration derived from the root publication event (kind 30040)."""

    model_config = ConfigDict(frozen=True)

    coordinate: str
    naddr: str = ""
    title: str = ""
    description: str = ""
    logo_url: Optional[str] = None
    category_coordinates: list[str] = Field(default_factory=list)
    owner_id: str = ""
    theme: str = "default"
    is_placeholder: bool = False

    @classmethod
    def from_event(cls, event: Event, coordinate: str, naddr: str = "",
                   theme: str = "default") -> "SiteConfig":
        title = ""
        description = ""
        logo: Optional[str] = None
        categories: list[str] = []

        for t in event.tags:
            if len(t) < 2:
                continue
            name, value = t[0], str(t[1])
            if name in ("title", "name"):
                title = value
            elif name in ("description", "summary"):
                description = value
            elif name in ("image", "thumb", "logo"):
                logo = value
            elif name == "a":
                categories.append(value)

        # Older publications keep their metadata as JSON in the content
        if not title and event.content:
            data = event.json_content()
            title = str(data.get("title") or data.get("name") or "")
            description = description or str(data.get("description") or "")
            logo = logo or data.get("image") or data.get("logo")

        return cls(
            coordinate=coordinate,
            naddr=naddr,
            title=title,
            description=description,
            logo_url=logo,
            category_coordinates=categories,
            owner_id=event.pubkey,
            theme=theme,
        )

    @classmethod
    def placeholder(cls, coordinate: str, naddr: str = "",
                    theme: str = "default") -> "SiteConfig":
        return cls(
            coordinate=coordinate,
            naddr=naddr,
            title=PLACEHOLDER_TITLE,
            owner_id="",
            theme=theme,
            is_placeholder=True,
        )


# -----------------------------------------------------------------------------

class AppData(BaseModel):
    """
    Site definition stored on the network (kind 30078).

    Tags: ``["d", id]``, ``["a", <publication address>]`` (required),
    ``["theme", name]`` (optional), ``["alt", ...]``.
    """

    model_config = ConfigDict(frozen=True)

    address: str
    publication_address: str
    theme: str = "default"
    title: str = ""

    @classmethod
    def from_event(cls, event: Event, address: str) -> "AppData":
        publication = event.tag("a")
        if not publication:
            raise ValueError('app data event is missing its "a" tag')
        return cls(
            address=address,
            publication_address=publication,
            theme=event.tag("theme") or "default",
            title=event.content,
        )


# -----------------------------------------------------------------------------

class CategoryData(BaseModel):
    model_config = ConfigDict(frozen=True)

    slug: str
    title: str
    coordinate: str
    article_coordinates: list[str] = Field(default_factory=list)

    @classmethod
    def from_event(cls, event: Event, coordinate: str) -> "CategoryData":
        title = event.tag("title") or event.tag("name") or ""
        if not title:
            data = event.json_content()
            title = str(data.get("title") or data.get("name") or "")
        return cls(
            slug=event.d_tag or "",
            title=title,
            coordinate=coordinate,
            article_coordinates=event.tag_values("a"),
        )


# -----------------------------------------------------------------------------

class PostData(BaseModel):
    model_config = ConfigDict(frozen=True)

    slug: str
    title: str
    summary: str = ""
    content: str = ""
    image: Optional[str] = None
    published_at: int = 0
    pubkey: str = ""
    coordinate: str = ""

    @classmethod
    def from_event(cls, event: Event) -> "PostData":
        published = event.tag("published_at")
        try:
            published_at = int(published) if published else event.created_at
        except ValueError:
            published_at = event.created_at
        slug = event.d_tag or ""
        return cls(
            slug=slug,
            title=event.tag("title") or "",
            summary=event.tag("summary") or "",
            content=event.content,
            image=event.tag("image") or event.tag("thumb"),
            published_at=published_at or int(time.time()),
            pubkey=event.pubkey,
            coordinate=f"{event.kind}:{event.pubkey}:{slug}",
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HTTP
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

RENDER_FORMATS = ("html", "markdown")


class RenderRequest(BaseModel):
    content: str = Field(default="", max_length=1_000_000)
    format: Literal["html", "markdown"] = "markdown"


class RenderResponse(BaseModel):
    html: str
    format: str
