#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Reference collector
===================
Finds every identifier in a piece of (HTML) text and produces

  batch        one Reference per distinct token, first-seen order
  occurrences  one entry per place the token appears, carrying that
               place's display text and inline/card preference

Two shapes are recognised:

  <a href="nostr:npub1…">inner</a>   anchor; the inner HTML becomes the
                                      display text.  Rendered inline unless
                                      the anchor asks for a card with a
                                      ``data-embed`` / ``data-nostr-embed``
                                      attribute or a ``nostr-embed`` /
                                      ``nostr-card`` class.
  nostr:npub1…                        bare token outside any tag; rendered
                                      as a card where one exists.

Tokens that fail to decode are left out of the batch (and left alone in the
text).
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

from unfold.core.errors import DecodeError
from unfold.services.identifiers import SCHEME, TOKEN_BODY, Reference, decode

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Patterns
# -----------------------------------------------------------------------------

ANCHOR_RE = re.compile(
    r"<a\b(?P<before>[^>]*?)\shref\s*=\s*(?P<q>[\"'])(?:nostr:)?(?P<token>" + TOKEN_BODY + r")(?P=q)"
    r"(?P<after>[^>]*)>(?P<inner>.*?)</a\s*>",
    re.IGNORECASE | re.DOTALL,
)

BARE_RE = re.compile(re.escape(SCHEME) + r"(?P<token>" + TOKEN_BODY + r")")

TAG_SPLIT_RE = re.compile(r"(<[^>]+>)")

_EMBED_ATTR_RE = re.compile(
    r"""(?:^|\s)data-(?:nostr-)?embed(?![\w-])(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+)))?""",
    re.IGNORECASE,
)
_CLASS_ATTR_RE = re.compile(r"""(?:^|\s)class\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)
_CARD_CLASSES = {"nostr-embed", "nostr-card"}


# -----------------------------------------------------------------------------

def wants_card(attributes: str) -> bool:
    """True when an anchor's attribute string opts in to a rich card."""
    m = _EMBED_ATTR_RE.search(attributes)
    if m:
        value = next((g for g in m.groups() if g is not None), "")
        if value.strip().lower() != "false":
            return True

    m = _CLASS_ATTR_RE.search(attributes)
    if m:
        classes = (m.group(1) or m.group(2) or "").split()
        if _CARD_CLASSES.intersection(c.lower() for c in classes):
            return True

    return False


def split_tags(text: str) -> list[str]:
    """Split *text* into alternating text and ``<…>`` tag segments."""
    return TAG_SPLIT_RE.split(text)


def is_tag(segment: str) -> bool:
    return segment.startswith("<")


# -----------------------------------------------------------------------------
# Collection
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Occurrence:
    reference: Reference
    in_anchor: bool


@dataclass
class Collection:
    batch: list[Reference] = field(default_factory=list)
    occurrences: list[Occurrence] = field(default_factory=list)

    def by_token(self) -> dict[str, Reference]:
        return {ref.raw_token: ref for ref in self.batch}


# -----------------------------------------------------------------------------

class _Collector:

    def __init__(self) -> None:
        self.collection = Collection()
        self._seen: dict[str, Optional[Reference]] = {}

    def reference(self, token: str) -> Optional[Reference]:
        key = token.lower()
        if key in self._seen:
            return self._seen[key]
        try:
            ref = decode(token)
        except DecodeError as exc:
            log.debug("Ignoring undecodable identifier %s: %s", exc.token, exc.reason)
            ref = None
        self._seen[key] = ref
        if ref is not None:
            self.collection.batch.append(ref)
        return ref

    def occurrence(self, token: str, display_text: Optional[str],
                   prefer_inline: bool, in_anchor: bool) -> None:
        ref = self.reference(token)
        if ref is not None:
            self.collection.occurrences.append(
                Occurrence(ref.for_occurrence(display_text, prefer_inline), in_anchor)
            )


# -----------------------------------------------------------------------------

def iter_anchors(text: str) -> Iterator[re.Match]:
    return ANCHOR_RE.finditer(text)


def collect(text: str) -> Collection:
    """Collect the identifier references in *text* for batching and rendering."""
    c = _Collector()

    # Every scheme-prefixed token counts for batching, wherever it sits.
    for m in BARE_RE.finditer(text):
        c.reference(m.group("token"))

    for m in iter_anchors(text):
        attributes = m.group("before") + " " + m.group("after")
        c.occurrence(
            m.group("token"),
            display_text=m.group("inner"),
            prefer_inline=not wants_card(attributes),
            in_anchor=True,
        )

    # Bare tokens, ignoring anything already consumed by an identifier anchor
    remainder = ANCHOR_RE.sub(" ", text)
    for segment in split_tags(remainder):
        if not segment or is_tag(segment):
            continue
        for m in BARE_RE.finditer(segment):
            c.occurrence(m.group("token"), display_text=None,
                         prefer_inline=False, in_anchor=False)

    return c.collection


# -----------------------------------------------------------------------------
