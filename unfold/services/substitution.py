#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Token substitution
==================
Two passes over the text, one substitutor per pipeline run:

  1. identifier anchors  ``<a href="nostr:…">inner</a>`` are replaced whole,
     inner HTML as display text, card only when the anchor opts in
  2. bare ``nostr:…`` tokens in text segments (never inside a tag) are
     replaced, card preferred

Each rendered fragment is parked behind a sentinel as soon as it is produced,
so the second pass never sees the output of the first.  Sentinels are put
back at the very end.

This is regex and segment based, not a DOM walk: markup that confuses the
tag splitter (``>`` inside attribute values, comments containing tags)
can confuse it too.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
from collections.abc import Callable

from unfold.services.collector import ANCHOR_RE, BARE_RE, is_tag, split_tags, wants_card
from unfold.services.identifiers import Reference

# Renders one occurrence; the reference carries display_text / prefer_inline
RenderFn = Callable[[Reference], str]

_SENTINEL = "\x00NOSTR{}\x00"
_SENTINEL_RE = re.compile(r"\x00NOSTR(\d+)\x00")


# -----------------------------------------------------------------------------

class TokenSubstitutor:

    def __init__(self, references: dict[str, Reference], render: RenderFn) -> None:
        self._references = references
        self._render = render
        self._parked: list[str] = []

    def _park(self, fragment: str) -> str:
        self._parked.append(fragment)
        return _SENTINEL.format(len(self._parked) - 1)

    def _lookup(self, token: str) -> Reference | None:
        return self._references.get(token.lower())

    # -------------------------------------------------------------------------

    def replace_anchors(self, text: str) -> str:
        def _anchor(m: re.Match) -> str:
            ref = self._lookup(m.group("token"))
            if ref is None:
                return m.group(0)
            attributes = m.group("before") + " " + m.group("after")
            occurrence = ref.for_occurrence(m.group("inner"), not wants_card(attributes))
            return self._park(self._render(occurrence))

        return ANCHOR_RE.sub(_anchor, text)

    def replace_bare(self, text: str) -> str:
        def _bare(m: re.Match) -> str:
            ref = self._lookup(m.group("token"))
            if ref is None:
                return m.group(0)
            return self._park(self._render(ref.for_occurrence(None, False)))

        segments = split_tags(text)
        for i, segment in enumerate(segments):
            if segment and not is_tag(segment):
                segments[i] = BARE_RE.sub(_bare, segment)
        return "".join(segments)

    def restore(self, text: str) -> str:
        return _SENTINEL_RE.sub(lambda m: self._parked[int(m.group(1))], text)

    # -------------------------------------------------------------------------

    def substitute(self, text: str) -> str:
        # NUL never appears in valid HTML; dropping it keeps sentinels unambiguous
        text = text.replace("\x00", "")
        return self.restore(self.replace_bare(self.replace_anchors(text)))


# -----------------------------------------------------------------------------
