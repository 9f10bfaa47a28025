#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Identifier codec
================
Turns a compact self-describing identifier into a typed ``Reference``.

Accepted shapes (each optionally prefixed with the ``nostr:`` scheme):

  npub1…      profile                       → hex pubkey
  nprofile1…  profile with relay hints      → hex pubkey
  note1…      single message                → hex event id
  nevent1…    single message with hints     → hex event id
  naddr1…     addressable document          → "kind:pubkey:slug"
  kind:pubkey:slug   plain coordinate       → "kind:pubkey:slug"

Bech32 checksums and 5↔8-bit regrouping come from the ``bech32`` package.
Its ``bech32_decode`` refuses strings longer than 90 characters (a BIP-173
limit for addresses) which every ``nevent`` / ``naddr`` with a relay hint
exceeds, so the framing is done here on top of its primitives.

Decoding is pure: no I/O, no network.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import bech32

from unfold.core.errors import MalformedIdentifier, UnsupportedKind


# -----------------------------------------------------------------------------

SCHEME = "nostr:"

# NIP-19 suggests 5000 as a sane upper bound for TLV identifiers.
MAX_TOKEN_LENGTH = 5000

IDENTIFIER_PREFIXES = ("npub1", "nprofile1", "note1", "nevent1", "naddr1")

# Bech32 data charset: digits and lowercase letters minus 1, b, i, o.
TOKEN_BODY = r"(?:npub1|nprofile1|note1|nevent1|naddr1)[02-9ac-hj-np-z]+"

_HEX64_RE = re.compile(r"^[0-9a-f]{64}$")

# TLV types
_TLV_SPECIAL = 0
_TLV_RELAY   = 1
_TLV_AUTHOR  = 2
_TLV_KIND    = 3


# -----------------------------------------------------------------------------
# Reference types
# -----------------------------------------------------------------------------

class LookupClass(Enum):
    PROFILE  = "profile"
    MESSAGE  = "message"
    DOCUMENT = "document"


class ReferenceKind(Enum):
    PROFILE                   = "npub"
    PROFILE_WITH_HINTS        = "nprofile"
    SINGLE_MESSAGE            = "note"
    SINGLE_MESSAGE_WITH_HINTS = "nevent"
    ADDRESSABLE_DOCUMENT      = "naddr"

    @property
    def lookup_class(self) -> LookupClass:
        if self in (ReferenceKind.PROFILE, ReferenceKind.PROFILE_WITH_HINTS):
            return LookupClass.PROFILE
        if self in (ReferenceKind.SINGLE_MESSAGE, ReferenceKind.SINGLE_MESSAGE_WITH_HINTS):
            return LookupClass.MESSAGE
        if self is ReferenceKind.ADDRESSABLE_DOCUMENT:
            return LookupClass.DOCUMENT
        raise AssertionError(f"unhandled reference kind: {self!r}")


@dataclass(frozen=True)
class Reference:
    """
    A decoded identifier.  ``canonical_id`` is the lookup key and is fixed at
    construction; per-occurrence variants are made with ``for_occurrence``.
    """

    kind: ReferenceKind
    raw_token: str
    canonical_id: str
    location_hints: tuple[str, ...] = ()
    display_text: Optional[str] = None
    prefer_inline: bool = False
    author_id: Optional[str] = None     # nevent author / naddr pubkey
    event_kind: Optional[int] = None    # nevent kind / naddr kind
    slug: Optional[str] = None          # naddr / coordinate d-tag

    @property
    def lookup_class(self) -> LookupClass:
        return self.kind.lookup_class

    def for_occurrence(self, display_text: Optional[str], prefer_inline: bool) -> "Reference":
        return dataclasses.replace(self, display_text=display_text, prefer_inline=prefer_inline)


# -----------------------------------------------------------------------------
# Bech32 framing
# -----------------------------------------------------------------------------

def _bech32_decode(token: str) -> tuple[str, bytes]:
    if len(token) > MAX_TOKEN_LENGTH:
        raise MalformedIdentifier(token[:32] + "…", "identifier too long")
    if token.lower() != token and token.upper() != token:
        raise MalformedIdentifier(token, "mixed-case identifier")
    token = token.lower()

    sep = token.rfind("1")
    if sep < 1 or sep + 7 > len(token):
        raise MalformedIdentifier(token, "missing separator or checksum")

    hrp = token[:sep]
    try:
        data = [bech32.CHARSET.index(c) for c in token[sep + 1:]]
    except ValueError:
        raise MalformedIdentifier(token, "invalid bech32 character") from None

    if bech32.bech32_polymod(bech32.bech32_hrp_expand(hrp) + data) != 1:
        raise MalformedIdentifier(token, "checksum mismatch")

    payload = bech32.convertbits(data[:-6], 5, 8, False)
    if payload is None:
        raise MalformedIdentifier(token, "invalid padding")
    return hrp, bytes(payload)


def _bech32_encode(hrp: str, payload: bytes) -> str:
    data = bech32.convertbits(list(payload), 8, 5, True)
    values = bech32.bech32_hrp_expand(hrp) + data
    polymod = bech32.bech32_polymod(values + [0] * 6) ^ 1
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(bech32.CHARSET[d] for d in data + checksum)


# -----------------------------------------------------------------------------
# TLV
# -----------------------------------------------------------------------------

def _parse_tlv(token: str, payload: bytes) -> dict[int, list[bytes]]:
    out: dict[int, list[bytes]] = {}
    i = 0
    while i < len(payload):
        if i + 2 > len(payload):
            raise MalformedIdentifier(token, "truncated TLV header")
        t, length = payload[i], payload[i + 1]
        value = payload[i + 2:i + 2 + length]
        if len(value) != length:
            raise MalformedIdentifier(token, "truncated TLV value")
        out.setdefault(t, []).append(value)
        i += 2 + length
    return out


def _build_tlv(entries: list[tuple[int, bytes]]) -> bytes:
    buf = bytearray()
    for t, value in entries:
        if len(value) > 255:
            raise ValueError(f"TLV value too long ({len(value)} bytes)")
        buf += bytes([t, len(value)]) + value
    return bytes(buf)


def _hex32(token: str, value: bytes, what: str) -> str:
    if len(value) != 32:
        raise MalformedIdentifier(token, f"{what} must be 32 bytes")
    return value.hex()


def _relays(tlv: dict[int, list[bytes]]) -> tuple[str, ...]:
    relays = []
    for raw in tlv.get(_TLV_RELAY, []):
        url = raw.decode("utf-8", errors="replace").strip()
        if url and url not in relays:
            relays.append(url)
    return tuple(relays)


def _kind(token: str, tlv: dict[int, list[bytes]], required: bool) -> Optional[int]:
    values = tlv.get(_TLV_KIND)
    if not values:
        if required:
            raise MalformedIdentifier(token, "kind missing")
        return None
    if len(values[0]) != 4:
        raise MalformedIdentifier(token, "kind must be 4 bytes")
    return int.from_bytes(values[0], "big")


# -----------------------------------------------------------------------------
# Public helpers
# -----------------------------------------------------------------------------

def strip_scheme(token: str) -> str:
    token = token.strip()
    if token[:len(SCHEME)].lower() == SCHEME:
        return token[len(SCHEME):]
    return token


def is_identifier(token: str) -> bool:
    """Shape check on the prefix only, no checksum."""
    return strip_scheme(token).lower().startswith(IDENTIFIER_PREFIXES)


def is_hex_key(value: str) -> bool:
    return bool(_HEX64_RE.match(value))


def shorten(token: str) -> str:
    """``npub1abcdef…xyz`` → ``npub1...vwxyz``."""
    return f"{token[:5]}...{token[-5:]}" if len(token) > 13 else token


# -----------------------------------------------------------------------------

def parse_coordinate(coordinate: str) -> tuple[int, str, str]:
    """Split ``kind:pubkey:slug`` into its parts.  Colons are allowed in the slug."""
    parts = coordinate.strip().split(":", 2)
    if len(parts) != 3 or not all(parts):
        raise MalformedIdentifier(coordinate, "coordinate must be kind:pubkey:slug")
    kind_s, author, slug = parts
    if not kind_s.isdigit():
        raise MalformedIdentifier(coordinate, "coordinate kind must be an integer")
    author = author.lower()
    if not is_hex_key(author):
        raise MalformedIdentifier(coordinate, "coordinate pubkey must be 64 hex characters")
    return int(kind_s), author, slug


def _looks_like_coordinate(token: str) -> bool:
    return ":" in token and token[:1].isdigit()


# -----------------------------------------------------------------------------
# Decoding
# -----------------------------------------------------------------------------

def decode(token: str) -> Reference:
    """
    Decode *token* into a Reference.

    Raises MalformedIdentifier for structurally broken input and
    UnsupportedKind for well-formed identifiers of a type this pipeline does
    not handle (``nsec``, ``nrelay``, …).
    """
    if not isinstance(token, str):
        raise TypeError(f"identifier must be str, not {type(token).__name__}")

    bare = strip_scheme(token)
    if not bare:
        raise MalformedIdentifier(token, "empty identifier")

    if _looks_like_coordinate(bare):
        kind, author, slug = parse_coordinate(bare)
        return Reference(
            kind=ReferenceKind.ADDRESSABLE_DOCUMENT,
            raw_token=bare,
            canonical_id=f"{kind}:{author}:{slug}",
            author_id=author,
            event_kind=kind,
            slug=slug,
        )

    hrp, payload = _bech32_decode(bare)
    bare = bare.lower()

    if hrp == "npub":
        pubkey = _hex32(bare, payload, "pubkey")
        return Reference(ReferenceKind.PROFILE, bare, pubkey)

    if hrp == "note":
        event_id = _hex32(bare, payload, "event id")
        return Reference(ReferenceKind.SINGLE_MESSAGE, bare, event_id)

    if hrp == "nprofile":
        tlv = _parse_tlv(bare, payload)
        if not tlv.get(_TLV_SPECIAL):
            raise MalformedIdentifier(bare, "nprofile without pubkey")
        pubkey = _hex32(bare, tlv[_TLV_SPECIAL][0], "pubkey")
        return Reference(
            ReferenceKind.PROFILE_WITH_HINTS, bare, pubkey,
            location_hints=_relays(tlv),
        )

    if hrp == "nevent":
        tlv = _parse_tlv(bare, payload)
        if not tlv.get(_TLV_SPECIAL):
            raise MalformedIdentifier(bare, "nevent without event id")
        event_id = _hex32(bare, tlv[_TLV_SPECIAL][0], "event id")
        author = tlv.get(_TLV_AUTHOR)
        return Reference(
            ReferenceKind.SINGLE_MESSAGE_WITH_HINTS, bare, event_id,
            location_hints=_relays(tlv),
            author_id=_hex32(bare, author[0], "author") if author else None,
            event_kind=_kind(bare, tlv, required=False),
        )

    if hrp == "naddr":
        tlv = _parse_tlv(bare, payload)
        if _TLV_SPECIAL not in tlv:
            raise MalformedIdentifier(bare, "naddr without identifier")
        if not tlv.get(_TLV_AUTHOR):
            raise MalformedIdentifier(bare, "naddr without author")
        try:
            slug = tlv[_TLV_SPECIAL][0].decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedIdentifier(bare, "naddr identifier is not UTF-8") from None
        author = _hex32(bare, tlv[_TLV_AUTHOR][0], "author")
        kind = _kind(bare, tlv, required=True)
        return Reference(
            ReferenceKind.ADDRESSABLE_DOCUMENT, bare, f"{kind}:{author}:{slug}",
            location_hints=_relays(tlv),
            author_id=author,
            event_kind=kind,
            slug=slug,
        )

    raise UnsupportedKind(bare, f"unsupported identifier type {hrp!r}")


def try_decode(token: str) -> Optional[Reference]:
    try:
        return decode(token)
    except (MalformedIdentifier, UnsupportedKind):
        return None


# -----------------------------------------------------------------------------
# Encoding
# -----------------------------------------------------------------------------

def _hex_bytes(value: str, what: str) -> bytes:
    value = value.lower()
    if not is_hex_key(value):
        raise ValueError(f"{what} must be 64 hex characters")
    return bytes.fromhex(value)


def encode_npub(pubkey: str) -> str:
    return _bech32_encode("npub", _hex_bytes(pubkey, "pubkey"))


def encode_note(event_id: str) -> str:
    return _bech32_encode("note", _hex_bytes(event_id, "event id"))


def encode_nprofile(pubkey: str, relays: list[str] | tuple[str, ...] = ()) -> str:
    entries = [(_TLV_SPECIAL, _hex_bytes(pubkey, "pubkey"))]
    entries += [(_TLV_RELAY, r.encode("utf-8")) for r in relays]
    return _bech32_encode("nprofile", _build_tlv(entries))


def encode_nevent(event_id: str, relays: list[str] | tuple[str, ...] = (),
                  author: Optional[str] = None, kind: Optional[int] = None) -> str:
    entries = [(_TLV_SPECIAL, _hex_bytes(event_id, "event id"))]
    entries += [(_TLV_RELAY, r.encode("utf-8")) for r in relays]
    if author:
        entries.append((_TLV_AUTHOR, _hex_bytes(author, "author")))
    if kind is not None:
        entries.append((_TLV_KIND, int(kind).to_bytes(4, "big")))
    return _bech32_encode("nevent", _build_tlv(entries))


def encode_naddr(kind: int, pubkey: str, slug: str,
                 relays: list[str] | tuple[str, ...] = ()) -> str:
    entries = [(_TLV_SPECIAL, slug.encode("utf-8"))]
    entries += [(_TLV_RELAY, r.encode("utf-8")) for r in relays]
    entries.append((_TLV_AUTHOR, _hex_bytes(pubkey, "pubkey")))
    entries.append((_TLV_KIND, int(kind).to_bytes(4, "big")))
    return _bech32_encode("naddr", _build_tlv(entries))


def coordinate_to_naddr(coordinate: str, relays: list[str] | tuple[str, ...] = ()) -> str:
    kind, author, slug = parse_coordinate(coordinate)
    return encode_naddr(kind, author, slug, relays)

