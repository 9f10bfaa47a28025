#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for identifier decoding and encoding."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from unfold.core.errors import DecodeError, MalformedIdentifier, UnsupportedKind
from unfold.services.identifiers import (
    LookupClass,
    ReferenceKind,
    coordinate_to_naddr,
    decode,
    encode_naddr,
    encode_nevent,
    encode_note,
    encode_nprofile,
    encode_npub,
    is_identifier,
    parse_coordinate,
    shorten,
    _bech32_encode,
    try_decode,
)
from tests.fakes import ALICE_HEX, ALICE_NPUB, BOB_HEX


NSEC = _bech32_encode("nsec", bytes(range(32)))
EVENT_ID = "a" * 64


# ── npub / note ───────────────────────────────────────────────────────────────

def test_decode_npub_reference_vector():
    ref = decode(ALICE_NPUB)
    assert ref.kind is ReferenceKind.PROFILE
    assert ref.canonical_id == ALICE_HEX
    assert ref.raw_token == ALICE_NPUB
    assert ref.lookup_class is LookupClass.PROFILE


def test_encode_npub_reference_vector():
    assert encode_npub(ALICE_HEX) == ALICE_NPUB


def test_decode_accepts_scheme_prefix():
    ref = decode("nostr:" + ALICE_NPUB)
    assert ref.canonical_id == ALICE_HEX
    assert ref.raw_token == ALICE_NPUB


def test_decode_uppercase_token():
    assert decode(ALICE_NPUB.upper()).canonical_id == ALICE_HEX


def test_decode_note():
    ref = decode(encode_note(EVENT_ID))
    assert ref.kind is ReferenceKind.SINGLE_MESSAGE
    assert ref.canonical_id == EVENT_ID
    assert ref.lookup_class is LookupClass.MESSAGE


# ── TLV kinds ─────────────────────────────────────────────────────────────────

def test_decode_nprofile_with_relays():
    token = encode_nprofile(BOB_HEX, ["wss://r.example.com", "wss://two.example.com"])
    ref = decode(token)
    assert ref.kind is ReferenceKind.PROFILE_WITH_HINTS
    assert ref.canonical_id == BOB_HEX
    assert ref.location_hints == ("wss://r.example.com", "wss://two.example.com")


def test_decode_nevent_with_author_and_kind():
    token = encode_nevent(EVENT_ID, ["wss://r.example.com"], author=ALICE_HEX, kind=20)
    ref = decode(token)
    assert ref.kind is ReferenceKind.SINGLE_MESSAGE_WITH_HINTS
    assert ref.canonical_id == EVENT_ID
    assert ref.author_id == ALICE_HEX
    assert ref.event_kind == 20
    assert ref.location_hints == ("wss://r.example.com",)


def test_decode_nevent_without_optional_fields():
    ref = decode(encode_nevent(EVENT_ID))
    assert ref.author_id is None
    assert ref.event_kind is None
    assert ref.location_hints == ()


def test_decode_naddr():
    token = encode_naddr(30023, ALICE_HEX, "my-article", ["wss://r.example.com"])
    ref = decode(token)
    assert ref.kind is ReferenceKind.ADDRESSABLE_DOCUMENT
    assert ref.canonical_id == f"30023:{ALICE_HEX}:my-article"
    assert ref.event_kind == 30023
    assert ref.author_id == ALICE_HEX
    assert ref.slug == "my-article"
    assert ref.lookup_class is LookupClass.DOCUMENT


def test_decode_naddr_with_empty_slug():
    ref = decode(encode_naddr(30040, ALICE_HEX, ""))
    assert ref.canonical_id == f"30040:{ALICE_HEX}:"


def test_long_naddr_beyond_bip173_length_decodes():
    relays = [f"wss://relay-{i}.example.com" for i in range(4)]
    token = encode_naddr(30023, ALICE_HEX, "a-rather-long-slug-for-an-article", relays)
    assert len(token) > 90
    assert decode(token).slug == "a-rather-long-slug-for-an-article"


def test_coordinate_to_naddr():
    coordinate = f"30040:{ALICE_HEX}:magazine"
    assert decode(coordinate_to_naddr(coordinate)).canonical_id == coordinate


# ── Coordinates ───────────────────────────────────────────────────────────────

def test_decode_plain_coordinate():
    ref = decode(f"30023:{ALICE_HEX}:slug:with:colons")
    assert ref.kind is ReferenceKind.ADDRESSABLE_DOCUMENT
    assert ref.slug == "slug:with:colons"
    assert ref.canonical_id == f"30023:{ALICE_HEX}:slug:with:colons"


def test_parse_coordinate_lowercases_author():
    kind, author, slug = parse_coordinate(f"1:{ALICE_HEX.upper()}:x")
    assert (kind, author, slug) == (1, ALICE_HEX, "x")


@pytest.mark.parametrize("coordinate", [
    f"30023:{ALICE_HEX}",            # missing slug
    f"30023:{ALICE_HEX}:",           # empty slug
    "30023:nothex:slug",             # author not hex
    f"3x023:{ALICE_HEX}:slug",       # kind not an integer
    f"30023:{ALICE_HEX[:-2]}:slug",  # author too short
])
def test_malformed_coordinates_rejected(coordinate):
    with pytest.raises(MalformedIdentifier):
        parse_coordinate(coordinate)


# ── Errors ────────────────────────────────────────────────────────────────────

def test_bad_checksum_is_malformed():
    broken = ALICE_NPUB[:-1] + ("q" if ALICE_NPUB[-1] != "q" else "p")
    with pytest.raises(MalformedIdentifier):
        decode(broken)


def test_invalid_character_is_malformed():
    with pytest.raises(MalformedIdentifier):
        decode("npub1bbbbbbbbbbbbbbbbbbbbbbbbbb")


def test_mixed_case_is_malformed():
    with pytest.raises(MalformedIdentifier):
        decode(ALICE_NPUB[:10] + ALICE_NPUB[10:].upper())


def test_nsec_is_unsupported():
    with pytest.raises(UnsupportedKind):
        decode(NSEC)


def test_decode_errors_are_value_errors():
    with pytest.raises(ValueError):
        decode("nostr:")
    assert issubclass(UnsupportedKind, DecodeError)


def test_non_string_raises_type_error():
    with pytest.raises(TypeError):
        decode(12345)


def test_try_decode_returns_none():
    assert try_decode("npub1nothingtoseehere") is None
    assert try_decode(ALICE_NPUB).canonical_id == ALICE_HEX


# ── Helpers ───────────────────────────────────────────────────────────────────

def test_is_identifier():
    assert is_identifier("nostr:" + ALICE_NPUB)
    assert is_identifier("naddr1xyz")
    assert not is_identifier("https://example.com")


def test_shorten():
    assert shorten(ALICE_NPUB) == f"{ALICE_NPUB[:5]}...{ALICE_NPUB[-5:]}"
    assert shorten("short") == "short"


def test_for_occurrence_keeps_canonical_id():
    ref = decode(ALICE_NPUB)
    occ = ref.for_occurrence("Alice", True)
    assert occ.canonical_id == ref.canonical_id
    assert occ.display_text == "Alice"
    assert occ.prefer_inline is True
    assert ref.display_text is None


# -----------------------------------------------------------------------------
