#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Error taxonomy
==============
UnfoldError
 ├── DecodeError             token could not be turned into a Reference
 │    ├── MalformedIdentifier
 │    └── UnsupportedKind
 ├── ReferenceLookupError    local or network lookup failed for an id / class
 ├── RenderError             a card template could not be rendered
 └── CacheFetchError         a cache fetcher raised during refresh

None of these escape ``resolve_and_render``; they are logged and the affected
reference degrades to a plain link or is left as-is.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations


# -----------------------------------------------------------------------------

class UnfoldError(Exception):
    pass


# -----------------------------------------------------------------------------

class DecodeError(UnfoldError, ValueError):
    def __init__(self, token: str, reason: str) -> None:
        super().__init__(f"{reason}: {token!r}")
        self.token = token
        self.reason = reason


class MalformedIdentifier(DecodeError):
    pass


class UnsupportedKind(DecodeError):
    pass


# -----------------------------------------------------------------------------

class ReferenceLookupError(UnfoldError, LookupError):
    def __init__(self, lookup_class: str, detail: str) -> None:
        super().__init__(f"{lookup_class} lookup failed: {detail}")
        self.lookup_class = lookup_class


# -----------------------------------------------------------------------------

class RenderError(UnfoldError):
    pass


# -----------------------------------------------------------------------------

class CacheFetchError(UnfoldError):
    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"fetch for {key!r} failed: {cause}")
        self.key = key
        self.cause = cause


# -----------------------------------------------------------------------------
