#!/usr/bin/env python
#
#
# ----------------------------------------------------------------------------
"""
ORM Models for Unfold
=====================

Tables
------
events   signed network events seen locally (messages, profiles, documents)
sites    hosted sites: subdomain → root publication address + theme

Addressable documents are found by (kind, pubkey, d_tag); the ``d`` tag value
is copied into its own column on save so lookups do not scan the tags JSON.
Timestamps stored in UTC.
"""
# ----------------------------------------------------------------------------

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, BigInteger, DateTime, Index, Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from unfold.core.database import Base


# ----------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# events
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class EventRecord(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_address", "kind", "pubkey", "d_tag"),
        Index("ix_events_pubkey_kind", "pubkey", "kind"),
    )

    id:         Mapped[str]        = mapped_column(String(64), primary_key=True)
    pubkey:     Mapped[str]        = mapped_column(String(64), nullable=False, index=True)
    kind:       Mapped[int]        = mapped_column(Integer, nullable=False, index=True)
    created_at: Mapped[int]        = mapped_column(BigInteger, nullable=False)
    content:    Mapped[str]        = mapped_column(Text, nullable=False, default="")
    tags:       Mapped[list]       = mapped_column(JSON, nullable=False, default=list)
    sig:        Mapped[str]        = mapped_column(String(128), nullable=False, default="")
    d_tag:      Mapped[str | None] = mapped_column(String(512), nullable=True)
    stored_at:  Mapped[datetime]   = mapped_column(DateTime(timezone=True), default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id":         self.id,
            "pubkey":     self.pubkey,
            "kind":       self.kind,
            "created_at": self.created_at,
            "content":    self.content,
            "tags":       self.tags,
            "sig":        self.sig,
        }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# sites
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Site(Base):
    """
    A hosted site.  ``address`` is either an naddr / coordinate of the root
    publication (kind 30040) or of an app-data event (kind 30078) that points
    at it.
    """
    __tablename__ = "sites"

    id:         Mapped[str]      = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subdomain:  Mapped[str]      = mapped_column(String(128), unique=True, nullable=False, index=True)
    address:    Mapped[str]      = mapped_column(String(1024), nullable=False)
    theme:      Mapped[str]      = mapped_column(String(64), nullable=False, default="default")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
