"""
Database Models for the Affiliate Redirect Service

This module defines the SQLModel database schemas for:
- AffiliatePartner: Partners whose links we redirect to and their attribution window
- AffiliateLink: Short code to destination mapping, with status and expiry
- AffiliateClick: Append-only click events used for fraud scoring and reporting
- BlockedIP: Addresses or CIDR ranges excluded from tracking

Design Decisions:
- Separate click table for scalability (can be partitioned by date independently)
- Unique index on short_code for the redirect lookup (most critical path)
- Composite indexes on (ip_address, link_id, clicked_at) and
  (session_id, link_id, clicked_at) for the fraud scoring windows
- total_clicks denormalized on AffiliateLink for quick stats without joins
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlmodel import Column, Field, Index, Relationship, SQLModel


def new_click_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PartnerStatus(str, Enum):
    active = "active"
    pending = "pending"
    suspended = "suspended"
    terminated = "terminated"


class LinkStatus(str, Enum):
    active = "active"
    paused = "paused"
    expired = "expired"
    archived = "archived"


class AffiliatePartner(SQLModel, table=True):
    """
    Affiliate partner (merchant or network) that links point to.

    Fields:
    - status: only 'active' partners receive redirects with tracking
    - cookie_duration: attribution window in days (None or <= 0 means default)
    """
    __tablename__ = "affiliate_partners"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(200), nullable=False))
    slug: str = Field(
        sa_column=Column(String(100), nullable=False, unique=True, index=True)
    )
    status: str = Field(
        default=PartnerStatus.active.value,
        sa_column=Column(String(20), nullable=False, default=PartnerStatus.active.value)
    )
    cookie_duration: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    links: list["AffiliateLink"] = Relationship(back_populates="partner")


class AffiliateLink(SQLModel, table=True):
    """
    Affiliate link reachable at /go/{short_code}.

    A link is eligible for redirect iff status == 'active', expires_at is
    unset or in the future, and its partner is active.

    Indexes:
    - short_code: Unique index for the redirect lookup
    - partner_id: For per-partner reporting
    """
    __tablename__ = "affiliate_links"

    id: Optional[int] = Field(default=None, primary_key=True)
    short_code: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True),
        max_length=64
    )
    partner_id: int = Field(
        sa_column=Column(Integer, ForeignKey("affiliate_partners.id"), nullable=False, index=True)
    )
    product_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True)
    )
    campaign_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True)
    )
    original_url: str = Field(sa_column=Column(Text, nullable=False))
    tracking_url: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True)
    )
    short_url: Optional[str] = Field(
        default=None,
        sa_column=Column(String(500), nullable=True)
    )
    link_type: str = Field(
        default="product",
        sa_column=Column(String(20), nullable=False, default="product")
    )
    placement_type: str = Field(
        default="content",
        sa_column=Column(String(20), nullable=False, default="content")
    )
    utm_source: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    utm_medium: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    utm_campaign: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    status: str = Field(
        default=LinkStatus.active.value,
        sa_column=Column(String(20), nullable=False, default=LinkStatus.active.value, index=True)
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    total_clicks: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    partner: Optional[AffiliatePartner] = Relationship(back_populates="links")

    @property
    def destination_url(self) -> str:
        """Where a visitor is sent: the tracking URL when set, else the original."""
        return self.tracking_url or self.original_url


class AffiliateClick(SQLModel, table=True):
    """
    A single redirect click.

    Rows are inserted once by the click recorder and never updated.
    click_id is unique, so retrying a write that already landed stores nothing new.
    Bot traffic is stored with is_bot set so reporting can exclude it.

    Note: In production, this could be moved to a separate analytics database
    or streamed to a time-series database.
    """
    __tablename__ = "affiliate_clicks"
    __table_args__ = (
        Index("ix_affiliate_clicks_ip_link_time", "ip_address", "link_id", "clicked_at"),
        Index("ix_affiliate_clicks_session_link_time", "session_id", "link_id", "clicked_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    click_id: str = Field(
        default_factory=new_click_id,
        sa_column=Column(String(32), nullable=False, unique=True, index=True)
    )
    link_id: int = Field(
        sa_column=Column(Integer, ForeignKey("affiliate_links.id"), nullable=False, index=True)
    )
    partner_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    product_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    session_id: str = Field(sa_column=Column(String(128), nullable=False))
    ip_address: str = Field(sa_column=Column(String(45), nullable=False))  # IPv6 max length
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))
    referrer: Optional[str] = Field(default=None, sa_column=Column(String(1000), nullable=True))
    country_code: Optional[str] = Field(default=None, sa_column=Column(String(2), nullable=True))
    device_type: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True))
    browser: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    os: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    is_bot: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False, index=True)
    )
    bot_type: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    clicked_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )


class BlockedIP(SQLModel, table=True):
    """
    IP block list entry.

    ip_address holds either a single address or a CIDR range
    (e.g. '203.0.113.0/24'). Requests from a blocked address are
    redirected without any tracking.
    """
    __tablename__ = "blocked_ips"

    id: Optional[int] = Field(default=None, primary_key=True)
    ip_address: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True)
    )
    reason: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))
    blocked_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
