"""
API Request and Response Schemas

This module defines all Pydantic models for the admin API.
Separated from endpoints to keep concerns separated and enable reuse.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, HttpUrl


class CreateLinkRequest(BaseModel):
    """Request model for affiliate link generation."""
    partner_id: int = Field(..., description="Owning partner id")
    url: HttpUrl = Field(..., description="Destination URL on the partner's site")
    product_id: Optional[str] = Field(default=None, max_length=64)
    product_slug: Optional[str] = Field(default=None, description="Used to make the short code readable")
    campaign_id: Optional[str] = Field(default=None, max_length=64)
    link_type: str = Field(default="product", max_length=20)
    placement_type: str = Field(default="content", max_length=20)
    utm_source: Optional[str] = Field(default=None, max_length=100)
    utm_medium: Optional[str] = Field(default=None, max_length=100)
    utm_campaign: Optional[str] = Field(default=None, max_length=100)
    custom_params: Optional[dict[str, str]] = None
    expires_at: Optional[datetime] = None


class CreateLinkResponse(BaseModel):
    """Response model for affiliate link generation."""
    id: int
    short_code: str = Field(..., description="The generated short code")
    short_url: str = Field(..., description="The complete /go/ URL")
    tracking_url: str = Field(..., description="Destination with UTM parameters")


class LinkStatsResponse(BaseModel):
    """Response model for link statistics."""
    short_code: str
    original_url: str
    status: str
    created_at: str
    total_clicks: int
    unique_sessions: int
    bot_clicks: int
    by_device: dict[str, int]
    by_browser: dict[str, int]
    by_country: dict[str, int]


class BlockIPRequest(BaseModel):
    """Request model for adding an IP block list entry."""
    ip_address: str = Field(..., description="Single address or CIDR range", max_length=64)
    reason: Optional[str] = Field(default=None, max_length=500)


class BlockIPResponse(BaseModel):
    ip_address: str
    reason: Optional[str]
    blocked_at: datetime


class SuspiciousClick(BaseModel):
    id: int
    link_id: int
    ip_address: str
    clicked_at: str
    bot_type: Optional[str]
    reason: str


class SuspiciousClicksResponse(BaseModel):
    clicks: list[SuspiciousClick]
    limit: int
    offset: int
