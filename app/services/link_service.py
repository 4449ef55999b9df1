"""
Affiliate Link Generation Service

Creates affiliate links for the admin API:
- Readable short codes: 'bh-<partner>-<product>-<random>'
- Tracking URLs: the destination with UTM parameters and ref=<short_code>
- Short URLs: {BASE_URL}/go/{short_code}

Short codes must be unguessable enough to resist enumeration, so the
random suffix comes from the secrets module.
"""

import logging
import re
import secrets
from datetime import datetime
from typing import Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError, InvalidURLError, PartnerNotFoundError
from app.core.setting import Settings, settings as default_settings
from app.core.validators import is_valid_url
from app.db.models import AffiliateLink, AffiliatePartner, LinkStatus, PartnerStatus

logger = logging.getLogger(__name__)

SHORT_CODE_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
SHORT_CODE_PREFIX = "bh"
DEFAULT_UTM_SOURCE = "bioinformaticshub"
DEFAULT_UTM_MEDIUM = "affiliate"

# Attempts at a fresh random suffix when a generated code already exists
MAX_CODE_ATTEMPTS = 5


def generate_short_code(length: int = 8) -> str:
    """Generate a random lowercase alphanumeric code."""
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))


def _slug_part(slug: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]", "", (slug or "").lower())[:4]


def generate_readable_short_code(partner_slug: str, product_slug: Optional[str] = None) -> str:
    """
    Generate a short code that hints at its partner and product.

    Example:
        generate_readable_short_code("acme-labs", "dna-kit") -> "bh-acme-dnak-x7k2"
    """
    parts = [SHORT_CODE_PREFIX]
    partner_code = _slug_part(partner_slug)
    if partner_code:
        parts.append(partner_code)
    product_code = _slug_part(product_slug)
    if product_code:
        parts.append(product_code)
    parts.append(generate_short_code(4))
    return "-".join(parts)


def build_tracking_url(
    original_url: str,
    utm_source: Optional[str] = None,
    utm_medium: Optional[str] = None,
    utm_campaign: Optional[str] = None,
    short_code: Optional[str] = None,
    custom_params: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Add UTM and ref parameters to a destination URL.

    Existing query parameters are preserved; ours override same-named ones.
    """
    parsed = urlparse(original_url)
    params = dict(parse_qsl(parsed.query, keep_blank_values=True))

    if utm_source:
        params["utm_source"] = utm_source
    if utm_medium:
        params["utm_medium"] = utm_medium
    if utm_campaign:
        params["utm_campaign"] = utm_campaign
    if short_code:
        params["ref"] = short_code
    if custom_params:
        params.update(custom_params)

    return urlunparse(parsed._replace(query=urlencode(params)))


def build_short_url(short_code: str, config: Settings = default_settings) -> str:
    return f"{config.BASE_URL.rstrip('/')}/go/{short_code}"


class LinkService:
    """
    Service for creating affiliate links.

    Args:
        session: Async database session
        config: Settings (BASE_URL for short URLs)
    """

    def __init__(self, session: AsyncSession, config: Settings = default_settings):
        self.session = session
        self.config = config

    async def get_partner(self, partner_id: int) -> AffiliatePartner:
        partner = await self.session.get(AffiliatePartner, partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)
        return partner

    async def short_code_exists(self, short_code: str) -> bool:
        result = await self.session.execute(
            select(AffiliateLink.id).where(AffiliateLink.short_code == short_code)
        )
        return result.first() is not None

    async def create_link(
        self,
        partner_id: int,
        original_url: str,
        product_id: Optional[str] = None,
        product_slug: Optional[str] = None,
        campaign_id: Optional[str] = None,
        link_type: str = "product",
        placement_type: str = "content",
        utm_source: Optional[str] = None,
        utm_medium: Optional[str] = None,
        utm_campaign: Optional[str] = None,
        custom_params: Optional[Mapping[str, str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> AffiliateLink:
        """
        Create an active affiliate link with a fresh short code.

        Raises:
            InvalidURLError: If the destination URL is not a safe http(s) URL
            PartnerNotFoundError: If the partner does not exist
            DatabaseError: If the link cannot be saved
        """
        if not is_valid_url(original_url):
            raise InvalidURLError(
                original_url,
                reason="Invalid URL format. URL must use http:// or https:// and have a valid domain"
            )

        partner = await self.get_partner(partner_id)
        if partner.status not in (PartnerStatus.active.value, PartnerStatus.pending.value):
            logger.warning(f"Creating link for partner {partner.id} with status '{partner.status}'")

        short_code = None
        for _ in range(MAX_CODE_ATTEMPTS):
            candidate = generate_readable_short_code(partner.slug, product_slug)
            if not await self.short_code_exists(candidate):
                short_code = candidate
                break
        if short_code is None:
            raise DatabaseError("Could not generate a unique short code")

        utm_source = utm_source or DEFAULT_UTM_SOURCE
        utm_medium = utm_medium or placement_type or DEFAULT_UTM_MEDIUM

        link = AffiliateLink(
            short_code=short_code,
            partner_id=partner.id,
            product_id=product_id,
            campaign_id=campaign_id,
            original_url=original_url,
            tracking_url=build_tracking_url(
                original_url,
                utm_source=utm_source,
                utm_medium=utm_medium,
                utm_campaign=utm_campaign,
                short_code=short_code,
                custom_params=custom_params,
            ),
            short_url=build_short_url(short_code, self.config),
            link_type=link_type,
            placement_type=placement_type,
            utm_source=utm_source,
            utm_medium=utm_medium,
            utm_campaign=utm_campaign,
            status=LinkStatus.active.value,
            expires_at=expires_at,
        )

        try:
            self.session.add(link)
            await self.session.commit()
            await self.session.refresh(link)
        except IntegrityError as e:
            await self.session.rollback()
            raise DatabaseError("Failed to create link: database constraint violation", original_error=e)
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseError(f"Failed to create link: {e}", original_error=e)

        logger.info(f"Created affiliate link {short_code} for partner {partner.id}")
        return link
