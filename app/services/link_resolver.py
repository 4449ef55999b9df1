"""
Link Resolver

Maps an opaque short code to an affiliate link and decides whether it is
eligible for redirect. Pure read: no side effects.

Outcomes are checked in this order:
1. NOT_FOUND: no link with that code (or the code is malformed)
2. INACTIVE: link status is not 'active'
3. EXPIRED: expires_at is in the past
4. PARTNER_INACTIVE: the owning partner is not 'active'
5. ELIGIBLE
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import DatabaseError
from app.core.validators import sanitize_short_code
from app.db.models import AffiliateLink, LinkStatus, PartnerStatus


class ResolutionOutcome(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    PARTNER_INACTIVE = "partner_inactive"
    ELIGIBLE = "eligible"


@dataclass(frozen=True)
class LinkResolution:
    outcome: ResolutionOutcome
    link: Optional[AffiliateLink] = None

    @property
    def is_eligible(self) -> bool:
        return self.outcome == ResolutionOutcome.ELIGIBLE


def as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; every stored timestamp is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def evaluate_link(link: Optional[AffiliateLink], now: datetime) -> ResolutionOutcome:
    """Classify a (possibly missing) link against the eligibility rules at `now`."""
    if link is None:
        return ResolutionOutcome.NOT_FOUND

    if link.status != LinkStatus.active.value:
        return ResolutionOutcome.INACTIVE

    if link.expires_at is not None and as_utc(link.expires_at) <= now:
        return ResolutionOutcome.EXPIRED

    if link.partner is None or link.partner.status != PartnerStatus.active.value:
        return ResolutionOutcome.PARTNER_INACTIVE

    return ResolutionOutcome.ELIGIBLE


class LinkResolver:
    """
    Resolves short codes to links with their partner loaded.

    Args:
        session: Async database session
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session = session
        self.clock = clock

    async def find_link_by_short_code(self, short_code: str) -> Optional[AffiliateLink]:
        """
        Look up a link and its partner by short code.

        Raises:
            DatabaseError: If the store cannot be queried
        """
        statement = (
            select(AffiliateLink)
            .where(AffiliateLink.short_code == short_code)
            .options(selectinload(AffiliateLink.partner))
        )
        try:
            result = await self.session.execute(statement)
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseError(f"Failed to look up short code '{short_code}'", original_error=e)
        return result.scalar_one_or_none()

    async def resolve(self, short_code: str) -> LinkResolution:
        """
        Resolve a short code into a tagged eligibility result.

        Raises:
            DatabaseError: If the store cannot be queried
        """
        sanitized = sanitize_short_code(short_code)
        if not sanitized:
            return LinkResolution(ResolutionOutcome.NOT_FOUND)

        link = await self.find_link_by_short_code(sanitized)
        return LinkResolution(evaluate_link(link, self.clock()), link)
