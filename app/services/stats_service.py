"""
Statistics Service

This service reports click statistics for affiliate links and surfaces
bot-flagged clicks for review.

Design Decisions:
- Reads only; aggregates directly from the affiliate_clicks table
- total_clicks on the link is the denormalized counter; breakdowns are
  computed with GROUP BY queries

Future Enhancement:
- Can query from a separate analytics store
- Can cache frequently accessed stats
"""

from typing import Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import AffiliateClick, AffiliateLink


class StatsService:
    """
    Service for retrieving affiliate link statistics.

    Args:
        session: Async database session for database operations
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _breakdown(self, column, link_id: int) -> dict[str, int]:
        statement = (
            select(column, func.count())
            .where(AffiliateClick.link_id == link_id, column.is_not(None))
            .group_by(column)
        )
        result = await self.session.execute(statement)
        return {key: count for key, count in result.all()}

    async def get_link_stats(self, short_code: str) -> Optional[dict]:
        """
        Get click statistics for a link.

        Returns:
            Dictionary with:
            - short_code, original_url, status, created_at
            - total_clicks: denormalized counter
            - unique_sessions: distinct session ids that clicked
            - bot_clicks: clicks flagged as bot traffic
            - by_device / by_browser / by_country: click counts per value

        Returns None if short code not found.
        """
        result = await self.session.execute(
            select(AffiliateLink).where(AffiliateLink.short_code == short_code)
        )
        link = result.scalar_one_or_none()
        if not link:
            return None

        unique_sessions = await self.session.execute(
            select(func.count(distinct(AffiliateClick.session_id)))
            .where(AffiliateClick.link_id == link.id)
        )
        bot_clicks = await self.session.execute(
            select(func.count())
            .select_from(AffiliateClick)
            .where(AffiliateClick.link_id == link.id, AffiliateClick.is_bot.is_(True))
        )

        return {
            "short_code": link.short_code,
            "original_url": link.original_url,
            "status": link.status,
            "created_at": link.created_at.isoformat(),
            "total_clicks": link.total_clicks,
            "unique_sessions": unique_sessions.scalar_one(),
            "bot_clicks": bot_clicks.scalar_one(),
            "by_device": await self._breakdown(AffiliateClick.device_type, link.id),
            "by_browser": await self._breakdown(AffiliateClick.browser, link.id),
            "by_country": await self._breakdown(AffiliateClick.country_code, link.id),
        }

    async def get_suspicious_clicks(self, limit: int = 50, offset: int = 0) -> list[dict]:
        """List bot-flagged clicks, newest first."""
        statement = (
            select(AffiliateClick)
            .where(AffiliateClick.is_bot.is_(True))
            .order_by(AffiliateClick.clicked_at.desc(), AffiliateClick.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(statement)
        return [
            {
                "id": click.id,
                "link_id": click.link_id,
                "ip_address": click.ip_address,
                "clicked_at": click.clicked_at.isoformat(),
                "bot_type": click.bot_type,
                "reason": f"Bot detected: {click.bot_type}" if click.bot_type else "Bot detected",
            }
            for click in result.scalars().all()
        ]
