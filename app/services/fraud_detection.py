"""
Click Fraud Detection

Scores a click for fraud risk from recent click history and the user agent.

Design Decisions:
- Strategy interface (FraudScorer) so thresholds or the whole scorer can be
  replaced without touching the redirect flow
- Store-backed: counts clicks in a trailing window for the same (ip, link),
  the same (session, link), and the link overall
- Additive score with human-readable reasons; a click is denied at or above
  FRAUD_BLOCK_SCORE
- Heuristic only: counts may race under concurrency, false positives and
  negatives are acceptable
- Scoring failures fail open (allowed, score 0)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.setting import Settings, settings as default_settings
from app.core.validators import anonymize_ip, normalize_ip
from app.db.models import AffiliateClick

logger = logging.getLogger(__name__)

AUTOMATION_SIGNATURES = (
    "selenium",
    "puppeteer",
    "playwright",
    "phantomjs",
    "headless",
    "python-requests",
    "curl",
    "wget",
    "httpie",
    "postman",
)

MIN_USER_AGENT_LENGTH = 20

# Score contributions
IP_LIMIT_SCORE = 40
IP_HIGH_VOLUME_SCORE = 20
SESSION_LIMIT_SCORE = 30
LINK_SPIKE_SCORE = 25
SHORT_USER_AGENT_SCORE = 15
AUTOMATION_TOOL_SCORE = 50
MISSING_USER_AGENT_SCORE = 25


@dataclass
class FraudCheck:
    """Outcome of fraud scoring for one click."""
    is_allowed: bool
    score: int = 0
    reasons: List[str] = field(default_factory=list)

    @property
    def reason(self) -> Optional[str]:
        return "; ".join(self.reasons) if self.reasons else None


@dataclass(frozen=True)
class ClickCounts:
    """Clicks seen within the fraud window."""
    ip_link: int = 0
    session_link: int = 0
    link: int = 0


class FraudScorer(ABC):
    """Strategy interface for click fraud scoring."""

    @abstractmethod
    async def score(
        self,
        ip_address: str,
        session_id: Optional[str],
        link_id: int,
        user_agent: Optional[str],
    ) -> FraudCheck:
        pass


def score_user_agent(user_agent: Optional[str]) -> tuple[int, List[str]]:
    """Score user agent signals: missing, too short, or an automation tool."""
    if not user_agent:
        return MISSING_USER_AGENT_SCORE, ["Missing user agent"]

    score = 0
    reasons: List[str] = []

    if len(user_agent) < MIN_USER_AGENT_LENGTH:
        score += SHORT_USER_AGENT_SCORE
        reasons.append("Suspicious user agent (too short)")

    ua = user_agent.lower()
    for signature in AUTOMATION_SIGNATURES:
        if signature in ua:
            score += AUTOMATION_TOOL_SCORE
            reasons.append(f"Automation tool detected: {signature}")
            break

    return score, reasons


def evaluate_click(
    counts: ClickCounts,
    user_agent: Optional[str],
    config: Settings = default_settings,
) -> FraudCheck:
    """
    Turn click counts and the user agent into a fraud decision.

    Pure function; the store-backed scorer only supplies the counts.
    """
    score = 0
    reasons: List[str] = []

    if counts.ip_link >= config.FRAUD_MAX_CLICKS_PER_IP:
        score += IP_LIMIT_SCORE
        reasons.append("IP rate limit exceeded")
    elif counts.ip_link >= config.FRAUD_MAX_CLICKS_PER_IP / 2:
        score += IP_HIGH_VOLUME_SCORE
        reasons.append("High click volume from IP")

    if counts.session_link >= config.FRAUD_MAX_CLICKS_PER_SESSION:
        score += SESSION_LIMIT_SCORE
        reasons.append("Session rate limit exceeded")

    if counts.link >= config.FRAUD_MAX_CLICKS_PER_LINK:
        score += LINK_SPIKE_SCORE
        reasons.append("Unusual traffic spike on link")

    ua_score, ua_reasons = score_user_agent(user_agent)
    score += ua_score
    reasons.extend(ua_reasons)

    return FraudCheck(
        is_allowed=score < config.FRAUD_BLOCK_SCORE,
        score=score,
        reasons=reasons,
    )


class ClickFraudScorer(FraudScorer):
    """
    Fraud scorer backed by the affiliate_clicks table.

    Args:
        session: Async database session (read-only use)
        config: Settings providing thresholds and the window length
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        session: AsyncSession,
        config: Settings = default_settings,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session = session
        self.config = config
        self.clock = clock

    async def _count(self, *conditions) -> int:
        statement = select(func.count()).select_from(AffiliateClick).where(*conditions)
        result = await self.session.execute(statement)
        return result.scalar_one()

    async def count_recent_clicks(
        self,
        ip_address: str,
        session_id: Optional[str],
        link_id: int,
    ) -> ClickCounts:
        window_start = self.clock() - timedelta(minutes=self.config.FRAUD_WINDOW_MINUTES)
        recent = AffiliateClick.clicked_at >= window_start

        # Compare against the form the recorder stores
        stored_ip = normalize_ip(ip_address)
        if self.config.ANONYMIZE_CLICK_IPS:
            stored_ip = anonymize_ip(stored_ip)

        ip_link = await self._count(
            AffiliateClick.ip_address == stored_ip,
            AffiliateClick.link_id == link_id,
            recent,
        )
        session_link = 0
        if session_id:
            session_link = await self._count(
                AffiliateClick.session_id == session_id,
                AffiliateClick.link_id == link_id,
                recent,
            )
        link = await self._count(AffiliateClick.link_id == link_id, recent)

        return ClickCounts(ip_link=ip_link, session_link=session_link, link=link)

    async def score(
        self,
        ip_address: str,
        session_id: Optional[str],
        link_id: int,
        user_agent: Optional[str],
    ) -> FraudCheck:
        counts = await self.count_recent_clicks(ip_address, session_id, link_id)
        check = evaluate_click(counts, user_agent, self.config)
        if not check.is_allowed:
            logger.warning(
                f"[FRAUD] Click denied for link {link_id} from {ip_address}: "
                f"score={check.score} ({check.reason})"
            )
        return check


async def score_safely(
    scorer: FraudScorer,
    ip_address: str,
    session_id: Optional[str],
    link_id: int,
    user_agent: Optional[str],
) -> FraudCheck:
    """Run a scorer, treating any failure as 'allowed'."""
    try:
        return await scorer.score(ip_address, session_id, link_id, user_agent)
    except Exception as e:
        logger.error(f"Fraud scoring failed for link {link_id}, allowing click: {e}", exc_info=True)
        return FraudCheck(is_allowed=True, score=0, reasons=["scoring unavailable"])
