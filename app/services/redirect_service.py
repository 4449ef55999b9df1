"""
Redirect Service

Orchestrates the affiliate redirect for GET /go/{short_code}:

    START -> RESOLVED -> ELIGIBLE -> CLASSIFIED -> SESSION_ASSIGNED
          -> RECORDING_DISPATCHED -> REDIRECTING

with early exits to REDIRECT_ERROR (homepage + ?error=<code>) when the link
is unknown, inactive, expired, or its partner is inactive.

Branches after ELIGIBLE:
- Blocked IP: redirect straight to the destination, no cookies, no click
- Bot: click recorded with is_bot set, redirect as normal
- Fraud-denied human: click not recorded, redirect as normal
- Clean: click recorded, redirect as normal

The click is handed to the recording worker and never awaited, so store
latency or failures cannot delay or fail the redirect.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError
from app.core.setting import Settings, settings as default_settings
from app.services.bot_detection import BotClassifier, SignatureBotClassifier, classify_safely
from app.services.click_recorder import ClickEvent, ClickRecordingWorker
from app.services.fraud_detection import ClickFraudScorer, FraudScorer, score_safely
from app.services.ip_blocklist import IPBlocklistService
from app.services.link_resolver import LinkResolver, ResolutionOutcome
from app.services.session_manager import (
    CookieSpec,
    build_attribution_cookie,
    build_session_cookie,
    existing_session_id,
    get_or_create_session,
)

logger = logging.getLogger(__name__)


class RedirectState(str, Enum):
    START = "start"
    RESOLVED = "resolved"
    ELIGIBLE = "eligible"
    CLASSIFIED = "classified"
    SESSION_ASSIGNED = "session_assigned"
    RECORDING_DISPATCHED = "recording_dispatched"
    REDIRECTING = "redirecting"
    REDIRECT_ERROR = "redirect_error"


class RedirectError(str, Enum):
    INVALID_LINK = "invalid_link"
    EXPIRED_LINK = "expired_link"
    PARTNER_INACTIVE = "partner_inactive"


OUTCOME_ERRORS = {
    ResolutionOutcome.NOT_FOUND: RedirectError.INVALID_LINK,
    ResolutionOutcome.INACTIVE: RedirectError.EXPIRED_LINK,
    ResolutionOutcome.EXPIRED: RedirectError.EXPIRED_LINK,
    ResolutionOutcome.PARTNER_INACTIVE: RedirectError.PARTNER_INACTIVE,
}


@dataclass(frozen=True)
class RequestContext:
    """Visitor details extracted from the HTTP request."""
    ip_address: str
    user_agent: str = ""
    referrer: Optional[str] = None
    cookies: Mapping[str, str] = field(default_factory=dict)


@dataclass
class RedirectDecision:
    """Where to send the visitor and which cookies to set."""
    location: str
    error: Optional[RedirectError] = None
    cookies: List[CookieSpec] = field(default_factory=list)
    session_id: Optional[str] = None
    is_bot: bool = False
    ip_blocked: bool = False
    click_dispatched: bool = False
    trail: List[RedirectState] = field(default_factory=list)

    @property
    def state(self) -> RedirectState:
        return self.trail[-1]


def error_location(error: RedirectError, config: Settings = default_settings) -> str:
    return f"{config.HOMEPAGE_URL}?{urlencode({'error': error.value})}"


class RedirectService:
    """
    Service for handling affiliate redirects.

    Args:
        session: Async database session for read-only lookups
        click_worker: Background worker that persists clicks (None disables recording)
        blocklist: IP block list service
        bot_classifier: Bot classification strategy
        fraud_scorer: Fraud scoring strategy (defaults to the store-backed scorer)
        resolver: Link resolver (defaults to one on `session`)
        config: Settings
    """

    def __init__(
        self,
        session: AsyncSession,
        click_worker: Optional[ClickRecordingWorker],
        blocklist: IPBlocklistService,
        bot_classifier: Optional[BotClassifier] = None,
        fraud_scorer: Optional[FraudScorer] = None,
        resolver: Optional[LinkResolver] = None,
        config: Settings = default_settings,
    ):
        self.session = session
        self.click_worker = click_worker
        self.blocklist = blocklist
        self.bot_classifier = bot_classifier or SignatureBotClassifier()
        self.fraud_scorer = fraud_scorer or ClickFraudScorer(session, config)
        self.resolver = resolver or LinkResolver(session)
        self.config = config

    def _error(self, error: RedirectError, trail: List[RedirectState]) -> RedirectDecision:
        trail.append(RedirectState.REDIRECT_ERROR)
        return RedirectDecision(
            location=error_location(error, self.config),
            error=error,
            trail=trail,
        )

    async def _is_blocked(self, ip_address: str) -> bool:
        try:
            return await self.blocklist.is_blocked(ip_address)
        except Exception as e:
            logger.error(f"IP block check failed for {ip_address}, continuing: {e}", exc_info=True)
            return False

    def _dispatch(self, event: ClickEvent) -> bool:
        if self.click_worker is None:
            logger.warning(f"Click worker unavailable, click for link {event.link_id} not recorded")
            return False
        return self.click_worker.dispatch(event)

    async def handle(self, short_code: str, context: RequestContext) -> RedirectDecision:
        """
        Run the redirect state machine for one request.

        Never raises for ineligible links or store outages during resolution;
        those become error redirects.
        """
        trail = [RedirectState.START]

        try:
            resolution = await self.resolver.resolve(short_code)
        except DatabaseError as e:
            logger.error(f"Link lookup failed for '{short_code}', treating as not found: {e}")
            trail.append(RedirectState.RESOLVED)
            return self._error(RedirectError.INVALID_LINK, trail)
        trail.append(RedirectState.RESOLVED)

        if not resolution.is_eligible:
            logger.info(f"Rejected short code '{short_code}': {resolution.outcome.value}")
            return self._error(OUTCOME_ERRORS[resolution.outcome], trail)

        link = resolution.link
        trail.append(RedirectState.ELIGIBLE)
        destination = link.destination_url

        if await self._is_blocked(context.ip_address):
            logger.info(f"Blocked IP {context.ip_address} on '{short_code}', skipping tracking")
            trail.append(RedirectState.REDIRECTING)
            return RedirectDecision(location=destination, ip_blocked=True, trail=trail)

        cookie_value = context.cookies.get(self.config.SESSION_COOKIE_NAME)
        bot_check = classify_safely(self.bot_classifier, context.user_agent)
        fraud_check = await score_safely(
            self.fraud_scorer,
            context.ip_address,
            existing_session_id(cookie_value),
            link.id,
            context.user_agent,
        )
        trail.append(RedirectState.CLASSIFIED)

        session_id = get_or_create_session(cookie_value)
        trail.append(RedirectState.SESSION_ASSIGNED)

        # Bots are recorded (flagged) whatever their fraud score; fraud-denied humans are not
        click_dispatched = False
        if bot_check.is_bot or fraud_check.is_allowed:
            click_dispatched = self._dispatch(ClickEvent(
                link_id=link.id,
                partner_id=link.partner_id,
                product_id=link.product_id,
                session_id=session_id,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                referrer=context.referrer,
                is_bot=bot_check.is_bot,
                bot_type=bot_check.bot_type,
            ))
        trail.append(RedirectState.RECORDING_DISPATCHED)

        cookies = [
            build_session_cookie(session_id, self.config),
            build_attribution_cookie(link.partner, session_id, self.config),
        ]
        trail.append(RedirectState.REDIRECTING)

        return RedirectDecision(
            location=destination,
            cookies=cookies,
            session_id=session_id,
            is_bot=bot_check.is_bot,
            click_dispatched=click_dispatched,
            trail=trail,
        )
