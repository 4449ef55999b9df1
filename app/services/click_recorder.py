"""
Click Recording Service

Persists affiliate click events off the redirect's critical path.

Design Decisions:
- ClickRecorderService: inserts one append-only AffiliateClick row and bumps
  the link's denormalized total_clicks with a database-level UPDATE
- ClickRecordingWorker: an asyncio.Queue consumer owned by the application
  lifecycle. The redirect endpoint hands it an event and returns immediately
- Each attempt gets its own session (the request session is closed once the
  response is sent), a timeout, and exponential backoff between retries
- Every event carries a unique click_id. A retry after a write that landed
  but timed out (e.g. while closing the session) finds the row and stops
- At-most-once: an event that still fails after the last attempt, or that
  arrives while the queue is full, is logged and dropped. Click data is
  best-effort analytics, not a billing ledger
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.setting import Settings, settings as default_settings
from app.core.validators import anonymize_ip, normalize_ip
from app.db.models import AffiliateClick, AffiliateLink, new_click_id
from app.services.user_agent import detect_browser, detect_device_type, detect_os

logger = logging.getLogger(__name__)

MAX_USER_AGENT_LENGTH = 500
MAX_REFERRER_LENGTH = 1000


@dataclass(frozen=True)
class ClickEvent:
    """Everything needed to write one click row."""
    link_id: int
    partner_id: int
    session_id: str
    ip_address: str
    product_id: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    country_code: Optional[str] = None
    is_bot: bool = False
    bot_type: Optional[str] = None
    clicked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    click_id: str = field(default_factory=new_click_id)


class ClickRecorderService:
    """
    Service for persisting click events.

    Args:
        session: Async database session for database operations
        config: Settings (IP anonymization)
    """

    def __init__(self, session: AsyncSession, config: Settings = default_settings):
        self.session = session
        self.config = config

    def build_click(self, event: ClickEvent) -> AffiliateClick:
        """Map an event to a row, deriving device info and trimming long headers."""
        ip_address = normalize_ip(event.ip_address)
        if self.config.ANONYMIZE_CLICK_IPS:
            ip_address = anonymize_ip(ip_address)

        user_agent = event.user_agent or None
        return AffiliateClick(
            link_id=event.link_id,
            partner_id=event.partner_id,
            product_id=event.product_id,
            session_id=event.session_id,
            ip_address=ip_address,
            user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
            referrer=event.referrer[:MAX_REFERRER_LENGTH] if event.referrer else None,
            country_code=event.country_code,
            device_type=detect_device_type(user_agent),
            browser=detect_browser(user_agent),
            os=detect_os(user_agent),
            is_bot=event.is_bot,
            bot_type=event.bot_type,
            clicked_at=event.clicked_at,
            click_id=event.click_id,
        )

    async def record(self, event: ClickEvent) -> AffiliateClick:
        """
        Insert the click and increment the link's click counter.

        Both writes are committed together. Errors propagate to the caller
        (the worker decides whether to retry). An event whose click_id is
        already stored is not written again and the counter is left alone.
        """
        result = await self.session.execute(
            select(AffiliateClick).where(AffiliateClick.click_id == event.click_id)
        )
        existing = result.scalars().first()
        if existing is not None:
            logger.info(f"Click {event.click_id} for link {event.link_id} already recorded")
            return existing

        click = self.build_click(event)
        self.session.add(click)

        # Database-level increment avoids a read-modify-write race
        await self.session.execute(
            update(AffiliateLink)
            .where(AffiliateLink.id == event.link_id)
            .values(total_clicks=AffiliateLink.total_clicks + 1)
        )
        await self.session.commit()
        return click


class ClickRecordingWorker:
    """
    Background consumer that records click events from an in-memory queue.

    Args:
        session_factory: Callable returning an async session context manager
        config: Settings for queue size, timeout, attempts and backoff
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        config: Settings = default_settings,
    ):
        self.session_factory = session_factory
        self.config = config
        self.timeout = config.CLICK_RECORD_TIMEOUT_SECONDS
        self.max_attempts = max(1, config.CLICK_RECORD_MAX_ATTEMPTS)
        self.backoff = config.CLICK_RECORD_BACKOFF_SECONDS

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=config.CLICK_QUEUE_MAX_SIZE)
        self._task: Optional[asyncio.Task] = None

        self.recorded_count = 0
        self.dropped_count = 0
        self.failed_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Click recording worker already running")
            return
        self._task = asyncio.create_task(self._run(), name="click-recording-worker")
        logger.info("Click recording worker started")

    def dispatch(self, event: ClickEvent) -> bool:
        """
        Hand an event to the worker without waiting.

        Never raises. Returns False if the event was dropped.
        """
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped_count += 1
            logger.warning(
                f"Click queue full ({self._queue.maxsize}), dropping click for link {event.link_id}"
            )
            return False
        return True

    async def _record_once(self, event: ClickEvent) -> None:
        # Closing the session rolls back anything left uncommitted
        async with self.session_factory() as session:
            await ClickRecorderService(session, self.config).record(event)

    async def record_with_retry(self, event: ClickEvent) -> bool:
        """
        Persist one event, retrying with exponential backoff.

        Returns:
            True if the click was stored, False if it was dropped
        """
        delay = self.backoff
        for attempt in range(1, self.max_attempts + 1):
            try:
                await asyncio.wait_for(self._record_once(event), timeout=self.timeout)
                self.recorded_count += 1
                return True
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt >= self.max_attempts:
                    self.failed_count += 1
                    logger.error(
                        f"Failed to record click for link {event.link_id} "
                        f"after {attempt} attempts: {e}",
                        exc_info=True
                    )
                    return False
                logger.warning(
                    f"Click recording attempt {attempt} for link {event.link_id} failed: {e}; "
                    f"retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
                delay *= 2
        return False

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.record_with_retry(event)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every dispatched event has been processed."""
        await self._queue.join()

    async def stop(self, drain_timeout: float = 10.0) -> None:
        """Drain outstanding events (bounded by drain_timeout), then stop the worker."""
        if self._task is None:
            return

        if self.is_running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Click worker stopped with {self._queue.qsize()} unrecorded events"
                )

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(
            f"Click recording worker stopped "
            f"(recorded={self.recorded_count}, failed={self.failed_count}, dropped={self.dropped_count})"
        )
