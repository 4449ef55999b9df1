"""
Application Service Lifecycle

Creates and tears down the long-lived components shared across requests:
- ClickRecordingWorker: background consumer for click events
- TTLCache: blocked IP list cache

Both live on app.state rather than in module globals, so each application
instance (and each test) owns its own copies. Endpoints reach them through
the dependency functions below.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request

from app.core.cache import TTLCache
from app.core.setting import settings
from app.db.session import async_session_maker, dispose_engine
from app.services.click_recorder import ClickRecordingWorker

logger = logging.getLogger(__name__)


async def initialize_services(app: FastAPI) -> None:
    """Create the blocklist cache and start the click recording worker."""
    app.state.blocklist_cache = TTLCache(ttl_seconds=settings.BLOCKLIST_CACHE_TTL_SECONDS)

    worker = ClickRecordingWorker(session_factory=async_session_maker, config=settings)
    worker.start()
    app.state.click_worker = worker

    logger.info(
        f"Services initialized: click_queue_size={settings.CLICK_QUEUE_MAX_SIZE}, "
        f"blocklist_ttl={settings.BLOCKLIST_CACHE_TTL_SECONDS}s"
    )


async def shutdown_services(app: FastAPI) -> None:
    """Drain and stop the click worker, then release database connections."""
    worker: Optional[ClickRecordingWorker] = getattr(app.state, "click_worker", None)
    if worker is not None:
        try:
            await worker.stop()
        except Exception as e:
            logger.warning(f"Failed to stop click recording worker cleanly: {e}")
        app.state.click_worker = None

    await dispose_engine()


def get_click_worker(request: Request) -> Optional[ClickRecordingWorker]:
    """Dependency: the running click worker, or None if it was never started."""
    return getattr(request.app.state, "click_worker", None)


def get_blocklist_cache(request: Request) -> TTLCache:
    """Dependency: the application's blocked IP cache (created lazily if missing)."""
    cache = getattr(request.app.state, "blocklist_cache", None)
    if cache is None:
        cache = TTLCache(ttl_seconds=settings.BLOCKLIST_CACHE_TTL_SECONDS)
        request.app.state.blocklist_cache = cache
    return cache
