"""
FastAPI Application Entry Point

Wires together:
- GET /go/{short_code}: the public affiliate redirect
- /api/*: the admin API (X-Admin-Key, rate limited)
- Request logging and CORS middleware
- Lifecycle of the click recording worker and blocked IP cache
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api import endpoints
from app.core.logging_config import setup_logging
from app.core.rate_limit import limiter
from app.core.setting import settings
from app.core.worker_manager import initialize_services, shutdown_services
from app.db.session import async_session_maker
from app.middleware.logging import add_logging_middleware

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Affiliate Redirect Service",
    description="Affiliate short-link redirects with click attribution and fraud screening",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["X-Admin-Key", "Content-Type"],
)


@app.get("/", tags=["Health"])
async def root():
    """
    Landing endpoint.

    Ineligible affiliate links redirect here with ?error=invalid_link,
    expired_link or partner_inactive.
    """
    return {
        "message": "Affiliate Redirect Service",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Report database reachability and the click worker's backlog and counters."""
    database = "ok"
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Health check could not reach the database: {e}")
        database = "unavailable"

    worker = getattr(app.state, "click_worker", None)
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "click_worker": {
            "running": bool(worker and worker.is_running),
            "pending": worker.pending if worker else 0,
            "recorded": worker.recorded_count if worker else 0,
            "failed": worker.failed_count if worker else 0,
            "dropped": worker.dropped_count if worker else 0,
        },
    }


app.include_router(endpoints.router, tags=["Redirect"])
app.include_router(endpoints.admin_router)


@app.on_event("startup")
async def startup_event():
    await initialize_services(app)


@app.on_event("shutdown")
async def shutdown_event():
    await shutdown_services(app)
