"""
FastAPI Endpoints for the Affiliate Redirect Service

This module defines the public redirect endpoint and the admin API.
Endpoints only handle:
- Request validation (Pydantic models)
- Rate limiting (admin API)
- Error handling and HTTP responses
- Delegating to service layer

All business logic is in services.

The redirect endpoint never returns an error status: every failure becomes
a 302 to the homepage, because visitors arrive from ads, emails and social
posts where a raw error page is a broken experience.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import (
    BlockIPRequest,
    BlockIPResponse,
    CreateLinkRequest,
    CreateLinkResponse,
    LinkStatsResponse,
    SuspiciousClicksResponse,
)
from app.core.cache import TTLCache
from app.core.client_info import get_client_ip, get_referrer, get_user_agent
from app.core.exceptions import (
    DatabaseError,
    InvalidIPAddressError,
    InvalidURLError,
    PartnerNotFoundError,
)
from app.core.rate_limit import RATE_LIMITS, limiter
from app.core.security import require_admin_key
from app.core.setting import settings
from app.core.validators import sanitize_short_code
from app.core.worker_manager import get_blocklist_cache, get_click_worker
from app.db.session import get_read_session, get_session
from app.services.click_recorder import ClickRecordingWorker
from app.services.ip_blocklist import IPBlocklistService
from app.services.link_service import LinkService
from app.services.redirect_service import RedirectService, RequestContext
from app.services.stats_service import StatsService

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter(prefix="/api", dependencies=[Depends(require_admin_key)])


@router.get(
    "/go/{short_code}",
    status_code=status.HTTP_302_FOUND,
    summary="Affiliate redirect",
    description="Tracks the click and redirects to the affiliate destination (302)"
)
async def affiliate_redirect(
    short_code: str,
    request: Request,
    session: AsyncSession = Depends(get_read_session),
    click_worker: ClickRecordingWorker = Depends(get_click_worker),
    blocklist_cache: TTLCache = Depends(get_blocklist_cache),
) -> RedirectResponse:
    """
    Redirect a visitor through an affiliate link.

    Returns:
        302 to the link's tracking URL (or original URL), with session and
        partner attribution cookies; or 302 to the homepage with
        ?error=invalid_link|expired_link|partner_inactive
    """
    context = RequestContext(
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        referrer=get_referrer(request),
        cookies=dict(request.cookies),
    )

    try:
        redirect_service = RedirectService(
            session,
            click_worker=click_worker,
            blocklist=IPBlocklistService(session, blocklist_cache),
        )
        decision = await redirect_service.handle(short_code, context)
    except Exception as e:
        logger.error(f"Affiliate redirect failed for '{short_code}': {e}", exc_info=True)
        return RedirectResponse(url=settings.HOMEPAGE_URL, status_code=status.HTTP_302_FOUND)

    response = RedirectResponse(url=decision.location, status_code=status.HTTP_302_FOUND)
    for cookie in decision.cookies:
        cookie.apply(response)
    return response


@admin_router.post(
    "/links",
    response_model=CreateLinkResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an affiliate link",
    tags=["Admin"]
)
@limiter.limit(RATE_LIMITS["create_link"])
async def create_link(
    request: Request,  # Required for rate limiting (slowapi expects parameter named 'request')
    body: CreateLinkRequest,
    session: AsyncSession = Depends(get_session)
) -> CreateLinkResponse:
    try:
        link = await LinkService(session).create_link(
            partner_id=body.partner_id,
            original_url=str(body.url),
            product_id=body.product_id,
            product_slug=body.product_slug,
            campaign_id=body.campaign_id,
            link_type=body.link_type,
            placement_type=body.placement_type,
            utm_source=body.utm_source,
            utm_medium=body.utm_medium,
            utm_campaign=body.utm_campaign,
            custom_params=body.custom_params,
            expires_at=body.expires_at,
        )
    except InvalidURLError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PartnerNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return CreateLinkResponse(
        id=link.id,
        short_code=link.short_code,
        short_url=link.short_url,
        tracking_url=link.tracking_url,
    )


@admin_router.get(
    "/links/{short_code}/stats",
    response_model=LinkStatsResponse,
    summary="Get click statistics for a link",
    tags=["Admin"]
)
@limiter.limit(RATE_LIMITS["stats"])
async def get_link_stats(
    short_code: str,
    request: Request,  # Required for rate limiting
    session: AsyncSession = Depends(get_session)
) -> LinkStatsResponse:
    sanitized_code = sanitize_short_code(short_code)
    if not sanitized_code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid short code format: '{short_code}'"
        )

    stats = await StatsService(session).get_link_stats(sanitized_code)
    if not stats:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Short code '{sanitized_code}' not found"
        )

    return LinkStatsResponse(**stats)


@admin_router.post(
    "/blocked-ips",
    response_model=BlockIPResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Block an IP address or range",
    tags=["Admin"]
)
@limiter.limit(RATE_LIMITS["blocklist"])
async def block_ip(
    request: Request,  # Required for rate limiting
    body: BlockIPRequest,
    session: AsyncSession = Depends(get_session),
    blocklist_cache: TTLCache = Depends(get_blocklist_cache),
) -> BlockIPResponse:
    try:
        entry = await IPBlocklistService(session, blocklist_cache).block_ip(body.ip_address, body.reason)
    except InvalidIPAddressError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return BlockIPResponse(ip_address=entry.ip_address, reason=entry.reason, blocked_at=entry.blocked_at)


@admin_router.delete(
    "/blocked-ips/{ip_address:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove an IP block list entry",
    tags=["Admin"]
)
@limiter.limit(RATE_LIMITS["blocklist"])
async def unblock_ip(
    ip_address: str,
    request: Request,  # Required for rate limiting
    session: AsyncSession = Depends(get_session),
    blocklist_cache: TTLCache = Depends(get_blocklist_cache),
) -> Response:
    try:
        removed = await IPBlocklistService(session, blocklist_cache).unblock_ip(ip_address)
    except InvalidIPAddressError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"'{ip_address}' is not blocked"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.get(
    "/clicks/suspicious",
    response_model=SuspiciousClicksResponse,
    summary="List bot-flagged clicks",
    tags=["Admin"]
)
@limiter.limit(RATE_LIMITS["suspicious"])
async def list_suspicious_clicks(
    request: Request,  # Required for rate limiting
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session)
) -> SuspiciousClicksResponse:
    clicks = await StatsService(session).get_suspicious_clicks(limit=limit, offset=offset)
    return SuspiciousClicksResponse(clicks=clicks, limit=limit, offset=offset)
