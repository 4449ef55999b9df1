"""
Admin API Authentication

The admin API is protected by a shared secret sent in the X-Admin-Key
header. When ADMIN_API_KEY is not configured the admin API is disabled.
"""

import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from app.core.setting import settings

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


async def require_admin_key(api_key: Optional[str] = Security(admin_key_header)) -> None:
    """
    Dependency that rejects requests without a valid admin key.

    Raises:
        HTTPException 503: If no admin key is configured
        HTTPException 401: If the header is missing or wrong
    """
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is not configured"
        )

    if not api_key or not secrets.compare_digest(api_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin key"
        )
