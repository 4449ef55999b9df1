"""
Client Request Information

Helpers for extracting visitor details from an incoming request.
Shared by the redirect endpoint and the logging middleware.
"""

from typing import Optional

from fastapi import Request


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Handles proxies and load balancers by checking, in order:
    X-Forwarded-For (first entry), X-Real-IP, then the socket peer.

    Args:
        request: FastAPI Request object

    Returns:
        IP address as string, or "unknown"
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first one
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("User-Agent") or ""


def get_referrer(request: Request) -> Optional[str]:
    return request.headers.get("Referer") or None
