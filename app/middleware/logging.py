"""
Request Logging Middleware

One log line per request: method, path, status, latency and client IP.
For redirects the target is appended, and redirects to the homepage with
an ?error= code are logged at WARNING so broken affiliate links stand out.

Each response carries X-Process-Time (seconds) and X-Request-ID (echoed
from the request or generated), and the id is included in the log line.
"""

import logging
import time
import uuid

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.client_info import get_client_ip

logger = logging.getLogger("affiliate_redirect.access")

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        started = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        location = response.headers.get("location")

        line = (
            f"[{request_id}] {request.method} {request.url.path} {response.status_code} "
            f"{elapsed * 1000:.2f}ms IP:{get_client_ip(request)}"
        )
        if location:
            line += f" -> {location}"

        level = logging.WARNING if location and "error=" in location else logging.INFO
        logger.log(level, line)

        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def add_logging_middleware(app: FastAPI) -> None:
    app.add_middleware(LoggingMiddleware)
