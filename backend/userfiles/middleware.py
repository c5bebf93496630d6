"""Request logging middleware."""
import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("userfiles.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs client, method, path, status and duration for every request."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        start = time.perf_counter()
        forwarded = request.headers.get("x-forwarded-for")
        origin = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else "-")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%-15s -> %s %s | Status: %d | Time: %.2f ms",
            origin, request.method, request.url.path, response.status_code, duration_ms,
        )
        return response
