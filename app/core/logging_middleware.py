# app/core/logging_middleware.py
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request, with the caller's student id when present."""

    async def dispatch(self, request: Request, call_next):
        start = time.monotonic()

        response = await call_next(request)

        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Process-Time-Ms"] = f"{duration_ms:.0f}"
        logger.info(
            "%s %s -> %s (%.0fms) student=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request.headers.get("X-Student-Id", "-"),
        )

        return response
