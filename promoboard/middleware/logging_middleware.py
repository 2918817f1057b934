"""Request logging middleware.

Binds a request id into structlog contextvars so every log line emitted
while handling the request carries it, and logs one line per request.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

log = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            log.error("request_failed", exc_info=True)
            raise
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        response.headers["x-request-id"] = request_id
        log.info("request_completed", status_code=response.status_code, duration_ms=duration_ms)
        return response
