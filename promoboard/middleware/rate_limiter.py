"""Redis fixed-window request rate limiting per caller.

This is HTTP abuse protection only; vote and bump limits are business rules
enforced by the engagement gate in the database.
"""

import time
from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request, status

from promoboard.config import settings
from promoboard.dependencies import CurrentUser

log = structlog.get_logger(__name__)

WINDOW_SECONDS = 60


async def _check_limit(request: Request, user_id, scope: str, limit: int) -> None:
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return

    window = int(time.time()) // WINDOW_SECONDS
    key = f"ratelimit:{scope}:{user_id}:{window}"
    try:
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, WINDOW_SECONDS)
    except Exception as exc:
        # Fail open on Redis errors
        log.warning("rate_limiter_unavailable", error=str(exc))
        return

    if count > limit:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(WINDOW_SECONDS)},
        )


async def read_rate_limit(request: Request, user: CurrentUser) -> None:
    await _check_limit(request, user, "read", settings.read_rate_limit)


async def write_rate_limit(request: Request, user: CurrentUser) -> None:
    await _check_limit(request, user, "write", settings.write_rate_limit)


ReadRateLimit = Annotated[None, Depends(read_rate_limit)]
WriteRateLimit = Annotated[None, Depends(write_rate_limit)]
