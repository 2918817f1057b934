"""Trending listings endpoints.

GET  /api/v1/trending           -- top listings for a date (default: today, UTC)
POST /api/v1/trending/recompute -- scheduler trigger for a full recompute
"""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Query

from promoboard.config import settings
from promoboard.dependencies import CurrentUser, DbSession
from promoboard.middleware.rate_limiter import ReadRateLimit
from promoboard.schemas.trending import (
    RecomputeRequest,
    RecomputeResult,
    TrendingEntry,
    TrendingResponse,
)
from promoboard.services.trending import recompute_all, top_trending

router = APIRouter(prefix="/api/v1/trending", tags=["trending"])


@router.get("", response_model=TrendingResponse)
async def list_trending(
    user: CurrentUser,
    db: DbSession,
    _rate: ReadRateLimit,
    as_of: Optional[date] = Query(default=None, alias="date"),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
) -> TrendingResponse:
    """Return the highest trending scores for the date, highest first."""
    as_of = as_of or datetime.now(timezone.utc).date()
    limit = limit or settings.trending_top_limit
    rows = await top_trending(db, as_of, limit)
    return TrendingResponse(
        as_of=as_of,
        trending=[
            TrendingEntry(
                listing_id=row.listing_id,
                name=row.name,
                type=row.type,
                member_count=row.member_count,
                trending_score=row.trending_score,
                growth_velocity=row.growth_velocity,
                engagement_score=row.engagement_score,
                member_growth=row.member_growth,
                vote_growth=row.vote_growth,
                view_growth=row.view_growth,
            )
            for row in rows
        ],
    )


@router.post("/recompute", response_model=RecomputeResult)
async def trigger_recompute(
    body: RecomputeRequest,
    user: CurrentUser,
    db: DbSession,
) -> RecomputeResult:
    """Recompute today's trending metrics. Earlier dates are closed (422)."""
    as_of = body.as_of or datetime.now(timezone.utc).date()
    return await recompute_all(db, as_of)
