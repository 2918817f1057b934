"""Public activity feed endpoints."""

from fastapi import APIRouter, Query

from promoboard.config import settings
from promoboard.dependencies import CurrentUser, DbSession
from promoboard.middleware.rate_limiter import ReadRateLimit, WriteRateLimit
from promoboard.schemas.activity import (
    ActivityCreate,
    ActivityFeedResponse,
    ActivityResponse,
    ActivityTrackRequest,
)
from promoboard.services.activity_feed import append_activity, recent_activity

router = APIRouter(prefix="/api/v1/activity", tags=["activity"])


@router.get("", response_model=ActivityFeedResponse)
async def list_activity(
    user: CurrentUser,
    db: DbSession,
    _rate: ReadRateLimit,
    limit: int = Query(default=20, ge=1),
) -> ActivityFeedResponse:
    """Return the newest public activities, newest first."""
    limit = min(limit, settings.activity_feed_cap)
    activities = [
        ActivityResponse.model_validate(record)
        async for record in recent_activity(db, limit, public_only=True)
    ]
    return ActivityFeedResponse(activities=activities, total=len(activities))


@router.post("", response_model=ActivityResponse, status_code=201)
async def track_activity(
    body: ActivityTrackRequest,
    user: CurrentUser,
    db: DbSession,
    _rate: WriteRateLimit,
) -> ActivityResponse:
    """Record a client-side activity (listing views, follows, reviews...)."""
    record = await append_activity(
        db,
        ActivityCreate(
            user_id=user,
            activity_type=body.activity_type,
            target_type=body.target_type,
            target_id=body.target_id,
            metadata=body.metadata,
        ),
    )
    return ActivityResponse.model_validate(record)
