"""Listing engagement endpoints.

POST /api/v1/listings/{listing_id}/vote    -- one vote per user per listing per UTC day
POST /api/v1/listings/{listing_id}/bump    -- bump subject to the listing tier's cooldown
POST /api/v1/listings/{listing_id}/events  -- record a view / unique view / join
PUT  /api/v1/listings/{listing_id}/members -- record the current member count

Refusals are raised as Conflict and rendered as 409 by the app's exception
handlers; unknown listings as 404.
"""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import select

from promoboard.dependencies import CurrentUser, DbSession
from promoboard.errors import Conflict, NotFound
from promoboard.middleware.rate_limiter import WriteRateLimit
from promoboard.models.listing import Listing
from promoboard.schemas.engagement import BumpResponse, VoteResponse
from promoboard.schemas.listing import AcceptedResponse, ListingEventRequest, MemberSnapshotRequest
from promoboard.services.analytics import record_listing_event, record_member_snapshot
from promoboard.services.engagement import cooldown_hours, try_bump, try_vote

router = APIRouter(prefix="/api/v1/listings", tags=["listings"])


@router.post("/{listing_id}/vote", response_model=VoteResponse)
async def vote_for_listing(
    listing_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    _rate: WriteRateLimit,
) -> VoteResponse:
    """Cast the caller's vote for today (UTC)."""
    now = datetime.now(timezone.utc)
    outcome = await try_vote(db, user, listing_id, now.date(), now=now)
    if not outcome.accepted:
        raise Conflict("You have already voted for this listing today")
    return VoteResponse(accepted=True, vote_date=outcome.vote_date, message="Vote submitted")


@router.post("/{listing_id}/bump", response_model=BumpResponse)
async def bump_listing(
    listing_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    _rate: WriteRateLimit,
) -> BumpResponse:
    """Bump the listing using the cooldown of its subscription tier."""
    tier = await db.scalar(select(Listing.tier).where(Listing.id == listing_id))
    if tier is None:
        raise NotFound("listing", listing_id)

    outcome = await try_bump(db, listing_id, tier, datetime.now(timezone.utc), user_id=user)
    if not outcome.accepted:
        raise Conflict("Bump cooldown active", next_eligible_at=outcome.next_eligible_at)
    return BumpResponse(
        accepted=True,
        next_eligible_at=outcome.next_eligible_at,
        message=f"Listing bumped. Next bump available in {cooldown_hours(tier)} hours.",
    )


@router.post("/{listing_id}/events", response_model=AcceptedResponse, status_code=202)
async def record_event(
    listing_id: uuid.UUID,
    body: ListingEventRequest,
    user: CurrentUser,
    db: DbSession,
    _rate: WriteRateLimit,
) -> AcceptedResponse:
    if await db.get(Listing, listing_id) is None:
        raise NotFound("listing", listing_id)
    await record_listing_event(db, listing_id, body.event_type, datetime.now(timezone.utc).date())
    await db.commit()
    return AcceptedResponse()


@router.put("/{listing_id}/members", response_model=AcceptedResponse)
async def update_member_count(
    listing_id: uuid.UUID,
    body: MemberSnapshotRequest,
    user: CurrentUser,
    db: DbSession,
    _rate: WriteRateLimit,
) -> AcceptedResponse:
    """Record the member count reported by the Discord import."""
    await record_member_snapshot(
        db, listing_id, body.member_count, datetime.now(timezone.utc).date()
    )
    await db.commit()
    return AcceptedResponse()
