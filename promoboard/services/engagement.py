"""Engagement gate: daily votes and tier-based bump cooldowns.

Every check-then-act here is a single conditional statement inside one
transaction, never a Python-side read followed by a write:

- Votes: UPDATE listings SET vote_count = vote_count + 1, then INSERT the
  (user, listing, day) row. A unique-key violation on the insert rolls the
  whole transaction back, so a duplicate vote leaves no trace. The row lock
  taken by the UPDATE serializes concurrent voters on the same listing.
- Bumps: UPDATE listings ... WHERE last_bumped_at IS NULL OR
  last_bumped_at <= now - cooldown. Zero rows updated means either the
  listing does not exist or the cooldown has not elapsed; the listing is
  then re-read to tell the two apart and to report next_eligible_at.

Accepted actions append an activity record and notify Discord in the
background. Those side effects run on their own session after commit and
can never undo the vote or bump.
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

import structlog
from sqlalchemy import insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from promoboard.errors import NotFound, ValidationFailure
from promoboard.metrics import bumps_total, votes_total
from promoboard.models.bump import BumpRecord
from promoboard.models.listing import Listing, Tier
from promoboard.models.vote import VoteRecord
from promoboard.schemas.activity import ActivityCreate
from promoboard.schemas.engagement import BumpOutcome, VoteOutcome
from promoboard.services.activity_feed import record_activity_in_background
from promoboard.services.analytics import record_listing_event
from promoboard.services.notifications import DiscordNotifier, build_embed, notify_in_background
from promoboard.services.store import as_utc, require_aware, run_with_retry

log = structlog.get_logger(__name__)

COOLDOWN_HOURS: dict[Tier, int] = {
    Tier.free: 6,
    Tier.gold: 3,
    Tier.platinum: 2,
}

# Applied to bump_count only; does not change cooldown or race behaviour
BUMP_WEIGHTS: dict[Tier, float] = {
    Tier.free: 1.0,
    Tier.gold: 1.5,
    Tier.platinum: 2.0,
}

BUMP_TYPES = ("manual", "auto")


def parse_tier(tier: Union[Tier, str]) -> Tier:
    try:
        return Tier(tier)
    except ValueError:
        raise ValidationFailure(f"unknown tier: {tier!r}") from None


def cooldown_hours(tier: Union[Tier, str]) -> int:
    """Hours that must pass between two bumps of a listing on ``tier``."""
    return COOLDOWN_HOURS[parse_tier(tier)]


def bump_weight(tier: Union[Tier, str]) -> float:
    """Amount one accepted bump adds to bump_count on ``tier``."""
    return BUMP_WEIGHTS[parse_tier(tier)]


def _dispatch_side_effects(
    activity: ActivityCreate,
    payload: dict,
    session_factory: Optional[async_sessionmaker],
    notifier: Optional[DiscordNotifier],
) -> None:
    record_activity_in_background(activity, session_factory=session_factory)
    notify_in_background(payload, notifier=notifier)


async def try_vote(
    db: AsyncSession,
    user_id: uuid.UUID,
    listing_id: uuid.UUID,
    today: date,
    *,
    now: Optional[datetime] = None,
    session_factory: Optional[async_sessionmaker] = None,
    notifier: Optional[DiscordNotifier] = None,
) -> VoteOutcome:
    """Cast ``user_id``'s vote for ``listing_id`` on ``today``.

    At most one vote per (user, listing, day) is ever accepted, also under
    concurrent calls. A duplicate returns accepted=False and changes nothing.

    Raises:
        NotFound: Unknown listing.
        ValidationFailure: ``today`` is not a date.
        TransientStoreFailure: Store unavailable after one retry.
    """
    if not isinstance(today, date) or isinstance(today, datetime):
        raise ValidationFailure("today must be a calendar date")
    voted_at = as_utc(now) if now else datetime.now(timezone.utc)

    async def _unit():
        result = await db.execute(
            update(Listing)
            .where(Listing.id == listing_id)
            .values(vote_count=Listing.vote_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise NotFound("listing", listing_id)

        try:
            await db.execute(
                insert(VoteRecord).values(
                    id=uuid.uuid4(),
                    user_id=user_id,
                    listing_id=listing_id,
                    vote_date=today,
                    voted_at=voted_at,
                )
            )
        except IntegrityError:
            await db.rollback()
            return None

        listing = (
            await db.execute(
                select(Listing.name, Listing.type, Listing.tier, Listing.vote_count).where(
                    Listing.id == listing_id
                )
            )
        ).one()
        await db.commit()
        return listing

    listing = await run_with_retry(db, _unit, "try_vote")

    if listing is None:
        votes_total.labels(outcome="duplicate").inc()
        log.info(
            "vote_rejected_duplicate",
            user_id=str(user_id),
            listing_id=str(listing_id),
            vote_date=today.isoformat(),
        )
        return VoteOutcome(accepted=False, listing_id=listing_id, vote_date=today)

    votes_total.labels(outcome="accepted").inc()
    log.info(
        "vote_accepted",
        user_id=str(user_id),
        listing_id=str(listing_id),
        vote_count=listing.vote_count,
    )
    _dispatch_side_effects(
        ActivityCreate(
            user_id=user_id,
            activity_type="vote_cast",
            target_type=listing.type,
            target_id=listing_id,
            metadata={"vote_count": listing.vote_count, "listing_name": listing.name},
            created_at=voted_at,
        ),
        build_embed(
            "vote",
            listing.name,
            listing.tier,
            f"{listing.name} now has {listing.vote_count} votes.",
        ),
        session_factory,
        notifier,
    )
    return VoteOutcome(accepted=True, listing_id=listing_id, vote_date=today)


async def try_bump(
    db: AsyncSession,
    listing_id: uuid.UUID,
    tier: Union[Tier, str],
    now: datetime,
    *,
    user_id: Optional[uuid.UUID] = None,
    bump_type: str = "manual",
    session_factory: Optional[async_sessionmaker] = None,
    notifier: Optional[DiscordNotifier] = None,
) -> BumpOutcome:
    """Bump ``listing_id`` if its tier cooldown has elapsed at ``now``.

    On acceptance last_bumped_at becomes ``now`` and bump_count grows by the
    tier weight; a bump history row and the day's analytics counter are
    written in the same transaction. On refusal nothing is written and
    next_eligible_at is last_bumped_at + cooldown.

    Raises:
        NotFound: Unknown listing.
        ValidationFailure: Unknown tier or bump type, or naive ``now``.
        TransientStoreFailure: Store unavailable after one retry.
    """
    tier = parse_tier(tier)
    now = require_aware(now)
    if bump_type not in BUMP_TYPES:
        raise ValidationFailure(f"unknown bump type: {bump_type!r}")

    cooldown = timedelta(hours=cooldown_hours(tier))
    weight = bump_weight(tier)
    eligible_before = now - cooldown

    async def _unit():
        result = await db.execute(
            update(Listing)
            .where(Listing.id == listing_id)
            .where(
                or_(
                    Listing.last_bumped_at.is_(None),
                    Listing.last_bumped_at <= eligible_before,
                )
            )
            .values(last_bumped_at=now, bump_count=Listing.bump_count + weight)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            row = (
                await db.execute(
                    select(Listing.last_bumped_at).where(Listing.id == listing_id)
                )
            ).one_or_none()
            await db.rollback()
            if row is None:
                raise NotFound("listing", listing_id)
            return None, as_utc(row.last_bumped_at)

        db.add(
            BumpRecord(
                listing_id=listing_id,
                user_id=user_id,
                bump_type=bump_type,
                weight=weight,
                bumped_at=now,
            )
        )
        await record_listing_event(db, listing_id, "bump", now.date())
        listing = (
            await db.execute(
                select(Listing.name, Listing.type, Listing.bump_count).where(
                    Listing.id == listing_id
                )
            )
        ).one()
        await db.commit()
        return listing, None

    listing, last_bumped_at = await run_with_retry(db, _unit, "try_bump")

    if listing is None:
        next_eligible_at = last_bumped_at + cooldown
        bumps_total.labels(tier=tier.value, bump_type=bump_type, outcome="cooldown").inc()
        log.info(
            "bump_rejected_cooldown",
            listing_id=str(listing_id),
            tier=tier.value,
            next_eligible_at=next_eligible_at.isoformat(),
        )
        return BumpOutcome(
            accepted=False, listing_id=listing_id, next_eligible_at=next_eligible_at
        )

    bumps_total.labels(tier=tier.value, bump_type=bump_type, outcome="accepted").inc()
    log.info(
        "bump_accepted",
        listing_id=str(listing_id),
        tier=tier.value,
        bump_type=bump_type,
        weight=weight,
    )
    _dispatch_side_effects(
        ActivityCreate(
            user_id=user_id,
            activity_type="listing_bumped",
            target_type=listing.type,
            target_id=listing_id,
            metadata={"bump_type": bump_type, "tier": tier.value, "listing_name": listing.name},
            created_at=now,
        ),
        build_embed(
            "bump",
            listing.name,
            tier.value,
            f"Next bump available in {cooldown_hours(tier)} hours.",
        ),
        session_factory,
        notifier,
    )
    return BumpOutcome(
        accepted=True,
        listing_id=listing_id,
        next_eligible_at=now + cooldown,
        weight=weight,
    )
