"""Trending score computation for listings.

Compares the current scoring window against the prior one (both
``trending_window_days`` long, ending at the scoring date) for every listing
with votes or analytics in either window:

  member_growth    = latest snapshot in the current window - latest in the prior one
  vote_growth      = votes(current window) - votes(prior window)
  view_growth      = views(current window) - views(prior window)

  growth_velocity  = w_member*member_growth + w_vote*vote_growth + w_view*view_growth
  engagement_score = (e_vote*vote_growth + e_view*view_growth) / (1 + ln(1 + members))
  trending_score   = a*growth_velocity + b*engagement_score

Weights are settings; non-negative (a and b strictly positive), so the score
never decreases when any growth input increases. Dividing engagement by the
log of the listing size lets small, active listings trend next to big ones.

Results are upserted into trending_metrics keyed by (listing_id, date). Only
the current UTC day can be scored, so re-running today refreshes its rows
while earlier days stay as they were recorded.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from promoboard.config import Settings, settings
from promoboard.errors import ValidationFailure
from promoboard.metrics import trending_duration, trending_listings_scored
from promoboard.models.listing import Listing
from promoboard.models.listing_analytics import ListingAnalytics
from promoboard.models.trending_metric import TrendingMetric
from promoboard.models.vote import VoteRecord
from promoboard.schemas.trending import RecomputeResult
from promoboard.services.store import TRANSIENT_ERRORS, run_with_retry, upsert

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TrendingWeights:
    member: float = 1.0
    vote: float = 3.0
    view: float = 0.1
    engagement_vote: float = 10.0
    engagement_view: float = 1.0
    growth: float = 0.6
    engagement: float = 0.4

    def __post_init__(self):
        for name in ("member", "vote", "view", "engagement_vote", "engagement_view"):
            if getattr(self, name) < 0:
                raise ValidationFailure(f"weight {name} must be non-negative")
        if self.growth <= 0 or self.engagement <= 0:
            raise ValidationFailure("growth and engagement weights must be positive")

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "TrendingWeights":
        return cls(
            member=config.trending_member_weight,
            vote=config.trending_vote_weight,
            view=config.trending_view_weight,
            engagement_vote=config.engagement_vote_weight,
            engagement_view=config.engagement_view_weight,
            growth=config.trending_growth_weight,
            engagement=config.trending_engagement_weight,
        )


@dataclass
class ListingSignals:
    """Raw per-listing inputs for one scoring date."""

    listing_id: uuid.UUID
    member_count: int
    member_growth: int = 0
    vote_growth: int = 0
    view_growth: int = 0


def compute_growth_velocity(
    member_growth: int, vote_growth: int, view_growth: int, weights: TrendingWeights
) -> float:
    return (
        weights.member * member_growth
        + weights.vote * vote_growth
        + weights.view * view_growth
    )


def compute_engagement_score(
    vote_growth: int, view_growth: int, member_count: int, weights: TrendingWeights
) -> float:
    size_damping = 1.0 + math.log1p(max(member_count, 0))
    return (
        weights.engagement_vote * vote_growth + weights.engagement_view * view_growth
    ) / size_damping


def compute_trending_score(
    growth_velocity: float, engagement_score: float, weights: TrendingWeights
) -> float:
    return weights.growth * growth_velocity + weights.engagement * engagement_score


def score_listing(signals: ListingSignals, weights: TrendingWeights) -> dict:
    """Compute the trending_metrics column values for one listing."""
    growth_velocity = compute_growth_velocity(
        signals.member_growth, signals.vote_growth, signals.view_growth, weights
    )
    engagement_score = compute_engagement_score(
        signals.vote_growth, signals.view_growth, signals.member_count, weights
    )
    trending_score = compute_trending_score(growth_velocity, engagement_score, weights)
    if not math.isfinite(trending_score):
        raise ValueError(f"non-finite trending score for listing {signals.listing_id}")
    return {
        "member_growth": signals.member_growth,
        "vote_growth": signals.vote_growth,
        "view_growth": signals.view_growth,
        "growth_velocity": growth_velocity,
        "engagement_score": engagement_score,
        "trending_score": trending_score,
    }


async def collect_signals(
    db: AsyncSession, as_of: date, window_days: int
) -> list[ListingSignals]:
    """Read votes, views and member snapshots for both windows.

    Returns one ListingSignals per existing listing with activity, sorted by
    listing id.
    """
    window = timedelta(days=window_days)
    prior_end = as_of - window
    prior_start = prior_end - window

    # Votes: current window is (prior_end, as_of], prior is (prior_start, prior_end]
    vote_rows = (
        await db.execute(
            select(
                VoteRecord.listing_id,
                func.sum(case((VoteRecord.vote_date > prior_end, 1), else_=0)).label("current"),
                func.sum(case((VoteRecord.vote_date <= prior_end, 1), else_=0)).label("prior"),
            )
            .where(VoteRecord.vote_date > prior_start, VoteRecord.vote_date <= as_of)
            .group_by(VoteRecord.listing_id)
        )
    ).all()

    view_rows = (
        await db.execute(
            select(
                ListingAnalytics.listing_id,
                func.sum(
                    case((ListingAnalytics.date > prior_end, ListingAnalytics.views), else_=0)
                ).label("current"),
                func.sum(
                    case((ListingAnalytics.date <= prior_end, ListingAnalytics.views), else_=0)
                ).label("prior"),
            )
            .where(ListingAnalytics.date > prior_start, ListingAnalytics.date <= as_of)
            .group_by(ListingAnalytics.listing_id)
        )
    ).all()

    snapshot_rows = (
        await db.execute(
            select(
                ListingAnalytics.listing_id,
                ListingAnalytics.date,
                ListingAnalytics.member_count,
            )
            .where(
                ListingAnalytics.date > prior_start,
                ListingAnalytics.date <= as_of,
                ListingAnalytics.member_count.is_not(None),
            )
            .order_by(ListingAnalytics.date)
        )
    ).all()

    votes = {row.listing_id: (row.current or 0, row.prior or 0) for row in vote_rows}
    views = {row.listing_id: (row.current or 0, row.prior or 0) for row in view_rows}
    # ascending by date, so the last snapshot seen in each window wins
    current_members: dict[uuid.UUID, int] = {}
    prior_members: dict[uuid.UUID, int] = {}
    for row in snapshot_rows:
        target = current_members if row.date > prior_end else prior_members
        target[row.listing_id] = row.member_count

    active_ids = set(votes) | set(views)
    if not active_ids:
        return []

    listing_rows = (
        await db.execute(
            select(Listing.id, Listing.member_count).where(Listing.id.in_(active_ids))
        )
    ).all()

    signals = []
    for row in sorted(listing_rows, key=lambda r: str(r.id)):
        members_now = current_members.get(row.id, row.member_count)
        members_before = prior_members.get(row.id)
        vote_current, vote_prior = votes.get(row.id, (0, 0))
        view_current, view_prior = views.get(row.id, (0, 0))
        signals.append(
            ListingSignals(
                listing_id=row.id,
                member_count=members_now,
                member_growth=0 if members_before is None else members_now - members_before,
                vote_growth=int(vote_current) - int(vote_prior),
                view_growth=int(view_current) - int(view_prior),
            )
        )
    return signals


async def recompute_all(
    db: AsyncSession,
    as_of: date,
    weights: Optional[TrendingWeights] = None,
    window_days: Optional[int] = None,
    *,
    today: Optional[date] = None,
) -> RecomputeResult:
    """Recompute and store trending metrics for ``as_of``.

    Only the current UTC day (``today``) can be scored; rows for earlier
    dates are history and are never rewritten. Idempotent for a fixed
    snapshot. A listing whose computation fails is skipped and counted in
    ``errors``; the rest of the batch still commits.

    Raises:
        ValidationFailure: ``as_of`` is before ``today``.
        TransientStoreFailure: The store could not be read or written after
            one retry.
    """
    today = today or datetime.now(timezone.utc).date()
    if as_of < today:
        raise ValidationFailure(
            f"trending metrics for {as_of.isoformat()} are closed; only {today.isoformat()} can be scored"
        )
    weights = weights or TrendingWeights.from_settings()
    window_days = window_days or settings.trending_window_days

    async def _write(signals: list[ListingSignals]) -> tuple[int, int]:
        scored = 0
        errors = 0
        for item in signals:
            try:
                async with db.begin_nested():
                    values = score_listing(item, weights)
                    stmt = upsert(db, TrendingMetric).values(
                        listing_id=item.listing_id, date=as_of, **values
                    )
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["listing_id", "date"],
                        set_={**values, "updated_at": func.now()},
                    )
                    await db.execute(stmt)
                scored += 1
            except TRANSIENT_ERRORS:
                raise
            except Exception:
                errors += 1
                log.warning(
                    "trending_listing_failed",
                    listing_id=str(item.listing_id),
                    as_of=as_of.isoformat(),
                    exc_info=True,
                )
        await db.commit()
        return scored, errors

    with trending_duration.time():
        signals = await run_with_retry(
            db, lambda: collect_signals(db, as_of, window_days), "collect_trending_signals"
        )
        # every upsert is keyed on (listing_id, date), so a replay after rollback is safe
        scored, errors = await run_with_retry(
            db, lambda: _write(signals), "write_trending_metrics"
        )

    trending_listings_scored.labels(outcome="ok").inc(scored)
    trending_listings_scored.labels(outcome="error").inc(errors)
    log.info(
        "trending_recomputed",
        as_of=as_of.isoformat(),
        scored=scored,
        errors=errors,
    )
    return RecomputeResult(as_of=as_of, scored=scored, errors=errors)


async def top_trending(db: AsyncSession, as_of: date, limit: int = 20) -> list:
    """Top ``limit`` listings for ``as_of``.

    Ordered by trending_score descending, ties broken by listing id ascending.
    """
    result = await db.execute(
        select(
            TrendingMetric.listing_id,
            TrendingMetric.trending_score,
            TrendingMetric.growth_velocity,
            TrendingMetric.engagement_score,
            TrendingMetric.member_growth,
            TrendingMetric.vote_growth,
            TrendingMetric.view_growth,
            Listing.name,
            Listing.type,
            Listing.member_count,
        )
        .join(Listing, Listing.id == TrendingMetric.listing_id)
        .where(TrendingMetric.date == as_of)
        .order_by(TrendingMetric.trending_score.desc(), TrendingMetric.listing_id.asc())
        .limit(limit)
    )
    return list(result.all())
