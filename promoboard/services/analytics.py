"""Daily listing analytics.

Per-day counters and member-count snapshots feeding the trending scorer.
All writes are single upserts with column-expression increments, so
concurrent events for the same listing and day never lose an update.
Callers manage commit/rollback.
"""

import uuid
from datetime import date

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from promoboard.errors import NotFound, ValidationFailure
from promoboard.models.listing import Listing
from promoboard.models.listing_analytics import ListingAnalytics
from promoboard.services.store import upsert

log = structlog.get_logger(__name__)

# event type -> counter column
EVENT_COLUMNS: dict[str, str] = {
    "view": "views",
    "unique_view": "unique_visitors",
    "join": "joins",
    "bump": "bumps",
}


async def record_listing_event(
    db: AsyncSession,
    listing_id: uuid.UUID,
    event_type: str,
    on_date: date,
    amount: int = 1,
) -> None:
    """Increment the day's counter for ``event_type``.

    A unique view also counts as a view.
    """
    column = EVENT_COLUMNS.get(event_type)
    if column is None:
        raise ValidationFailure(f"unknown listing event type: {event_type!r}")
    if amount < 1:
        raise ValidationFailure("amount must be positive")

    increments = {column: amount}
    if event_type == "unique_view":
        increments["views"] = amount

    table = ListingAnalytics.__table__
    stmt = upsert(db, ListingAnalytics).values(
        listing_id=listing_id, date=on_date, **increments
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["listing_id", "date"],
        set_={name: table.c[name] + delta for name, delta in increments.items()},
    )
    await db.execute(stmt)


async def record_member_snapshot(
    db: AsyncSession,
    listing_id: uuid.UUID,
    member_count: int,
    on_date: date,
) -> None:
    """Set the listing's current member_count and the day's snapshot.

    Raises NotFound for an unknown listing.
    """
    if member_count < 0:
        raise ValidationFailure("member_count must be non-negative")

    result = await db.execute(
        update(Listing)
        .where(Listing.id == listing_id)
        .values(member_count=member_count)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound("listing", listing_id)

    stmt = upsert(db, ListingAnalytics).values(
        listing_id=listing_id, date=on_date, member_count=member_count
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["listing_id", "date"],
        set_={"member_count": member_count},
    )
    await db.execute(stmt)
    log.debug("member_snapshot_recorded", listing_id=str(listing_id), member_count=member_count)
