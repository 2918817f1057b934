"""Tests for daily listing analytics counters and member snapshots."""

import uuid
from datetime import date

import pytest
from sqlalchemy import select

from promoboard.errors import NotFound, ValidationFailure
from promoboard.models import Listing, ListingAnalytics
from promoboard.services.analytics import record_listing_event, record_member_snapshot

DAY = date(2025, 3, 1)


async def _row(session_factory, listing_id, on_date=DAY) -> ListingAnalytics:
    async with session_factory() as session:
        return await session.scalar(
            select(ListingAnalytics).where(
                ListingAnalytics.listing_id == listing_id,
                ListingAnalytics.date == on_date,
            )
        )


@pytest.mark.asyncio
async def test_events_increment_same_day_row(db, session_factory, make_listing):
    listing_id = await make_listing()

    await record_listing_event(db, listing_id, "view", DAY)
    await record_listing_event(db, listing_id, "view", DAY, amount=4)
    await record_listing_event(db, listing_id, "join", DAY)
    await db.commit()

    row = await _row(session_factory, listing_id)
    assert row.views == 5
    assert row.joins == 1
    assert row.unique_visitors == 0


@pytest.mark.asyncio
async def test_unique_view_also_counts_as_view(db, session_factory, make_listing):
    listing_id = await make_listing()

    await record_listing_event(db, listing_id, "unique_view", DAY)
    await db.commit()

    row = await _row(session_factory, listing_id)
    assert row.unique_visitors == 1
    assert row.views == 1


@pytest.mark.asyncio
async def test_events_on_different_days_are_separate(db, session_factory, make_listing):
    listing_id = await make_listing()

    await record_listing_event(db, listing_id, "view", DAY)
    await record_listing_event(db, listing_id, "view", date(2025, 3, 2))
    await db.commit()

    async with session_factory() as session:
        rows = (await session.execute(select(ListingAnalytics))).scalars().all()
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_unknown_event_type_rejected(db, make_listing):
    listing_id = await make_listing()
    with pytest.raises(ValidationFailure):
        await record_listing_event(db, listing_id, "click", DAY)
    with pytest.raises(ValidationFailure):
        await record_listing_event(db, listing_id, "view", DAY, amount=0)


@pytest.mark.asyncio
async def test_member_snapshot_updates_listing_and_day(db, session_factory, make_listing):
    listing_id = await make_listing(member_count=10)

    await record_member_snapshot(db, listing_id, 42, DAY)
    await record_member_snapshot(db, listing_id, 45, DAY)
    await db.commit()

    async with session_factory() as session:
        listing = await session.get(Listing, listing_id)
    assert listing.member_count == 45
    assert (await _row(session_factory, listing_id)).member_count == 45


@pytest.mark.asyncio
async def test_member_snapshot_keeps_counters(db, session_factory, make_listing):
    listing_id = await make_listing()

    await record_listing_event(db, listing_id, "view", DAY, amount=3)
    await record_member_snapshot(db, listing_id, 7, DAY)
    await db.commit()

    row = await _row(session_factory, listing_id)
    assert row.views == 3
    assert row.member_count == 7


@pytest.mark.asyncio
async def test_member_snapshot_unknown_listing(db):
    with pytest.raises(NotFound):
        await record_member_snapshot(db, uuid.uuid4(), 5, DAY)


@pytest.mark.asyncio
async def test_member_snapshot_rejects_negative(db, make_listing):
    listing_id = await make_listing()
    with pytest.raises(ValidationFailure):
        await record_member_snapshot(db, listing_id, -1, DAY)
