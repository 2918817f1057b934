"""Tests for the bounded public activity feed."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from promoboard.errors import ValidationFailure
from promoboard.models import ActivityRecord
from promoboard.schemas.activity import ActivityCreate
from promoboard.services.activity_feed import (
    append_activity,
    prune_activity,
    recent_activity,
    record_activity_in_background,
)
from promoboard.services.background import drain_background_tasks

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _entry(i: int, **overrides) -> ActivityCreate:
    fields = {
        "activity_type": "vote_cast",
        "user_id": uuid.uuid4(),
        "target_type": "server",
        "target_id": uuid.uuid4(),
        "metadata": {"seq": i},
        "created_at": T0 + timedelta(seconds=i),
    }
    fields.update(overrides)
    return ActivityCreate(**fields)


async def _collect(db, limit, **kwargs):
    return [record async for record in recent_activity(db, limit, **kwargs)]


async def _count(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(ActivityRecord))


@pytest.mark.asyncio
async def test_recent_is_newest_first(db):
    for i in range(5):
        await append_activity(db, _entry(i))

    records = await _collect(db, 10)

    assert [r.metadata_json["seq"] for r in records] == [4, 3, 2, 1, 0]


@pytest.mark.asyncio
async def test_feed_is_bounded_to_cap(db, session_factory):
    for i in range(130):
        await append_activity(db, _entry(i))

    assert await _count(session_factory) == 100
    records = await _collect(db, 100)
    assert [r.metadata_json["seq"] for r in records] == list(range(129, 29, -1))


@pytest.mark.asyncio
async def test_custom_cap_keeps_newest(db, session_factory):
    for i in range(8):
        await append_activity(db, _entry(i), cap=3)

    assert await _count(session_factory) == 3
    assert [r.metadata_json["seq"] for r in await _collect(db, 10)] == [7, 6, 5]


@pytest.mark.asyncio
async def test_timestamp_ties_are_ordered_by_insertion(db, session_factory):
    for i in range(4):
        await append_activity(db, _entry(i, created_at=T0), cap=3)

    assert await _count(session_factory) == 3
    assert [r.metadata_json["seq"] for r in await _collect(db, 10)] == [3, 2, 1]


@pytest.mark.asyncio
async def test_late_arriving_old_record_is_pruned_not_newer_ones(db):
    for i in range(3):
        await append_activity(db, _entry(10 + i), cap=3)

    await append_activity(db, _entry(0), cap=3)

    assert [r.metadata_json["seq"] for r in await _collect(db, 10)] == [12, 11, 10]


@pytest.mark.asyncio
async def test_prune_activity_standalone(db, session_factory):
    async with session_factory() as session:
        for i in range(10):
            session.add(
                ActivityRecord(
                    activity_type="listing_bumped",
                    metadata_json={"seq": i},
                    created_at=T0 + timedelta(seconds=i),
                )
            )
        await session.commit()

    removed = await prune_activity(db, cap=4)
    await db.commit()

    assert removed == 6
    assert [r.metadata_json["seq"] for r in await _collect(db, 10)] == [9, 8, 7, 6]


@pytest.mark.asyncio
async def test_prune_below_cap_is_a_no_op(db):
    await append_activity(db, _entry(0))
    assert await prune_activity(db, cap=100) == 0


@pytest.mark.asyncio
async def test_recent_pages_lazily_and_restarts(db):
    for i in range(20):
        await append_activity(db, _entry(i))

    first = await _collect(db, 15, page_size=4)
    second = await _collect(db, 15, page_size=4)

    assert [r.metadata_json["seq"] for r in first] == list(range(19, 4, -1))
    assert [r.id for r in first] == [r.id for r in second]


@pytest.mark.asyncio
async def test_recent_can_stop_early(db):
    for i in range(10):
        await append_activity(db, _entry(i))

    feed = recent_activity(db, 10, page_size=3)
    newest = await feed.__anext__()
    await feed.aclose()

    assert newest.metadata_json["seq"] == 9


@pytest.mark.asyncio
async def test_recent_public_only(db):
    await append_activity(db, _entry(0))
    await append_activity(db, _entry(1, is_public=False))
    await append_activity(db, _entry(2))

    records = await _collect(db, 10, public_only=True)

    assert [r.metadata_json["seq"] for r in records] == [2, 0]


@pytest.mark.asyncio
async def test_recent_zero_and_negative_limits(db):
    await append_activity(db, _entry(0))

    assert await _collect(db, 0) == []
    with pytest.raises(ValidationFailure):
        await _collect(db, -1)


@pytest.mark.asyncio
async def test_background_append_is_durable(session_factory):
    record_activity_in_background(_entry(0), session_factory=session_factory)
    await drain_background_tasks()

    assert await _count(session_factory) == 1


@pytest.mark.asyncio
async def test_background_append_swallows_failures(session_factory):
    def broken_factory():
        raise RuntimeError("no database")

    task = record_activity_in_background(_entry(0), session_factory=broken_factory)
    await drain_background_tasks()

    assert task.exception() is None
    assert await _count(session_factory) == 0


@pytest.mark.asyncio
async def test_concurrent_appends_at_cap_keep_every_new_record(db, session_factory):
    for i in range(5):
        await append_activity(db, _entry(i), cap=5)

    async def _append(i):
        async with session_factory() as session:
            record = await append_activity(session, _entry(i), cap=5)
            return record.id

    new_ids = await asyncio.gather(*(_append(100 + i) for i in range(4)))

    assert await _count(session_factory) <= 5
    async with session_factory() as session:
        kept = set(
            (await session.execute(select(ActivityRecord.id))).scalars().all()
        )
    assert set(new_ids) <= kept
