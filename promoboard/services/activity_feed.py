"""Public activity feed, kept as a bounded ring buffer in the database.

Each append is paired with a prune that keeps the newest ``cap`` records.
The prune boundary is read after the paired insert has been flushed: the
cap-th newest (created_at, id) is located and only rows strictly older than
it are deleted. A record appended concurrently is newer than the boundary
and therefore never removed by someone else's prune.

Ordering is (created_at DESC, id DESC) everywhere; the integer id breaks
timestamp ties.
"""

from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from promoboard.config import settings
from promoboard.errors import ValidationFailure
from promoboard.metrics import activity_appends_total
from promoboard.models.activity import ActivityRecord
from promoboard.schemas.activity import ActivityCreate
from promoboard.services.background import track_task
from promoboard.services.store import as_utc

log = structlog.get_logger(__name__)


def _older_than(created_at: datetime, record_id: int):
    return or_(
        ActivityRecord.created_at < created_at,
        and_(ActivityRecord.created_at == created_at, ActivityRecord.id < record_id),
    )


_NEWEST_FIRST = (ActivityRecord.created_at.desc(), ActivityRecord.id.desc())


async def prune_activity(db: AsyncSession, cap: Optional[int] = None) -> int:
    """Delete everything older than the cap-th newest record.

    Does not commit. Returns the number of rows removed.
    """
    cap = cap or settings.activity_feed_cap
    boundary = (
        await db.execute(
            select(ActivityRecord.created_at, ActivityRecord.id)
            .order_by(*_NEWEST_FIRST)
            .offset(cap - 1)
            .limit(1)
        )
    ).one_or_none()
    if boundary is None:
        return 0

    result = await db.execute(
        delete(ActivityRecord)
        .where(_older_than(boundary.created_at, boundary.id))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def append_activity(
    db: AsyncSession,
    entry: ActivityCreate,
    cap: Optional[int] = None,
) -> ActivityRecord:
    """Append one record, prune to ``cap`` and commit."""
    created_at = as_utc(entry.created_at) if entry.created_at else datetime.now(timezone.utc)
    record = ActivityRecord(
        user_id=entry.user_id,
        activity_type=entry.activity_type,
        target_type=entry.target_type,
        target_id=entry.target_id,
        metadata_json=entry.metadata,
        is_public=entry.is_public,
        created_at=created_at,
    )
    db.add(record)
    await db.flush()

    pruned = await prune_activity(db, cap)
    await db.commit()

    activity_appends_total.labels(outcome="ok").inc()
    if pruned:
        log.debug("activity_pruned", pruned=pruned)
    return record


async def recent_activity(
    db: AsyncSession,
    limit: int,
    public_only: bool = False,
    page_size: Optional[int] = None,
) -> AsyncIterator[ActivityRecord]:
    """Yield up to ``limit`` records, newest first.

    Reads lazily in keyset pages; nothing is remembered between calls, so
    every call starts again from the newest record.
    """
    if limit < 0:
        raise ValidationFailure("limit must be non-negative")
    page_size = page_size or settings.feed_page_size

    remaining = limit
    cursor: Optional[tuple[datetime, int]] = None
    while remaining > 0:
        batch = min(page_size, remaining)
        stmt = select(ActivityRecord).order_by(*_NEWEST_FIRST).limit(batch)
        if public_only:
            stmt = stmt.where(ActivityRecord.is_public.is_(True))
        if cursor is not None:
            stmt = stmt.where(_older_than(*cursor))

        rows = (await db.execute(stmt)).scalars().all()
        for row in rows:
            yield row

        if len(rows) < batch:
            return
        remaining -= len(rows)
        cursor = (rows[-1].created_at, rows[-1].id)


async def _append_quietly(
    entry: ActivityCreate,
    session_factory: Optional[async_sessionmaker],
) -> None:
    if session_factory is None:
        from promoboard.database import async_session_factory as session_factory

    try:
        async with session_factory() as db:
            await append_activity(db, entry)
    except Exception:
        activity_appends_total.labels(outcome="error").inc()
        log.warning(
            "activity_append_failed",
            activity_type=entry.activity_type,
            target_id=str(entry.target_id) if entry.target_id else None,
            exc_info=True,
        )


def record_activity_in_background(
    entry: ActivityCreate,
    session_factory: Optional[async_sessionmaker] = None,
):
    """Append ``entry`` on its own session without blocking the caller.

    Failures are logged and swallowed; the caller's transaction is never
    affected.
    """
    return track_task(_append_quietly(entry, session_factory))
