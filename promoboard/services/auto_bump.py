"""Scheduled auto-bump for owners on a paid tier.

Owners opt in through auto_bump_settings. When an owner's interval has
elapsed, each of their paid listings is bumped through the engagement gate
with bump_type='auto', so the normal tier cooldown still applies. One
listing failing does not stop the others.
"""

from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from promoboard.errors import NotFound, TransientStoreFailure
from promoboard.models.auto_bump_setting import AutoBumpSetting
from promoboard.models.listing import Listing, Tier
from promoboard.services.engagement import try_bump
from promoboard.services.notifications import DiscordNotifier
from promoboard.services.store import as_utc, require_aware

log = structlog.get_logger(__name__)


def is_due(last_auto_bump_at: Optional[datetime], interval_hours: float, now: datetime) -> bool:
    """Whether an owner's auto-bump interval has elapsed at ``now``."""
    if last_auto_bump_at is None:
        return True
    return now - as_utc(last_auto_bump_at) >= timedelta(hours=interval_hours)


async def run_auto_bump(
    db: AsyncSession,
    now: datetime,
    *,
    session_factory: Optional[async_sessionmaker] = None,
    notifier: Optional[DiscordNotifier] = None,
) -> dict:
    """Bump the paid listings of every owner whose auto-bump is due.

    Returns counts: owners_processed, listings_bumped, listings_on_cooldown,
    errors.
    """
    now = require_aware(now)
    stats = {
        "owners_processed": 0,
        "listings_bumped": 0,
        "listings_on_cooldown": 0,
        "errors": 0,
    }

    owners = (
        await db.execute(
            select(
                AutoBumpSetting.id,
                AutoBumpSetting.owner_id,
                AutoBumpSetting.interval_hours,
                AutoBumpSetting.last_auto_bump_at,
            ).where(AutoBumpSetting.enabled.is_(True))
        )
    ).all()

    for owner in owners:
        if not is_due(owner.last_auto_bump_at, owner.interval_hours, now):
            continue

        listings = (
            await db.execute(
                select(Listing.id, Listing.tier)
                .where(Listing.owner_id == owner.owner_id)
                .where(Listing.tier != Tier.free.value)
                .order_by(Listing.created_at)
            )
        ).all()
        if not listings:
            log.debug("auto_bump_skipped_free_tier", owner_id=str(owner.owner_id))
            continue

        for listing in listings:
            try:
                outcome = await try_bump(
                    db,
                    listing.id,
                    listing.tier,
                    now,
                    user_id=owner.owner_id,
                    bump_type="auto",
                    session_factory=session_factory,
                    notifier=notifier,
                )
            except NotFound:
                continue
            except TransientStoreFailure:
                raise
            except Exception:
                await db.rollback()
                stats["errors"] += 1
                log.error("auto_bump_listing_failed", listing_id=str(listing.id), exc_info=True)
                continue
            if outcome.accepted:
                stats["listings_bumped"] += 1
            else:
                stats["listings_on_cooldown"] += 1

        await db.execute(
            update(AutoBumpSetting)
            .where(AutoBumpSetting.id == owner.id)
            .values(last_auto_bump_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        stats["owners_processed"] += 1

    log.info("auto_bump_completed", **stats)
    return stats
