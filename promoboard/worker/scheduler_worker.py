"""Scheduler worker: the in-process trigger for periodic jobs.

Runs on a configurable interval:
1. Trending recompute for today (UTC)
2. Auto-bump for owners whose interval elapsed
3. Activity feed pruning (catches anything left by failed appends)

Each job runs independently; one failure doesn't block the others. A
scoring_runs row records every cycle, and a cycle is skipped when a
completed one is more recent than the interval.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import select, update

from promoboard.config import settings
from promoboard.database import async_session_factory
from promoboard.models.scoring_run import ScoringRun
from promoboard.services.activity_feed import prune_activity
from promoboard.services.auto_bump import run_auto_bump
from promoboard.services.trending import recompute_all

log = structlog.get_logger(__name__)


async def _recompute_trending(session, now: datetime, session_factory) -> dict:
    result = await recompute_all(session, now.date(), today=now.date())
    return {"trending_scored": result.scored, "trending_errors": result.errors}


async def _auto_bump(session, now: datetime, session_factory) -> dict:
    if not settings.auto_bump_enabled:
        return {}
    stats = await run_auto_bump(session, now, session_factory=session_factory)
    return {f"auto_bump_{key}": value for key, value in stats.items()}


async def _prune_feed(session, now: datetime, session_factory) -> int:
    pruned = await prune_activity(session)
    await session.commit()
    return pruned


async def run_scheduled_cycle(session_factory=None, now: Optional[datetime] = None) -> dict:
    """Execute one full cycle.

    Returns stats dict for audit trail.
    """
    session_factory = session_factory or async_session_factory
    now = now or datetime.now(timezone.utc)
    stats = {}

    async with session_factory() as session:
        # Check for recent completed run (idempotency)
        interval = timedelta(hours=settings.trending_interval_hours)
        recent = await session.execute(
            select(ScoringRun.id)
            .where(
                ScoringRun.completed_at > now - interval,
                ScoringRun.status == "completed",
            )
            .limit(1)
        )
        if recent.scalar_one_or_none():
            log.info("scheduled_cycle_skipped", reason="recent_run_exists")
            return {"skipped": True}

        run = ScoringRun(status="running", started_at=now)
        session.add(run)
        await session.commit()
        run_id = run.id

        errors = []
        jobs = [
            ("trending", _recompute_trending),
            ("auto_bump", _auto_bump),
            ("activity_pruned", _prune_feed),
        ]
        for job_name, job in jobs:
            try:
                result = await job(session, now, session_factory)
                if isinstance(result, dict):
                    stats.update(result)
                else:
                    stats[job_name] = result
            except Exception:
                await session.rollback()
                log.error("scheduled_job_failed", job=job_name, exc_info=True)
                stats[job_name] = "error"
                errors.append(job_name)

        await session.execute(
            update(ScoringRun)
            .where(ScoringRun.id == run_id)
            .values(
                status="completed" if not errors else "partial",
                completed_at=datetime.now(timezone.utc),
                stats_json=stats,
            )
        )
        await session.commit()

        if errors:
            log.warning("scheduled_cycle_partial", failed_jobs=errors, stats=stats)
        else:
            log.info("scheduled_cycle_completed", stats=stats)

    return stats


async def scheduler_worker_loop():
    """Background loop that runs the cycle on a configurable interval."""
    interval = settings.trending_interval_hours * 3600
    log.info("scheduler_worker_started", interval_hours=settings.trending_interval_hours)

    # Initial delay so the app can warm up
    await asyncio.sleep(settings.scheduler_initial_delay)

    while True:
        try:
            await run_scheduled_cycle()
        except Exception:
            log.error("scheduler_worker_error", exc_info=True)
        await asyncio.sleep(interval)
