"""Store primitives shared by the engagement, analytics and trending services.

- upsert(): dialect-aware INSERT ... ON CONFLICT, so the same statement works on
  PostgreSQL in production and SQLite in tests.
- run_with_retry(): runs one transactional unit, retrying once on an
  operational store error. Every unit is a set of conditional statements in
  a single transaction, so a failed attempt leaves nothing behind.
"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, TypeVar

import structlog
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from promoboard.errors import TransientStoreFailure, ValidationFailure

log = structlog.get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, InterfaceError)


def upsert(session: AsyncSession, table):
    """Return an INSERT for ``table`` supporting on_conflict_do_update/nothing."""
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


def as_utc(value: datetime) -> datetime:
    """Normalise a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def require_aware(value: datetime, name: str = "now") -> datetime:
    """Reject naive timestamps coming from callers, return UTC otherwise."""
    if not isinstance(value, datetime):
        raise ValidationFailure(f"{name} must be a datetime")
    if value.tzinfo is None:
        raise ValidationFailure(f"{name} must be timezone-aware")
    return value.astimezone(timezone.utc)


async def run_with_retry(
    db: AsyncSession,
    unit: Callable[[], Awaitable[T]],
    operation: str,
) -> T:
    """Run ``unit`` and retry it once after rollback on a transient store error.

    ``unit`` owns its commit. Domain errors propagate untouched.
    """
    try:
        return await unit()
    except TRANSIENT_ERRORS as exc:
        await db.rollback()
        log.warning("store_retry", operation=operation, error=str(exc))

    try:
        return await unit()
    except TRANSIENT_ERRORS as exc:
        await db.rollback()
        log.error("store_unavailable", operation=operation, error=str(exc))
        raise TransientStoreFailure(f"{operation} failed: {exc}") from exc
