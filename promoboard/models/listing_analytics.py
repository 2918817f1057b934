"""Daily listing analytics model.

Per-listing per-day counters (views, joins, bumps) plus the member_count
snapshot taken that day. The trending scorer derives view and member growth
from these rows.
"""

import uuid
import datetime
from typing import Optional

from sqlalchemy import Date, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ListingAnalytics(Base):
    __tablename__ = "listing_analytics"
    __table_args__ = (
        UniqueConstraint("listing_id", "date", name="uq_listing_analytics_listing_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id"), nullable=False
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unique_visitors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    joins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bumps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    member_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
