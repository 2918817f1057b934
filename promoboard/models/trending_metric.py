"""Trending metric model.

One row per listing per scoring date. Only the current UTC day is scored, so
recomputing refreshes today's rows in place; once the day rolls over the
row is history and is never written again. Served via GET /api/v1/trending.

updated_at is bookkeeping for when the row was last written. It is not part
of the metric and changes on every recompute of the day.
"""

import uuid
import datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, Integer, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TrendingMetric(Base):
    __tablename__ = "trending_metrics"
    __table_args__ = (
        UniqueConstraint("listing_id", "date", name="uq_trending_metrics_listing_date"),
        Index("ix_trending_metrics_date_score", "date", "trending_score"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id"), nullable=False
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    member_growth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vote_growth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    view_growth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    growth_velocity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    engagement_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    trending_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
