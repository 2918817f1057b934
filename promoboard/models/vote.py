"""Vote record model.

One row per (user, listing, calendar day). The unique constraint is what makes
the gate's conditional insert fail for a second vote on the same day.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class VoteRecord(Base):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("user_id", "listing_id", "vote_date", name="uq_votes_user_listing_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id"), nullable=False, index=True
    )
    vote_date: Mapped[date] = mapped_column(Date, nullable=False)
    voted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
