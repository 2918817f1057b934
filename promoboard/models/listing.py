"""Listing model.

A promoted Discord server or bot. vote_count, bump_count and last_bumped_at
are only ever changed through conditional UPDATE statements issued by the
engagement gate, never by read-modify-write in Python.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ListingType(str, enum.Enum):
    server = "server"
    bot = "bot"


class Tier(str, enum.Enum):
    free = "free"
    gold = "gold"
    platinum = "platinum"


class Listing(Base):
    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(
        String(10), nullable=False, default=ListingType.server.value
    )
    tier: Mapped[str] = mapped_column(String(10), nullable=False, default=Tier.free.value)

    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Tier-weighted (platinum bumps count double), hence a float
    bump_count: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_bumped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
