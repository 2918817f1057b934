"""Bump history model.

Written in the same transaction as the listing's last_bumped_at update.
bump_type is 'manual' for user bumps and 'auto' for the auto-bump job.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class BumpRecord(Base):
    __tablename__ = "bumps"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id"), nullable=False, index=True
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    bump_type: Mapped[str] = mapped_column(String(10), nullable=False, default="manual")
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    bumped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
