"""Auto-bump settings model.

Per-owner opt-in for the scheduled auto-bump job. Only owners on a paid tier
are processed; interval_hours is on top of the normal bump cooldown.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AutoBumpSetting(Base):
    __tablename__ = "auto_bump_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, unique=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    interval_hours: Mapped[float] = mapped_column(Float, nullable=False, default=12.0)
    last_auto_bump_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
