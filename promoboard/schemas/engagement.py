"""Pydantic schemas for votes and bumps."""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class VoteOutcome(BaseModel):
    """Result of a vote attempt."""

    accepted: bool
    listing_id: uuid.UUID
    vote_date: date


class BumpOutcome(BaseModel):
    """Result of a bump attempt.

    next_eligible_at is when the listing may be bumped again: now + cooldown
    on acceptance, last_bumped_at + cooldown on refusal.
    """

    accepted: bool
    listing_id: uuid.UUID
    next_eligible_at: datetime
    weight: float = 0.0


class VoteResponse(BaseModel):
    accepted: bool
    vote_date: date
    message: str


class BumpResponse(BaseModel):
    accepted: bool
    next_eligible_at: datetime
    message: str


class ConflictResponse(BaseModel):
    detail: str
    next_eligible_at: Optional[datetime] = None
