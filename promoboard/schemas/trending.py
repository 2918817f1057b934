"""Pydantic schemas for trending scores."""

import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class RecomputeRequest(BaseModel):
    as_of: Optional[date] = Field(default=None, description="Scoring date (defaults to today, UTC)")


class RecomputeResult(BaseModel):
    """Outcome of one recompute_all run."""

    as_of: date
    scored: int
    errors: int = 0


class TrendingEntry(BaseModel):
    listing_id: uuid.UUID
    name: str
    type: str
    member_count: int
    trending_score: float
    growth_velocity: float
    engagement_score: float
    member_growth: int
    vote_growth: int
    view_growth: int


class TrendingResponse(BaseModel):
    as_of: date
    trending: list[TrendingEntry]
