"""Pydantic schemas for the public activity feed."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ActivityCreate(BaseModel):
    """An activity to append to the feed."""

    activity_type: str = Field(min_length=1, max_length=50)
    user_id: Optional[uuid.UUID] = None
    target_type: Optional[str] = Field(None, max_length=20)
    target_id: Optional[uuid.UUID] = None
    metadata: dict = Field(default_factory=dict)
    is_public: bool = True
    created_at: Optional[datetime] = None


class ActivityTrackRequest(BaseModel):
    """Client-reported activity; the user comes from the caller identity."""

    activity_type: str = Field(min_length=1, max_length=50)
    target_type: Optional[str] = Field(None, max_length=20)
    target_id: Optional[uuid.UUID] = None
    metadata: dict = Field(default_factory=dict)


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[uuid.UUID] = None
    activity_type: str
    target_type: Optional[str] = None
    target_id: Optional[uuid.UUID] = None
    metadata: dict = Field(default_factory=dict, validation_alias="metadata_json")
    created_at: datetime


class ActivityFeedResponse(BaseModel):
    activities: list[ActivityResponse]
    total: int
