"""Pydantic schemas for listing analytics input."""

from typing import Literal

from pydantic import BaseModel, Field


class ListingEventRequest(BaseModel):
    event_type: Literal["view", "unique_view", "join"]


class MemberSnapshotRequest(BaseModel):
    member_count: int = Field(ge=0)


class AcceptedResponse(BaseModel):
    status: str = "ok"
