"""Pydantic schemas for circle endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreateCircleRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str | None = Field(None, max_length=256)


class JoinCircleRequest(BaseModel):
    invite_code: str = Field(..., min_length=8, max_length=8)


class CircleMemberResponse(BaseModel):
    account_id: str
    display_name: str | None = None
    title: str
    role: str
    joined_at: datetime


class CircleResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    owner_id: str
    role: str
    member_count: int
    max_members: int
    created_at: datetime
    invite_code: str | None = None  # Only shown to members


class CircleDetailResponse(CircleResponse):
    members: list[CircleMemberResponse] = []


class CircleListResponse(BaseModel):
    circles: list[CircleResponse]


class InviteCodeResponse(BaseModel):
    invite_code: str


class LeaveCircleResponse(BaseModel):
    action: str
