"""Rewards domain schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field


class CheckInResponse(BaseModel):
    streak: int = Field(..., example=7)
    reward: int = Field(..., description="Total camly credited", example=2500)
    base_reward: int = Field(..., example=500)
    bonus: int = Field(..., example=2000)
    camly_balance: int = Field(..., example=12500)
    checked_in_at: str = Field(..., example="2026-10-19")
    message: str


class CheckInStatusResponse(BaseModel):
    current_streak: int
    last_check_in: Optional[str] = None
    checked_in_today: bool
    next_reward: int
    days_until_streak_bonus: int


class LimitCounter(BaseModel):
    count: int
    max: int
    remaining: int


class DailyLimitsResponse(BaseModel):
    date: str = Field(..., example="2026-10-19")
    shares: LimitCounter
    likes: LimitCounter


class RecordActionResponse(BaseModel):
    kind: str = Field(..., example="likes")
    count: int
    max: int
    remaining: int


class ContentViewResponse(BaseModel):
    already_viewed: bool
    points_awarded: int = Field(..., example=10)
    message: str


class ViewedContentResponse(BaseModel):
    content_ids: List[str]
