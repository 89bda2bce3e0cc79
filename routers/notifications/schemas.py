"""Notifications domain schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: str
    type: str = Field(..., description="post_shared | camly_gift | missed_call")
    title: Optional[str] = None
    message: Optional[str] = None
    actor_id: Optional[int] = None
    camly_amount: Optional[int] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    unread_count: int


class MarkReadRequest(BaseModel):
    notification_ids: Optional[List[str]] = Field(
        None, description="Notification IDs to mark as read; omit to mark everything"
    )


class MarkReadResponse(BaseModel):
    updated: int
    unread_count: int
