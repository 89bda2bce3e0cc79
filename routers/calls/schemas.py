"""Calls domain schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class StartCallRequest(BaseModel):
    callee_id: int = Field(..., example=1234567890)
    call_type: str = Field("voice", pattern="^(voice|video)$")


class CallResponse(BaseModel):
    id: str
    caller_id: int
    callee_id: int
    call_type: str
    status: str
    created_at: datetime
    answered_at: Optional[datetime] = None
    connected_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: int = 0

    class Config:
        from_attributes = True


class CallLogEntry(BaseModel):
    call_id: str
    call_type: str
    status: str
    direction: str = Field(..., description="incoming | outgoing")
    peer_id: int
    duration_seconds: int
    can_call_back: bool
    created_at: datetime
    ended_at: Optional[datetime] = None


class CallLogResponse(BaseModel):
    calls: List[CallLogEntry]


class IncomingCallsResponse(BaseModel):
    calls: List[CallResponse]


class StartGroupCallRequest(BaseModel):
    conversation_id: Optional[str] = Field(None, example="2b1f5e3a-7c44-4a0e-9a55-0e7a6b0d2c11")
    call_type: str = Field("voice", pattern="^(voice|video)$")


class GroupCallResponse(BaseModel):
    id: str
    conversation_id: Optional[str] = None
    host_id: int
    call_type: str
    status: str
    started_at: datetime
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RecordingResponse(BaseModel):
    id: str
    call_id: Optional[str] = None
    group_call_id: Optional[str] = None
    recorded_by: int
    file_url: str
    duration_seconds: int
    file_size_bytes: int
    created_at: datetime

    class Config:
        from_attributes = True


class RecordingListResponse(BaseModel):
    recordings: List[RecordingResponse]
