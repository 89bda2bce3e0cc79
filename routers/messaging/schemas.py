"""Messaging/Realtime schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from core.config import MESSAGE_MAX_LENGTH


class StartConversationRequest(BaseModel):
    peer_user_id: int = Field(..., example=1234567890)


class ConversationResponse(BaseModel):
    conversation_id: str
    participant_ids: List[int]
    created: bool = False


class ConversationSummary(BaseModel):
    conversation_id: str
    participant_ids: List[int]
    last_message_at: Optional[datetime] = None
    unread_count: int = 0


class ConversationListResponse(BaseModel):
    conversations: List[ConversationSummary]


class SendMessageRequest(BaseModel):
    content: Optional[str] = Field(None, max_length=MESSAGE_MAX_LENGTH, example="See you at the cleanup!")
    message_type: str = Field("text", pattern="^(text|camly_gift)$")
    camly_amount: Optional[int] = Field(None, gt=0, description="Required for camly_gift", example=100)


class ReactionGroup(BaseModel):
    emoji: str
    count: int
    has_reacted: bool
    users: List[int]


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: int
    content: Optional[str] = None
    message_type: str
    camly_amount: Optional[int] = None
    status: str = Field(..., description="sent | delivered | seen, from the viewer's side")
    delivered: bool
    created_at: datetime
    reactions: List[ReactionGroup] = []


class MessageListResponse(BaseModel):
    messages: List[MessageResponse]


class MarkDeliveredResponse(BaseModel):
    message_id: str
    status: str
    delivered_at: Optional[datetime] = None


class MarkSeenResponse(BaseModel):
    conversation_id: str
    updated: int
    last_read_at: datetime


class TypingRequest(BaseModel):
    is_typing: bool = True


class TypingResponse(BaseModel):
    conversation_id: str
    is_typing: bool
    emitted: bool


class TypingUsersResponse(BaseModel):
    conversation_id: str
    user_ids: List[int]


class ReactionRequest(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=32, example="🌱")


class ToggleReactionResponse(BaseModel):
    message_id: str
    emoji: str
    reacted: bool
    reactions: List[ReactionGroup]


class ReactionListResponse(BaseModel):
    message_id: str
    reactions: List[ReactionGroup]
