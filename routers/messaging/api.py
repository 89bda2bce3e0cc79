from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query
from sqlalchemy.orm import Session

from core.config import MESSAGE_HISTORY_LIMIT
from core.db import get_db
from routers.dependencies import get_current_user

from .schemas import (
    ConversationListResponse,
    ConversationResponse,
    MarkDeliveredResponse,
    MarkSeenResponse,
    MessageListResponse,
    MessageResponse,
    ReactionListResponse,
    ReactionRequest,
    SendMessageRequest,
    StartConversationRequest,
    ToggleReactionResponse,
    TypingRequest,
    TypingResponse,
    TypingUsersResponse,
)
from .service import get_messages as service_get_messages
from .service import get_reactions as service_get_reactions
from .service import get_typing_users as service_get_typing_users
from .service import list_conversations as service_list_conversations
from .service import mark_delivered as service_mark_delivered
from .service import mark_seen as service_mark_seen
from .service import send_message as service_send_message
from .service import set_typing as service_set_typing
from .service import start_conversation as service_start_conversation
from .service import toggle_reaction as service_toggle_reaction

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.post("/conversations", response_model=ConversationResponse)
async def start_conversation(
    request: StartConversationRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Open (or reuse) the one-to-one conversation with another user."""
    return service_start_conversation(db, current_user=current_user, peer_user_id=request.peer_user_id)


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    limit: int = Query(MESSAGE_HISTORY_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_list_conversations(db, current_user=current_user, limit=limit)


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse)
async def send_message(
    request: SendMessageRequest,
    background_tasks: BackgroundTasks,
    conversation_id: str = Path(..., description="Conversation ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """
    Send a text message or a camly gift. Every other participant gets a `sent` receipt
    and the conversation channel receives a `new-message` event.
    """
    return await service_send_message(
        db,
        current_user=current_user,
        conversation_id=conversation_id,
        content=request.content,
        message_type=request.message_type,
        camly_amount=request.camly_amount,
        background_tasks=background_tasks,
    )


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def get_messages(
    conversation_id: str = Path(..., description="Conversation ID"),
    limit: int = Query(MESSAGE_HISTORY_LIMIT, ge=1, le=100),
    before: Optional[datetime] = Query(None, description="Only messages older than this"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Oldest first. Each message carries its status from the caller's side and grouped reactions."""
    return service_get_messages(
        db, current_user=current_user, conversation_id=conversation_id, limit=limit, before=before
    )


@router.post("/{message_id}/delivered", response_model=MarkDeliveredResponse)
async def mark_delivered(
    background_tasks: BackgroundTasks,
    message_id: str = Path(..., description="Message ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_mark_delivered(
        db, current_user=current_user, message_id=message_id, background_tasks=background_tasks
    )


@router.post("/conversations/{conversation_id}/seen", response_model=MarkSeenResponse)
async def mark_seen(
    background_tasks: BackgroundTasks,
    conversation_id: str = Path(..., description="Conversation ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_mark_seen(
        db, current_user=current_user, conversation_id=conversation_id, background_tasks=background_tasks
    )


@router.post("/conversations/{conversation_id}/typing", response_model=TypingResponse)
async def set_typing(
    request: TypingRequest,
    background_tasks: BackgroundTasks,
    conversation_id: str = Path(..., description="Conversation ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return await service_set_typing(
        db,
        current_user=current_user,
        conversation_id=conversation_id,
        is_typing=request.is_typing,
        background_tasks=background_tasks,
    )


@router.get("/conversations/{conversation_id}/typing", response_model=TypingUsersResponse)
async def get_typing_users(
    conversation_id: str = Path(..., description="Conversation ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_get_typing_users(db, current_user=current_user, conversation_id=conversation_id)


@router.post("/{message_id}/reactions", response_model=ToggleReactionResponse)
async def toggle_reaction(
    request: ReactionRequest,
    background_tasks: BackgroundTasks,
    message_id: str = Path(..., description="Message ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Add the emoji if the caller hasn't used it on this message, remove it otherwise."""
    return service_toggle_reaction(
        db,
        current_user=current_user,
        message_id=message_id,
        emoji=request.emoji,
        background_tasks=background_tasks,
    )


@router.get("/{message_id}/reactions", response_model=ReactionListResponse)
async def get_reactions(
    message_id: str = Path(..., description="Message ID"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_get_reactions(db, current_user=current_user, message_id=message_id)
