"""Notifications domain service layer."""

import logging

from fastapi import HTTPException, status

from core.config import PUSHER_ENABLED
from utils.pusher_client import get_pusher_client

from . import repository as notifications_repository

logger = logging.getLogger(__name__)

CONVERSATION_CHANNEL_PREFIX = "private-conversation-"
USER_CHANNEL_PREFIX = "private-user-"


def list_notifications(db, *, current_user, limit: int = 50, offset: int = 0, unread_only: bool = False):
    notifications = notifications_repository.list_notifications(
        db, user_id=current_user.account_id, limit=limit, offset=offset, unread_only=unread_only
    )
    total, unread = notifications_repository.count_notifications(db, user_id=current_user.account_id)
    return {"notifications": notifications, "total": total, "unread_count": unread}


def mark_read(db, *, current_user, notification_ids=None):
    if notification_ids is None:
        updated = notifications_repository.mark_all_read(db, user_id=current_user.account_id)
    else:
        updated = notifications_repository.mark_read(
            db, user_id=current_user.account_id, notification_ids=notification_ids
        )
    db.commit()
    _, unread = notifications_repository.count_notifications(db, user_id=current_user.account_id)
    return {"updated": updated, "unread_count": unread}


def authorize_channel(db, *, current_user, channel_name: str) -> None:
    """Raise unless the caller may listen on `channel_name`."""
    if channel_name.startswith(CONVERSATION_CHANNEL_PREFIX):
        conversation_id = channel_name[len(CONVERSATION_CHANNEL_PREFIX):]
        if not conversation_id or not notifications_repository.is_conversation_participant(
            db, conversation_id=conversation_id, user_id=current_user.account_id
        ):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized for this conversation")
        return
    if channel_name.startswith(USER_CHANNEL_PREFIX):
        if channel_name[len(USER_CHANNEL_PREFIX):] != str(current_user.account_id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized for this channel")
        return
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown channel type")


def pusher_auth(db, *, current_user, socket_id: str, channel_name: str):
    """Sign a private channel subscription for the Pusher client."""
    if not PUSHER_ENABLED:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Pusher is not enabled")
    authorize_channel(db, current_user=current_user, channel_name=channel_name)

    pusher_client = get_pusher_client()
    if not pusher_client:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Pusher client not available")
    return pusher_client.authenticate(channel=channel_name, socket_id=socket_id)
